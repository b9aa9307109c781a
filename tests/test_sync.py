"""
Memory Box Uploader - Submission Sync Tests

Tests for:
- Write ordering (metadata, then images, then songs, in catalog order)
- Create vs. update on every destination
- Idempotent re-submission (fresh sha per write, no spurious conflicts)
- Abort-on-first-failure with already committed writes left in place
- End-to-end scenarios over the fake repository
"""

import json

import pytest

from memorybox.errors import Conflict, NetworkError, ValidationError
from memorybox.services.metadata import MetadataDocument, compose_metadata
from memorybox.services.sync import (
    Submission,
    SubmissionSync,
    UploadBlob,
    commit_destination,
    replace_metadata_document,
)
from tests.conftest import run

META = "public/files/database/data.json"
IMAGES = "public/files/database/images"
SONGS = "public/files/database/songs"


def _blobs(prefix: str, count: int, ext: str):
    return [UploadBlob(filename=f"{prefix}{i}{ext}", content=f"{prefix}-{i}".encode()) for i in range(count)]


def _sync(make_store, catalog, submission):
    """Run a submission; return (report or exception, SubmissionSync)."""

    async def scenario():
        async with make_store() as store:
            sync = SubmissionSync(store, catalog, submission)
            try:
                return await sync.run(), sync
            except Exception as e:  # noqa: BLE001
                return e, sync

    return run(scenario())


# ===========================================================================
# Ordering and create/update semantics
# ===========================================================================


class TestOrdering:
    def test_metadata_then_images_then_songs(self, make_store, catalog, fake_github):
        submission = Submission(images=_blobs("img", 2, ".jpg"), songs=_blobs("snd", 2, ".mp3"))
        report, _ = _sync(make_store, catalog, submission)

        expected = [
            META,
            f"{IMAGES}/collage.jpg",
            f"{IMAGES}/memory1.jpg",
            f"{SONGS}/song1.mp3",
            f"{SONGS}/song2.mp3",
        ]
        assert fake_github.written_paths == expected
        assert report.paths == expected

    def test_each_write_preceded_by_read(self, make_store, catalog, fake_github):
        _sync(make_store, catalog, Submission(images=_blobs("img", 1, ".jpg")))
        methods = [(r.method, r.url.path.split("/contents/", 1)[1]) for r in fake_github.requests]
        assert methods == [
            ("GET", META),
            ("PUT", META),
            ("GET", f"{IMAGES}/collage.jpg"),
            ("PUT", f"{IMAGES}/collage.jpg"),
        ]

    def test_commit_messages(self, make_store, catalog, fake_github):
        _sync(make_store, catalog, Submission(images=_blobs("i", 1, ".jpg"), songs=_blobs("s", 1, ".mp3")))
        messages = [body["message"] for body in fake_github.put_bodies]
        assert messages == [
            "Replace metadata data.json",
            "Add/update image collage.jpg",
            "Add/update song song1.mp3",
        ]

    def test_new_files_created_existing_updated(self, make_store, catalog, fake_github):
        fake_github.files[f"{IMAGES}/collage.jpg"] = b"old collage"
        report, _ = _sync(make_store, catalog, Submission(images=_blobs("img", 2, ".jpg")))

        created = {c.path: c.created for c in report.committed}
        assert created[META] is True
        assert created[f"{IMAGES}/collage.jpg"] is False
        assert created[f"{IMAGES}/memory1.jpg"] is True
        assert "sha" in fake_github.put_bodies[1]
        assert "sha" not in fake_github.put_bodies[2]

    def test_named_targets(self, make_store, catalog, fake_github):
        submission = Submission(
            images=_blobs("img", 2, ".jpg"),
            image_names=["memory5.jpg", "memory2.jpg"],
        )
        _sync(make_store, catalog, submission)
        assert fake_github.written_paths == [
            META,
            f"{IMAGES}/memory2.jpg",
            f"{IMAGES}/memory5.jpg",
        ]
        assert fake_github.files[f"{IMAGES}/memory5.jpg"] == b"img-0"

    def test_bad_target_name_writes_nothing(self, make_store, catalog, fake_github):
        submission = Submission(songs=_blobs("snd", 1, ".mp3"), song_names=["song7.mp3"])
        result, sync = _sync(make_store, catalog, submission)
        assert isinstance(result, ValidationError)
        assert fake_github.requests == []
        assert sync.committed == []


# ===========================================================================
# Idempotence
# ===========================================================================


class TestIdempotence:
    def test_resubmission_succeeds(self, make_store, catalog, fake_github):
        submission = Submission(
            images=_blobs("img", 7, ".jpg"),
            songs=_blobs("snd", 6, ".mp3"),
            song_titles=["A", "B"],
        )
        _sync(make_store, catalog, submission)
        snapshot = dict(fake_github.files)

        report, _ = _sync(make_store, catalog, submission)
        assert not isinstance(report, Exception)
        assert all(not c.created for c in report.committed)
        assert fake_github.files == snapshot

    def test_sequential_same_content_writes(self, make_store, fake_github):
        async def scenario():
            async with make_store() as store:
                first = await commit_destination(store, META, b"same", "one")
                second = await commit_destination(store, META, b"same", "two")
                return first, second

        first, second = run(scenario())
        assert first.created is True
        assert second.created is False
        assert first.sha == second.sha

    def test_replace_metadata_discards_previous(self, make_store, catalog, fake_github):
        fake_github.files[META] = b'{"songs": [{"title": "kept?"}], "extra": true}\n'

        async def scenario():
            async with make_store() as store:
                await replace_metadata_document(store, catalog.metadata, MetadataDocument())

        run(scenario())
        assert json.loads(fake_github.files[META]) == {"songs": [], "stats": []}


# ===========================================================================
# Failure handling
# ===========================================================================


class TestFailures:
    def test_conflict_aborts_and_keeps_committed(self, make_store, catalog, fake_github):
        fake_github.fail("PUT", f"{IMAGES}/memory2.jpg", 409)
        submission = Submission(images=_blobs("img", 5, ".jpg"), songs=_blobs("snd", 2, ".mp3"))

        result, sync = _sync(make_store, catalog, submission)

        assert isinstance(result, Conflict)
        assert result.path == f"{IMAGES}/memory2.jpg"
        assert [c.path for c in sync.committed] == [
            META,
            f"{IMAGES}/collage.jpg",
            f"{IMAGES}/memory1.jpg",
        ]
        assert f"{IMAGES}/memory3.jpg" not in fake_github.files
        assert f"{SONGS}/song1.mp3" not in fake_github.files

    def test_transient_read_failure_is_not_treated_as_create(self, make_store, catalog, fake_github):
        fake_github.files[META] = b"{}"
        fake_github.fail("GET", META, 502)

        result, sync = _sync(make_store, catalog, Submission())

        assert isinstance(result, NetworkError)
        assert result.phase == "read"
        assert sync.committed == []
        assert fake_github.files[META] == b"{}"

    def test_error_kind_preserved(self, make_store, catalog, fake_github):
        fake_github.fail("PUT", META, 503)
        result, _ = _sync(make_store, catalog, Submission())
        assert type(result) is NetworkError


# ===========================================================================
# End-to-end scenarios
# ===========================================================================


class TestEndToEnd:
    def test_full_batch_with_short_stats(self, make_store, catalog, fake_github):
        submission = Submission(
            images=_blobs("img", 7, ".jpg"),
            songs=_blobs("snd", 6, ".mp3"),
            song_titles=["A", "B", "C", "D", "E", "F"],
            song_artists=["X", "Y"],
            stat_values=["100", "2021-02-14", "Lisbon"],
        )
        report, _ = _sync(make_store, catalog, submission)

        assert len(report.committed) == 14
        document = json.loads(fake_github.files[META])
        assert len(document["songs"]) == 6
        assert [s["title"] for s in document["songs"]] == ["A", "B", "C", "D", "E", "F"]
        assert [s["artist"] for s in document["songs"]][:3] == ["X", "Y", ""]
        assert len(document["stats"]) == 12
        assert [s["value"] for s in document["stats"][:3]] == ["100", "2021-02-14", "Lisbon"]
        assert all(s["value"] == "" for s in document["stats"][3:])

    def test_stats_only_writes_metadata_only(self, make_store, catalog, fake_github):
        submission = Submission(stat_values=["1", "2"])
        report, _ = _sync(make_store, catalog, submission)

        assert report.paths == [META]
        assert list(fake_github.files) == [META]
        document = json.loads(fake_github.files[META])
        assert all(s == {"title": "", "artist": "", "filename": s["filename"]} for s in document["songs"])
        assert len(document["songs"]) == 6

    def test_excess_uploads_dropped(self, make_store, catalog, fake_github):
        report, _ = _sync(make_store, catalog, Submission(images=_blobs("img", 10, ".jpg")))
        assert len(report.committed) == 1 + 7
        assert fake_github.files[f"{IMAGES}/memory6.jpg"] == b"img-6"

    def test_composed_document_matches_stored(self, make_store, catalog, fake_github):
        submission = Submission(song_titles=["A"], stat_values=["9"])
        _sync(make_store, catalog, submission)
        expected = compose_metadata(["A"], [], ["9"], catalog).to_dict()
        assert json.loads(fake_github.files[META]) == expected

    @pytest.mark.parametrize("count", [0, 3, 6])
    def test_song_destinations_stay_in_catalog(self, make_store, catalog, fake_github, count):
        _sync(make_store, catalog, Submission(songs=_blobs("snd", count, ".mp3")))
        assert set(fake_github.files) <= catalog.all_paths()
