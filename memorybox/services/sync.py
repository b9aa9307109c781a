"""
Memory Box Uploader - Submission Sync

Commits one submission into the repository:

1. Compose and serialize the metadata document, then replace it in full.
2. Write every mapped image, in catalog order.
3. Write every mapped song, in catalog order.

Destinations are written one after another.  Each write resolves the
destination's current sha immediately before writing it, so the sha is never
reused across writes or requests.  The first failure stops the run and is
re-raised as-is; writes that already landed stay committed and are listed
in :attr:`SubmissionSync.committed`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from loguru import logger

from memorybox.errors import MemoryBoxError
from memorybox.github import CommitResult
from memorybox.services.metadata import (
    MetadataDocument,
    compose_metadata,
    serialize_metadata,
)
from memorybox.services.slots import (
    Destination,
    DestinationCatalog,
    DestinationKind,
    MappedSlot,
    map_named_slots,
    map_slots,
)


class ContentStore(Protocol):
    async def resolve_revision(self, path: str) -> str | None: ...

    async def write(
        self, path: str, content: bytes, message: str, revision: str | None
    ) -> CommitResult: ...


@dataclass
class UploadBlob:
    """One uploaded file held in memory for the duration of a request."""

    filename: str
    content: bytes


@dataclass
class Submission:
    images: list[UploadBlob] = field(default_factory=list)
    songs: list[UploadBlob] = field(default_factory=list)
    song_titles: list[str] = field(default_factory=list)
    song_artists: list[str] = field(default_factory=list)
    stat_values: list[str] = field(default_factory=list)
    # Explicit target filenames, parallel to images / songs
    image_names: list[str] | None = None
    song_names: list[str] | None = None


@dataclass
class SyncReport:
    committed: list[CommitResult]

    @property
    def paths(self) -> list[str]:
        return [c.path for c in self.committed]


async def commit_destination(
    store: ContentStore, path: str, content: bytes, message: str
) -> CommitResult:
    """Resolve the current revision of *path* and write *content* over it."""
    revision = await store.resolve_revision(path)
    return await store.write(path, content, message, revision)


async def replace_metadata_document(
    store: ContentStore, destination: Destination, document: MetadataDocument
) -> CommitResult:
    """
    Overwrite the stored metadata document with *document*.

    This is a full replace: values present in the stored copy but not in
    *document* are discarded.
    """
    return await commit_destination(
        store,
        destination.path,
        serialize_metadata(document),
        f"Replace metadata {destination.filename}",
    )


def _map(
    kind: DestinationKind,
    blobs: Sequence[UploadBlob],
    names: Sequence[str] | None,
    catalog: DestinationCatalog,
) -> list[MappedSlot[UploadBlob]]:
    if names:
        return map_named_slots(kind, names, blobs, catalog)
    return map_slots(kind, blobs, catalog)


class SubmissionSync:
    """Runs the writes for a single submission against a content store."""

    def __init__(
        self,
        store: ContentStore,
        catalog: DestinationCatalog,
        submission: Submission,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.submission = submission
        self.committed: list[CommitResult] = []

    def plan(self) -> list[MappedSlot[UploadBlob]]:
        """Return the mapped image slots followed by the mapped song slots."""
        sub = self.submission
        images = _map(DestinationKind.IMAGE, sub.images, sub.image_names, self.catalog)
        songs = _map(DestinationKind.SONG, sub.songs, sub.song_names, self.catalog)
        return [*images, *songs]

    async def run(self) -> SyncReport:
        sub = self.submission
        # Map first so a bad target name fails before anything is written
        slots = self.plan()

        document = compose_metadata(
            sub.song_titles, sub.song_artists, sub.stat_values, self.catalog
        )

        logger.info(
            "🔄 Syncing submission: metadata + {} file(s)",
            len(slots),
        )

        destination = self.catalog.metadata
        try:
            self.committed.append(
                await replace_metadata_document(self.store, destination, document)
            )
            for slot in slots:
                destination = slot.destination
                result = await commit_destination(
                    self.store,
                    destination.path,
                    slot.blob.content,
                    f"Add/update {destination.kind.value} {destination.filename}",
                )
                self.committed.append(result)
        except MemoryBoxError as e:
            logger.error(
                "❌ Sync aborted at {} after {} committed write(s): {}",
                destination.path,
                len(self.committed),
                e,
            )
            raise

        logger.success("✅ Submission synced ({} writes)", len(self.committed))
        return SyncReport(committed=list(self.committed))
