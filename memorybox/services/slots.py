"""
Memory Box Uploader - Destination Catalog & Slot Mapping

Every file the uploader may ever write has a fixed repository path known at
startup: 7 images, 6 songs and one metadata document.  Uploaded blobs are
paired with those destinations either by position (the form's default) or
by explicit filename.  In both cases capacity is fixed: extra blobs are
dropped, and destinations without a blob are left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Generic, Sequence, TypeVar

from loguru import logger

from memorybox.config import (
    CONTENT_ROOT,
    IMAGE_FILENAMES,
    METADATA_FILENAME,
    SONG_FILENAMES,
)
from memorybox.errors import ValidationError

T = TypeVar("T")


class DestinationKind(str, Enum):
    IMAGE = "image"
    SONG = "song"
    METADATA = "metadata"


@dataclass(frozen=True)
class Destination:
    """A fixed repository path holding exactly one content item."""

    path: str
    kind: DestinationKind
    filename: str


@dataclass(frozen=True)
class MappedSlot(Generic[T]):
    """An upload paired with the destination it will be written to."""

    index: int
    destination: Destination
    blob: T


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
_SUBDIRS = {
    DestinationKind.IMAGE: "images",
    DestinationKind.SONG: "songs",
}


@dataclass(frozen=True)
class DestinationCatalog:
    """The complete, ordered set of destinations for one content root."""

    images: tuple[Destination, ...]
    songs: tuple[Destination, ...]
    metadata: Destination

    @classmethod
    def build(
        cls,
        root: str = CONTENT_ROOT,
        image_filenames: Sequence[str] = IMAGE_FILENAMES,
        song_filenames: Sequence[str] = SONG_FILENAMES,
        metadata_filename: str = METADATA_FILENAME,
    ) -> "DestinationCatalog":
        base = PurePosixPath(root.strip("/"))

        def _dest(kind: DestinationKind, name: str) -> Destination:
            return Destination(str(base / _SUBDIRS[kind] / name), kind, name)

        return cls(
            images=tuple(_dest(DestinationKind.IMAGE, n) for n in image_filenames),
            songs=tuple(_dest(DestinationKind.SONG, n) for n in song_filenames),
            metadata=Destination(
                str(base / metadata_filename), DestinationKind.METADATA, metadata_filename
            ),
        )

    def for_kind(self, kind: DestinationKind) -> tuple[Destination, ...]:
        if kind is DestinationKind.IMAGE:
            return self.images
        if kind is DestinationKind.SONG:
            return self.songs
        return (self.metadata,)

    @property
    def song_count(self) -> int:
        return len(self.songs)

    def all_paths(self) -> set[str]:
        return {d.path for d in (*self.images, *self.songs, self.metadata)}

    def to_dict(self) -> dict[str, list[str] | str]:
        return {
            "images": [d.filename for d in self.images],
            "songs": [d.filename for d in self.songs],
            "metadata": self.metadata.filename,
        }


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------
def map_slots(
    kind: DestinationKind,
    blobs: Sequence[T],
    catalog: DestinationCatalog,
) -> list[MappedSlot[T]]:
    """
    Pair blob *i* with destination *i* of *kind*, in input order.

    Blobs beyond the catalog capacity are dropped; destinations beyond the
    number of blobs are simply not part of the result.
    """
    destinations = catalog.for_kind(kind)
    if len(blobs) > len(destinations):
        logger.warning(
            "⚠️ {} {} uploads received, keeping the first {}",
            len(blobs),
            kind.value,
            len(destinations),
        )
    return [
        MappedSlot(index=i, destination=dest, blob=blob)
        for i, (dest, blob) in enumerate(zip(destinations, blobs))
    ]


def map_named_slots(
    kind: DestinationKind,
    names: Sequence[str],
    blobs: Sequence[T],
    catalog: DestinationCatalog,
) -> list[MappedSlot[T]]:
    """
    Pair each blob with the destination filename given at the same position.

    The result is ordered by catalog position, not input order.  Unknown or
    repeated names are rejected; the same capacity limit as :func:`map_slots`
    applies to the number of blobs considered.
    """
    destinations = catalog.for_kind(kind)
    by_name = {d.filename: (i, d) for i, d in enumerate(destinations)}

    if len(names) < min(len(blobs), len(destinations)):
        raise ValidationError(
            f"{len(blobs)} {kind.value} uploads but only {len(names)} target names",
            field=f"{kind.value}Names",
        )
    if len(blobs) > len(destinations):
        logger.warning(
            "⚠️ {} {} uploads received, keeping the first {}",
            len(blobs),
            kind.value,
            len(destinations),
        )

    mapped: dict[int, MappedSlot[T]] = {}
    for name, blob in zip(names, blobs[: len(destinations)]):
        if name not in by_name:
            raise ValidationError(
                f"Unknown {kind.value} destination: {name!r}", field=f"{kind.value}Names"
            )
        index, dest = by_name[name]
        if index in mapped:
            raise ValidationError(
                f"Duplicate {kind.value} destination: {name!r}", field=f"{kind.value}Names"
            )
        mapped[index] = MappedSlot(index=index, destination=dest, blob=blob)

    return [mapped[i] for i in sorted(mapped)]
