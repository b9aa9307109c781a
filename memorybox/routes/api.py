"""
Memory Box Uploader - JSON API Routes

Provides the REST API endpoints for:
- Batch upload (images, songs, song details and stat values) committed to GitHub
- The destination and stat tile catalog the upload form renders from
- The stored metadata document
- GitHub connection status
- Health check
"""

import json
import time
from functools import lru_cache
from pathlib import Path
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from memorybox.auth import require_upload_token
from memorybox.config import (
    ALLOWED_AUDIO_EXTENSIONS,
    ALLOWED_IMAGE_EXTENSIONS,
    APP_VERSION,
    MAX_FILE_SIZE_BYTES,
    MAX_FILE_SIZE_MB,
    StoreConfig,
)
from memorybox.errors import (
    Conflict,
    MemoryBoxError,
    NotFound,
    RateLimited,
    RemoteStoreError,
    UploadTooLarge,
    ValidationError,
)
from memorybox.github import GitHubContentStore
from memorybox.services.metadata import STAT_TILES, parse_text_field
from memorybox.services.slots import DestinationCatalog
from memorybox.services.sync import Submission, SubmissionSync, UploadBlob

router = APIRouter(prefix="/api", tags=["API"])

# Track startup time for health check
_START_TIME = time.time()


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class UploadResult(BaseModel):
    message: str
    committed: List[str]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_store_config() -> StoreConfig:
    return StoreConfig.from_env()


@lru_cache(maxsize=1)
def get_catalog() -> DestinationCatalog:
    return DestinationCatalog.build()


async def get_store(
    config: StoreConfig = Depends(get_store_config),
) -> AsyncIterator[GitHubContentStore]:
    """One client per request; closed when the response is sent."""
    async with GitHubContentStore(config) as store:
        yield store


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _validate_extension(filename: str, allowed: set, field: str) -> str:
    """Validate and return the file extension, raising ValidationError if invalid."""
    ext = Path(filename).suffix.lower()
    if ext not in allowed:
        raise ValidationError(
            f"Invalid file extension for {filename}: {ext or '(none)'}. "
            f"Allowed: {', '.join(sorted(allowed))}",
            field=field,
        )
    return ext


async def _read_uploads(
    files: Optional[List[UploadFile]],
    allowed: set,
    capacity: int,
    field: str,
) -> list[UploadBlob]:
    """Read the uploads that have a destination; the rest are never opened."""
    files = files or []
    if len(files) > capacity:
        logger.warning(
            "⚠️ {} {} uploads received, keeping the first {}",
            len(files),
            field,
            capacity,
        )

    blobs: list[UploadBlob] = []
    for file in files[:capacity]:
        filename = file.filename or ""
        _validate_extension(filename, allowed, field)
        content = await file.read()
        if len(content) > MAX_FILE_SIZE_BYTES:
            raise UploadTooLarge(
                f"{filename} is too large. Maximum size is {MAX_FILE_SIZE_MB}MB.",
                field=field,
            )
        blobs.append(UploadBlob(filename=filename, content=content))
    return blobs


def _status_for(error: MemoryBoxError) -> int:
    if isinstance(error, UploadTooLarge):
        return 413
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, Conflict):
        return 409
    if isinstance(error, RateLimited):
        return 503
    return 502


def _error_response(error: MemoryBoxError, committed: list[str]) -> JSONResponse:
    content = {"error": str(error), "committed": committed}
    if isinstance(error, RemoteStoreError):
        content["error"] = error.describe()
        content["path"] = error.path
        content["phase"] = error.phase
    elif isinstance(error, ValidationError) and error.field:
        content["field"] = error.field
    return JSONResponse(status_code=_status_for(error), content=content)


def _not_configured() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={
            "error": "GitHub is not configured. Set GITHUB_OWNER, GITHUB_REPO, and GITHUB_TOKEN.",
            "committed": [],
        },
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/health")
async def health_check(config: StoreConfig = Depends(get_store_config)):
    """Health check endpoint for the service."""
    return {
        "status": "ok",
        "github_configured": config.is_configured,
        "uptime_seconds": round(time.time() - _START_TIME, 2),
        "version": APP_VERSION,
    }


@router.get("/status")
async def api_status(store: GitHubContentStore = Depends(get_store)):
    """Report whether the configured repository is reachable and writable."""
    return await store.check_connection()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
@router.get("/catalog")
async def api_catalog(catalog: DestinationCatalog = Depends(get_catalog)):
    """Destination filenames and stat tile definitions for the upload form."""
    return {
        "destinations": catalog.to_dict(),
        "song_count": catalog.song_count,
        "stats": [tile.to_dict() for tile in STAT_TILES],
    }


@router.get("/metadata")
async def api_metadata(
    store: GitHubContentStore = Depends(get_store),
    catalog: DestinationCatalog = Depends(get_catalog),
):
    """Return the metadata document currently stored in the repository."""
    if not store.config.is_configured:
        return _not_configured()

    path = catalog.metadata.path
    try:
        remote = await store.read_file(path)
    except RemoteStoreError as e:
        logger.warning("⚠️ Could not read metadata: {}", e.describe())
        return _error_response(e, [])

    try:
        document = json.loads(remote.content.decode("utf-8"))
    except ValueError as e:
        error = RemoteStoreError(
            f"Stored metadata is not valid JSON: {e}", path=path, phase="read"
        )
        return _error_response(error, [])

    return {"path": path, "sha": remote.sha, "metadata": document}


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------
@router.post("/upload", dependencies=[Depends(require_upload_token)])
async def api_upload(
    images: Optional[List[UploadFile]] = File(None),
    songs: Optional[List[UploadFile]] = File(None),
    song_titles: Optional[str] = Form(None, alias="songTitles"),
    song_artists: Optional[str] = Form(None, alias="songArtists"),
    stats_values: Optional[str] = Form(None, alias="statsValues"),
    image_names: Optional[str] = Form(None, alias="imageNames"),
    song_names: Optional[str] = Form(None, alias="songNames"),
    store: GitHubContentStore = Depends(get_store),
    catalog: DestinationCatalog = Depends(get_catalog),
):
    """
    Commit one batch to the repository.

    The metadata document is always rewritten in full; images and songs are
    written to the destinations they map to, by position or by the optional
    ``imageNames`` / ``songNames`` arrays.  A failure stops the batch and the
    response lists what was already committed.
    """
    if not store.config.is_configured:
        return _not_configured()

    try:
        image_blobs = await _read_uploads(
            images, ALLOWED_IMAGE_EXTENSIONS, len(catalog.images), "images"
        )
        song_blobs = await _read_uploads(
            songs, ALLOWED_AUDIO_EXTENSIONS, len(catalog.songs), "songs"
        )
        submission = Submission(
            images=image_blobs,
            songs=song_blobs,
            song_titles=parse_text_field(song_titles, "songTitles"),
            song_artists=parse_text_field(song_artists, "songArtists"),
            stat_values=parse_text_field(stats_values, "statsValues"),
            image_names=parse_text_field(image_names, "imageNames") or None,
            song_names=parse_text_field(song_names, "songNames") or None,
        )
    except ValidationError as e:
        logger.warning("⚠️ Rejected upload: {}", e)
        return _error_response(e, [])

    logger.info(
        "📤 Upload received: {} image(s), {} song(s)", len(image_blobs), len(song_blobs)
    )

    sync = SubmissionSync(store, catalog, submission)
    try:
        report = await sync.run()
    except MemoryBoxError as e:
        return _error_response(e, [c.path for c in sync.committed])

    return UploadResult(
        message="Files uploaded to GitHub successfully.",
        committed=report.paths,
    )
