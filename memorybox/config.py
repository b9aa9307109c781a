"""
Memory Box Uploader - Configuration
All settings loaded from environment variables with sensible defaults.

The service is stateless: every submission is committed straight into a
GitHub repository through the contents API, and nothing about the stored
files is cached locally between requests.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8000"))
APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# ---------------------------------------------------------------------------
# Logging (stdout only)
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# GitHub contents API
# ---------------------------------------------------------------------------
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", os.getenv("GITHUB_PAT", ""))
GITHUB_OWNER = os.getenv("GITHUB_OWNER", "")
GITHUB_REPO = os.getenv("GITHUB_REPO", "")
GITHUB_BRANCH = os.getenv("GITHUB_BRANCH", "main")
GITHUB_TIMEOUT = float(os.getenv("GITHUB_TIMEOUT", "60"))
# Optional committer identity; GitHub uses the token owner when unset
GITHUB_COMMITTER_NAME = os.getenv("GITHUB_COMMITTER_NAME", "")
GITHUB_COMMITTER_EMAIL = os.getenv("GITHUB_COMMITTER_EMAIL", "")

# ---------------------------------------------------------------------------
# Content layout inside the repository
# ---------------------------------------------------------------------------
CONTENT_ROOT = os.getenv("CONTENT_ROOT", "public/files/database")
METADATA_FILENAME = os.getenv("METADATA_FILENAME", "data.json")

IMAGE_FILENAMES = (
    "collage.jpg",
    "memory1.jpg",
    "memory2.jpg",
    "memory3.jpg",
    "memory4.jpg",
    "memory5.jpg",
    "memory6.jpg",
)

SONG_FILENAMES = (
    "song1.mp3",
    "song2.mp3",
    "song3.mp3",
    "song4.mp3",
    "song5.mp3",
    "song6.mp3",
)

# ---------------------------------------------------------------------------
# Upload limits
# ---------------------------------------------------------------------------
# The contents API rejects blobs above 100 MB
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "50"))
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

ALLOWED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_AUDIO_EXTENSIONS = {".mp3", ".ogg", ".wav", ".m4a", ".aac"}

# ---------------------------------------------------------------------------
# Authentication (optional single-operator upload token)
# ---------------------------------------------------------------------------
UPLOAD_TOKEN = os.getenv("UPLOAD_TOKEN", "")


@dataclass(frozen=True)
class StoreConfig:
    """Immutable connection settings for the remote content store.

    Built once at startup and handed to the client explicitly.
    """

    owner: str
    repo: str
    token: str
    branch: str = "main"
    api_url: str = "https://api.github.com"
    timeout: float = 60.0
    committer_name: str = ""
    committer_email: str = ""

    @classmethod
    def from_env(cls) -> "StoreConfig":
        return cls(
            owner=GITHUB_OWNER,
            repo=GITHUB_REPO,
            token=GITHUB_TOKEN,
            branch=GITHUB_BRANCH,
            api_url=GITHUB_API_URL,
            timeout=GITHUB_TIMEOUT,
            committer_name=GITHUB_COMMITTER_NAME,
            committer_email=GITHUB_COMMITTER_EMAIL,
        )

    @property
    def is_configured(self) -> bool:
        """Return True if owner, repository and token are all set."""
        return bool(self.owner and self.repo and self.token)

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"
