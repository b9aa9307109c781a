"""
Memory Box Uploader - Upload Token Auth

Single-operator protection for the upload endpoint.  When UPLOAD_TOKEN is
set, requests must present it either as ``Authorization: Bearer <token>``
or in an ``X-Upload-Token`` header.  With no token configured the endpoint
is open (local development).
"""

import hmac

from fastapi import HTTPException, Request

from memorybox.config import UPLOAD_TOKEN


def _presented_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return request.headers.get("x-upload-token", "").strip()


def verify_token(presented: str, expected: str | None = None) -> bool:
    """Constant-time comparison of a presented token against the configured one."""
    expected = UPLOAD_TOKEN if expected is None else expected
    if not expected:
        return True
    if not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def require_upload_token(request: Request) -> None:
    """FastAPI dependency guarding write endpoints."""
    if not verify_token(_presented_token(request)):
        raise HTTPException(status_code=401, detail="Authentication required")
