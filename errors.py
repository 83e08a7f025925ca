# errors.py
from typing import Optional

import requests


class ImageToMusicError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InputError(ImageToMusicError):
    """Missing or malformed request data. Never retried."""
    status_code = 400


class AuthenticationRequired(ImageToMusicError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated with Spotify"):
        super().__init__(message)


class UpstreamError(ImageToMusicError):
    """A vision, LLM or music-service call failed; carries the upstream status when known."""
    status_code = 502


class RefreshFailure(ImageToMusicError):
    """The refresh-token exchange failed. Logged and swallowed by the token manager."""
    status_code = 502


def _upstream_message(resp) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:300] or None
    if not isinstance(body, dict):
        return None
    err = body.get("error")
    if isinstance(err, dict):
        return err.get("message")
    # accounts service style: {"error": "invalid_grant", "error_description": "..."}
    return body.get("error_description") or (err if isinstance(err, str) else None)


def upstream_error_from(exc: requests.RequestException, message: str = "Upstream request failed") -> UpstreamError:
    resp = getattr(exc, "response", None)
    if resp is None:
        return UpstreamError(message, details=str(exc))
    return UpstreamError(message, status_code=resp.status_code, details=_upstream_message(resp) or str(exc))
