import logging
import urllib.parse
from typing import Optional

import requests

from config import Settings, load_settings
from errors import RefreshFailure

logger = logging.getLogger(__name__)

AUTH_BASE = "https://accounts.spotify.com/authorize"
TOKEN_URL  = "https://accounts.spotify.com/api/token"

SCOPES = [
    "user-read-email",
    "user-library-modify",
    "playlist-modify-public",
    "playlist-modify-private",
]

_settings = load_settings()


def _creds(settings: Optional[Settings]) -> Settings:
    return settings or _settings


def auth_url(state: str, settings: Optional[Settings] = None) -> str:
    s = _creds(settings)
    params = {
        "client_id": s.spotify_client_id,
        "response_type": "code",
        "redirect_uri": s.spotify_redirect_uri,
        "scope": " ".join(SCOPES),
        "state": state,
        "show_dialog": "true",
    }
    return f"{AUTH_BASE}?{urllib.parse.urlencode(params)}"

def _token_request(data: dict, settings: Optional[Settings]) -> dict:
    s = _creds(settings)
    data = {**data, "client_id": s.spotify_client_id, "client_secret": s.spotify_client_secret}
    headers = {"Content-Type": "application/x-www-form-urlencoded"}
    r = requests.post(TOKEN_URL, headers=headers, data=data, timeout=15)
    if r.status_code != 200:
        logger.warning("token endpoint answered %s for grant_type=%s", r.status_code, data["grant_type"])
    r.raise_for_status()
    return r.json()

def exchange_code_for_token(code: str, settings: Optional[Settings] = None) -> dict:
    s = _creds(settings)
    return _token_request({
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": s.spotify_redirect_uri,
    }, settings)


def refresh_token(refresh_token: str, settings: Optional[Settings] = None) -> dict:
    """
    Trade a refresh token for {access_token, refresh_token?, expires_in}.
    Any transport, HTTP or payload problem comes back as RefreshFailure.
    """
    try:
        tokens = _token_request({"grant_type": "refresh_token", "refresh_token": refresh_token}, settings)
    except requests.RequestException as e:
        status = getattr(getattr(e, "response", None), "status_code", None)
        raise RefreshFailure("Token refresh failed", status_code=status, details=str(e)) from e
    except ValueError as e:
        raise RefreshFailure("Token endpoint returned invalid JSON", details=str(e)) from e
    if not isinstance(tokens, dict) or not tokens.get("access_token"):
        raise RefreshFailure("Token endpoint response missing access_token")
    return tokens
