# tokens.py
# OAuth credential record and the access-token refresh policy.
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from errors import RefreshFailure

logger = logging.getLogger(__name__)

# refresh once we are this close to the provider's expiry
REFRESH_LEEWAY = 5 * 60
DEFAULT_LIFETIME = 3600


@dataclass
class CredentialRecord:
    subject_id: str
    display_name: str
    access_token: str
    expires_at: float
    email: Optional[str] = None
    refresh_token: Optional[str] = None

    @classmethod
    def from_login(cls, profile: dict, tokens: dict, now: Optional[float] = None) -> "CredentialRecord":
        now = time.time() if now is None else now
        return cls(
            subject_id=profile["id"],
            display_name=profile.get("display_name") or profile["id"],
            email=profile.get("email"),
            access_token=tokens["access_token"],
            refresh_token=tokens.get("refresh_token"),
            expires_at=now + int(tokens.get("expires_in", DEFAULT_LIFETIME)),
        )

    def public_profile(self) -> dict:
        return {"id": self.subject_id, "displayName": self.display_name, "email": self.email}


class TokenState(enum.Enum):
    VALID = "valid"
    EXPIRING = "expiring"


class TokenLifecycleManager:
    """
    Keeps a session's access token fresh.

    Every authenticated request calls `ensure_fresh_token`. A record within
    REFRESH_LEEWAY of `expires_at` is EXPIRING and gets one refresh attempt.
    When there is no refresh token or the exchange fails the record comes back
    untouched and the request carries on with the old token (fail-open); a
    truly dead token then shows up as the music service's own 401.

    On success the record is updated in place and written back to the session
    store before returning.
    """

    def __init__(self, refresh: Callable[[str], dict], store=None,
                 clock: Callable[[], float] = time.time, leeway: float = REFRESH_LEEWAY):
        self.refresh = refresh
        self.store = store
        self.clock = clock
        self.leeway = leeway

    def state(self, record: CredentialRecord) -> TokenState:
        if self.clock() >= record.expires_at - self.leeway:
            return TokenState.EXPIRING
        return TokenState.VALID

    def ensure_fresh_token(self, record: CredentialRecord, session_id: Optional[str] = None) -> CredentialRecord:
        if self.state(record) is TokenState.VALID:
            return record
        if not record.refresh_token:
            logger.info("token for %s is expiring but there is no refresh token; using it as is", record.subject_id)
            return record

        # nothing on the record changes until the whole response has been read
        try:
            tokens = self.refresh(record.refresh_token)
            access_token = tokens["access_token"]
            if not access_token:
                raise RefreshFailure("Token endpoint response missing access_token")
            refresh_token = tokens.get("refresh_token") or record.refresh_token
            expires_at = self.clock() + int(tokens.get("expires_in", DEFAULT_LIFETIME))
        except RefreshFailure as e:
            logger.warning("token refresh failed for %s (%s); continuing with stale token", record.subject_id, e.message)
            return record
        except Exception as e:
            logger.warning("token refresh failed for %s (%r); continuing with stale token", record.subject_id, e)
            return record

        record.access_token = access_token
        record.refresh_token = refresh_token
        record.expires_at = expires_at
        logger.info("refreshed access token for %s", record.subject_id)

        if self.store is not None and session_id:
            try:
                self.store.save(session_id, record)
            except Exception:
                logger.exception("could not persist refreshed token for session of %s", record.subject_id)
        return record
