# sessions.py
import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Dict, Mapping, MutableMapping, Optional

from tokens import CredentialRecord

logger = logging.getLogger(__name__)

SESSION_COOKIE = "itm_session"   # signed by SessionMiddleware
IDENTITY_COOKIE = "itm_user"     # plain subject id, set at login
SESSION_KEY = "sid"


class InMemorySessionStore:
    """Session id -> CredentialRecord, plus a subject index for recovery."""

    def __init__(self):
        self._records: Dict[str, CredentialRecord] = {}
        self._by_subject: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[CredentialRecord]:
        with self._lock:
            return self._records.get(session_id)

    def save(self, session_id: str, record: CredentialRecord) -> None:
        with self._lock:
            self._records[session_id] = record
            self._by_subject[record.subject_id] = session_id

    def delete(self, session_id: str) -> None:
        with self._lock:
            record = self._records.pop(session_id, None)
            if record and self._by_subject.get(record.subject_id) == session_id:
                del self._by_subject[record.subject_id]

    def session_for_subject(self, subject_id: str) -> Optional[str]:
        with self._lock:
            return self._by_subject.get(subject_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


@dataclass
class ResolvedSession:
    session_id: str
    credentials: CredentialRecord
    recovered: bool = False


class SessionContinuity:
    """
    Two-tier lookup from an inbound request to its credentials.

    1. the session id from the signed session cookie
    2. otherwise the subject id in the identity cookie written at login; if
       the store still has a record for that subject a new session id is
       minted for it, so the browser does not have to log in again.

    The identity cookie is not signed, anyone who knows a subject id can
    present it. Kept as is on purpose, see DESIGN.md.
    """

    def __init__(self, store: InMemorySessionStore):
        self.store = store

    def login(self, session: MutableMapping, record: CredentialRecord) -> str:
        old = session.get(SESSION_KEY)
        if old:
            self.store.delete(old)
        sid = new_session_id()
        self.store.save(sid, record)
        session[SESSION_KEY] = sid
        return sid

    def logout(self, session: MutableMapping, cookies: Mapping[str, str]) -> None:
        sid = session.get(SESSION_KEY)
        if sid:
            self.store.delete(sid)
        subject = cookies.get(IDENTITY_COOKIE)
        if subject:
            # the identity cookie may point at a session other than this one
            other = self.store.session_for_subject(subject)
            if other:
                self.store.delete(other)
        session.clear()

    def resolve(self, session: MutableMapping, cookies: Mapping[str, str]) -> Optional[ResolvedSession]:
        sid = session.get(SESSION_KEY)
        if sid:
            record = self.store.get(sid)
            if record is not None:
                return ResolvedSession(sid, record)
            logger.info("session id from cookie is unknown to the store")

        subject = cookies.get(IDENTITY_COOKIE)
        if not subject:
            return None
        old_sid = self.store.session_for_subject(subject)
        record = self.store.get(old_sid) if old_sid else None
        if record is None:
            return None

        new_sid = new_session_id()
        self.store.delete(old_sid)
        self.store.save(new_sid, record)
        session[SESSION_KEY] = new_sid
        logger.info("recovered session for %s from identity cookie", subject)
        return ResolvedSession(new_sid, record, recovered=True)
