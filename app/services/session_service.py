"""In-memory admin sessions keyed by opaque token."""
import secrets
import threading
import time
from typing import Callable, Dict, Optional

DEFAULT_TTL_SECONDS = 8 * 60 * 60


class SessionStore:
    """Maps admin tokens to session metadata.

    Sessions live only in memory; a restart logs everyone out.  Expired
    sessions are evicted lazily by :meth:`validate` and in bulk by
    :meth:`purge_expired`.

    Each session is a dict::

        {
            "token":       "<64 hex chars>",
            "role":        "superadmin|admin|moderator|editor",
            "accountId":   "<account id or 'master'>",
            "displayName": "<str>",
            "createdAt":   <epoch seconds>,
            "expiresAt":   <epoch seconds>
        }
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.time) -> None:
        """
        Args:
            ttl_seconds: Session lifetime.
            clock:       Zero-argument callable returning the current epoch
                         time; tests pass a fake clock.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(self, role: str, account_id: str, display_name: str = '') -> str:
        """Open a new session and return its token."""
        token = secrets.token_hex(32)
        now = self._clock()
        session = {
            'token': token,
            'role': role,
            'accountId': account_id,
            'displayName': display_name,
            'createdAt': now,
            'expiresAt': now + self.ttl_seconds,
        }
        with self._lock:
            self._sessions[token] = session
        return token

    def validate(self, token: Optional[str]) -> Optional[Dict]:
        """Return a copy of the session for *token*, or ``None``.

        An expired session is removed before returning ``None``.
        """
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if self._clock() > session['expiresAt']:
                del self._sessions[token]
                return None
            return dict(session)

    def revoke(self, token: Optional[str]) -> bool:
        """Drop one session.  Returns ``True`` if it existed."""
        if not token:
            return False
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def revoke_all_for_account(self, account_id: str) -> int:
        """Drop every session belonging to *account_id*; returns how many."""
        with self._lock:
            tokens = [t for t, s in self._sessions.items() if s['accountId'] == account_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if now > s['expiresAt']]
            for token in expired:
                del self._sessions[token]
        return len(expired)
