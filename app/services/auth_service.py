"""Admin login: credential checks, brute-force guard and role ranks."""
import logging
import threading
import time
from typing import Callable, Dict, List, NamedTuple, Optional

from switchgames import RESERVED_ADMIN_NAME, verify_password

from ..errors import AuthError, PersistenceError, RateLimitError, ValidationError
from ..repositories.account_repository import AccountRepository
from ..repositories.collection_repository import utc_now_iso
from .session_service import SessionStore

logger = logging.getLogger('switchgames.auth')

MASTER_ACCOUNT_ID = 'master'

# Highest first.
ROLES = ('superadmin', 'admin', 'moderator', 'editor')
_ROLE_RANK = {name: rank for rank, name in enumerate(reversed(ROLES))}


def role_allows(role: Optional[str], minimum: str) -> bool:
    """Return ``True`` if *role* is at least as privileged as *minimum*."""
    if role not in _ROLE_RANK:
        return False
    return _ROLE_RANK[role] >= _ROLE_RANK[minimum]


class LoginAttemptTracker:
    """Counts failed logins per source address in a sliding window.

    Once an address has ``max_attempts`` failures inside ``window_seconds``
    it is blocked until the oldest failure ages out.  A successful login
    clears the address.
    """

    def __init__(self, max_attempts: int = 10, window_seconds: float = 15 * 60,
                 clock: Callable[[], float] = time.time) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._failures: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._failures)

    def _prune(self, address: str, now: float) -> List[float]:
        cutoff = now - self.window_seconds
        recent = [t for t in self._failures.get(address, []) if t > cutoff]
        if recent:
            self._failures[address] = recent
        else:
            self._failures.pop(address, None)
        return recent

    def is_blocked(self, address: str) -> bool:
        with self._lock:
            return len(self._prune(address, self._clock())) >= self.max_attempts

    def failures(self, address: str) -> int:
        with self._lock:
            return len(self._prune(address, self._clock()))

    def record_failure(self, address: str) -> int:
        """Record one failure and return the count inside the window."""
        now = self._clock()
        with self._lock:
            recent = self._prune(address, now)
            recent.append(now)
            self._failures[address] = recent
            return len(recent)

    def clear(self, address: str) -> None:
        with self._lock:
            self._failures.pop(address, None)

    def purge_expired(self) -> int:
        """Forget addresses whose failures have all left the window; returns how many."""
        now = self._clock()
        with self._lock:
            before = len(self._failures)
            for address in list(self._failures):
                self._prune(address, now)
            return before - len(self._failures)


class LoginResult(NamedTuple):
    token: str
    role: str
    display_name: str
    account_id: str


class CredentialVerifier:
    """Checks admin credentials and opens sessions.

    The master password (``admin_password_hash`` in the config) logs in as
    ``superadmin``.  Staff accounts log in with their own username and
    password.
    """

    def __init__(self, sessions: SessionStore, accounts: AccountRepository,
                 attempts: LoginAttemptTracker, master_hash: str = '') -> None:
        self._sessions = sessions
        self._accounts = accounts
        self._attempts = attempts
        self._master_hash = master_hash or ''

    def _check_master(self, password: str) -> bool:
        return bool(self._master_hash) and verify_password(self._master_hash, password)

    def login(self, username: Optional[str], password: Optional[str],
              address: str = 'unknown') -> LoginResult:
        """Authenticate and return a new session.

        Raises:
            ValidationError: no password supplied.
            RateLimitError:  too many recent failures from *address*.
            AuthError:       wrong username or password.
        """
        self._sessions.purge_expired()
        self._attempts.purge_expired()
        if not password:
            raise ValidationError('Password required')
        if self._attempts.is_blocked(address):
            logger.warning('Login blocked for %s: too many failed attempts', address)
            raise RateLimitError()

        username = (username or '').strip()
        if not username or username.lower() == RESERVED_ADMIN_NAME:
            if self._check_master(password):
                self._attempts.clear(address)
                token = self._sessions.create('superadmin', MASTER_ACCOUNT_ID, 'Administrator')
                logger.info('Master admin logged in from %s', address)
                return LoginResult(token, 'superadmin', 'Administrator', MASTER_ACCOUNT_ID)

        account = self._accounts.find_by_username(username) if username else None
        if account and verify_password(account.get('passwordHash', ''), password):
            self._attempts.clear(address)
            display_name = account.get('displayName') or account['username']
            token = self._sessions.create(account['role'], account['id'], display_name)
            try:
                self._accounts.update(account['id'], {'lastLogin': utc_now_iso()})
            except PersistenceError:
                logger.warning('Could not record last login for %s', account['username'])
            logger.info('Staff account %s logged in from %s', account['username'], address)
            return LoginResult(token, account['role'], display_name, account['id'])

        count = self._attempts.record_failure(address)
        logger.warning('Failed login for %r from %s (%d in window)',
                       username or RESERVED_ADMIN_NAME, address, count)
        raise AuthError('Invalid credentials')

    def logout(self, token: Optional[str]) -> bool:
        return self._sessions.revoke(token)
