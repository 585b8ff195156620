"""Business logic for staff login accounts."""
import logging
from typing import Dict, List, Optional

from switchgames import RESERVED_ADMIN_NAME, hash_password, verify_password

from ..errors import ForbiddenError, NotFoundError, RateLimitError, ValidationError
from ..repositories.account_repository import AccountRepository
from .auth_service import MASTER_ACCOUNT_ID, ROLES, LoginAttemptTracker
from .session_service import SessionStore

logger = logging.getLogger('switchgames.accounts')

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def public_account(account: Dict) -> Dict:
    """Return *account* without its password hash."""
    return {k: v for k, v in account.items() if k != 'passwordHash'}


class AccountService:
    """Creates, updates and deletes staff accounts.

    Passwords are stored as salted Werkzeug hashes.  Changing an account's
    password or role, or deleting it, revokes every session it holds so the
    change takes effect immediately.  Wrong current passwords on a
    self-service change count as failed logins for the caller's address.
    """

    def __init__(self, repository: AccountRepository, sessions: SessionStore,
                 attempts: Optional[LoginAttemptTracker] = None) -> None:
        self._repo = repository
        self._sessions = sessions
        self._attempts = attempts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_role(role) -> str:
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
        return role

    @staticmethod
    def _validate_password(password) -> str:
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        return password

    @staticmethod
    def _validate_username(username) -> str:
        if not isinstance(username, str):
            raise ValidationError('Username required')
        username = username.strip()
        if len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(
                f'Username must be at least {MIN_USERNAME_LENGTH} characters')
        if username.lower() == RESERVED_ADMIN_NAME:
            raise ValidationError(f"'{RESERVED_ADMIN_NAME}' is reserved")
        return username

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_accounts(self) -> List[Dict]:
        return [public_account(a) for a in self._repo.read_all()]

    def create(self, payload: Dict) -> Dict:
        """Create an account from ``{username, password, displayName?, role?}``.

        Returns:
            The stored account without ``passwordHash``.
        """
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object')
        username = self._validate_username(payload.get('username'))
        password = self._validate_password(payload.get('password'))
        role = self._validate_role(payload.get('role', 'editor'))
        display_name = payload.get('displayName') or username
        if not isinstance(display_name, str):
            raise ValidationError('displayName must be a string')

        account = self._repo.create_unique({
            'username': username,
            'passwordHash': hash_password(password),
            'displayName': display_name,
            'role': role,
            'lastLogin': None,
        })
        logger.info('Created %s account %s', role, username)
        return public_account(account)

    def update(self, account_id: str, payload: Dict,
               acting_account_id: Optional[str] = None) -> Dict:
        """Change ``displayName``, ``role`` and/or ``password``.

        A superadmin cannot demote their own account, which would lock them
        out of account management.
        """
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object')
        account = self._repo.find(account_id)
        if account is None:
            raise NotFoundError('Account not found')

        changes: Dict = {}
        revoke = False
        if 'displayName' in payload:
            if not isinstance(payload['displayName'], str) or not payload['displayName'].strip():
                raise ValidationError('displayName must be a non-empty string')
            changes['displayName'] = payload['displayName'].strip()
        if 'role' in payload:
            role = self._validate_role(payload['role'])
            if account_id == acting_account_id and role != account['role']:
                raise ForbiddenError('You cannot change your own role')
            if role != account['role']:
                changes['role'] = role
                revoke = True
        if 'password' in payload:
            changes['passwordHash'] = hash_password(self._validate_password(payload['password']))
            revoke = True

        updated = self._repo.update(account_id, changes)
        if revoke:
            count = self._sessions.revoke_all_for_account(account_id)
            logger.info('Revoked %d session(s) for %s after update', count, account['username'])
        return public_account(updated)

    def change_own_password(self, account_id: str, current: str, new: str,
                            address: str = 'unknown') -> None:
        """Let a signed-in staff member change their password.

        Raises:
            RateLimitError:  too many recent failed logins from *address*.
            ValidationError: master account, wrong current password, or a
                new password that is too short.
        """
        if account_id == MASTER_ACCOUNT_ID:
            raise ValidationError('The master password is set in the server configuration')
        account = self._repo.find(account_id)
        if account is None:
            raise NotFoundError('Account not found')
        if self._attempts is not None and self._attempts.is_blocked(address):
            raise RateLimitError()
        if not verify_password(account.get('passwordHash', ''), current or ''):
            if self._attempts is not None:
                count = self._attempts.record_failure(address)
                logger.warning('Wrong current password for %s from %s (%d in window)',
                               account['username'], address, count)
            raise ValidationError('Current password is incorrect')
        if self._attempts is not None:
            self._attempts.clear(address)
        self._repo.update(account_id, {'passwordHash': hash_password(self._validate_password(new))})
        self._sessions.revoke_all_for_account(account_id)
        logger.info('Password changed for %s', account['username'])

    def delete(self, account_id: str, acting_account_id: Optional[str] = None) -> None:
        if account_id == acting_account_id:
            raise ForbiddenError('You cannot delete your own account')
        try:
            self._repo.delete(account_id)
        except NotFoundError:
            raise NotFoundError('Account not found') from None
        self._sessions.revoke_all_for_account(account_id)
        logger.info('Deleted account %s', account_id)
