"""Repository for staff login accounts."""
from typing import Dict, Optional

from ..errors import ValidationError
from .collection_repository import CollectionRepository


class AccountRepository(CollectionRepository):
    """Persists staff accounts to ``staff-accounts.json``.

    Schema::

        {
            "accounts": [
                {
                    "id":           "<hex>",
                    "username":     "<str>",
                    "passwordHash": "<werkzeug hash>",
                    "displayName":  "<str>",
                    "role":         "superadmin|admin|moderator|editor",
                    "lastLogin":    "<ISO-8601|null>",
                    "createdAt":    "<ISO-8601>",
                    "updatedAt":    "<ISO-8601>"
                }
            ]
        }
    """

    COLLECTION = 'accounts'
    FILE_NAME = 'staff-accounts.json'

    def find_by_username(self, username: str) -> Optional[Dict]:
        """Case-insensitive username lookup."""
        wanted = (username or '').strip().lower()
        if not wanted:
            return None
        for account in self.read_all():
            if str(account.get('username', '')).lower() == wanted:
                return account
        return None

    def create_unique(self, fields: Dict) -> Dict:
        """Store a new account unless its username is already taken.

        The lookup and the insert run under one hold of the repository lock.

        Raises:
            ValidationError: another account has the same username, ignoring case.
        """
        with self._lock:
            if self.find_by_username(fields.get('username', '')):
                raise ValidationError('Username already exists')
            return self.create(fields)
