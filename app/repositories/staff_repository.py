"""Repository for the public team page."""
from .collection_repository import CollectionRepository


class StaffRepository(CollectionRepository):
    """Persists staff members (not login accounts) to ``staff-data.json``.

    Schema::

        {
            "staff": [
                {
                    "id":        "<hex>",
                    "name":      "<str>",
                    "title":     "<str>",
                    "avatar":    "<url>",
                    "bio":       "<str>",
                    "socials":   {"<network>": "<url>"},
                    "order":     <int>,
                    "active":    <bool>,
                    "createdAt": "<ISO-8601>",
                    "updatedAt": "<ISO-8601>"
                }
            ]
        }
    """

    COLLECTION = 'staff'
    FILE_NAME = 'staff-data.json'
