"""Repository for contact form submissions."""
from .collection_repository import CollectionRepository


class ContactRepository(CollectionRepository):
    """Persists contact messages to ``contacts-data.json``.

    Schema::

        {
            "contacts": [
                {
                    "id":        "<hex>",
                    "name":      "<str>",
                    "email":     "<str>",
                    "subject":   "<str>",
                    "message":   "<str>",
                    "read":      <bool>,
                    "createdAt": "<ISO-8601>",
                    "updatedAt": "<ISO-8601>"
                }
            ]
        }
    """

    COLLECTION = 'contacts'
    FILE_NAME = 'contacts-data.json'
