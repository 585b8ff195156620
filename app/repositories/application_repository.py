"""Repository for job applications."""
from .collection_repository import CollectionRepository


class ApplicationRepository(CollectionRepository):
    """Persists job applications to ``applications-data.json``.

    Schema::

        {
            "applications": [
                {
                    "id":         "<hex>",
                    "position":   "<str>",
                    "name":       "<str>",
                    "email":      "<str>",
                    "discord":    "<str>",
                    "portfolio":  "<url>",
                    "experience": "<str>",
                    "answers":    [{"question": "<str>", "answer": "<str>"}],
                    "status":     "pending|reviewing|accepted|rejected",
                    "read":       <bool>,
                    "createdAt":  "<ISO-8601>",
                    "updatedAt":  "<ISO-8601>"
                }
            ]
        }
    """

    COLLECTION = 'applications'
    FILE_NAME = 'applications-data.json'
