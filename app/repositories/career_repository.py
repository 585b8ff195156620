"""Repository for job openings."""
from .collection_repository import CollectionRepository


class CareerRepository(CollectionRepository):
    """Persists careers to ``careers-data.json``.

    Schema::

        {
            "careers": [
                {
                    "id":           "<hex>",
                    "title":        "<str>",
                    "department":   "<str>",
                    "type":         "<str>",
                    "location":     "<str>",
                    "description":  "<str>",
                    "requirements": ["<str>", ...],
                    "niceToHave":   ["<str>", ...],
                    "questions":    ["<str>", ...],
                    "active":       <bool>,
                    "createdAt":    "<ISO-8601>",
                    "updatedAt":    "<ISO-8601>"
                }
            ]
        }
    """

    COLLECTION = 'careers'
    FILE_NAME = 'careers-data.json'
