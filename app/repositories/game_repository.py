"""Repository for game records shown on the games page."""
from .collection_repository import CollectionRepository


class GameRepository(CollectionRepository):
    """Persists games to ``games-data.json``.

    Schema::

        {
            "games": [
                {
                    "id":         "<hex>",
                    "placeId":    "<str>",
                    "universeId": "<str, empty until resolved>",
                    "name":       "<str>",
                    "thumbnail":  "<url>",
                    "featured":   <bool>,
                    "active":     <bool>,
                    "createdAt":  "<ISO-8601>",
                    "updatedAt":  "<ISO-8601>"
                }
            ]
        }
    """

    COLLECTION = 'games'
    FILE_NAME = 'games-data.json'
