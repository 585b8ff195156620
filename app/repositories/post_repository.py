"""Repository for blog posts."""
from .collection_repository import CollectionRepository


class PostRepository(CollectionRepository):
    """Persists blog posts to ``blog-posts.json``.

    Schema::

        {
            "posts": [
                {
                    "id":         "<hex>",
                    "title":      "<str>",
                    "content":    "<str>",
                    "excerpt":    "<str>",
                    "coverImage": "<url>",
                    "author":     "<str>",
                    "published":  <bool>,
                    "createdAt":  "<ISO-8601>",
                    "updatedAt":  "<ISO-8601>"
                }
            ]
        }
    """

    COLLECTION = 'posts'
    FILE_NAME = 'blog-posts.json'
