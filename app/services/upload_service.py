"""Image uploads for post covers, game thumbnails and staff avatars."""
import logging
import os
import secrets

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..errors import PersistenceError, ValidationError

logger = logging.getLogger('switchgames.uploads')

DEFAULT_MAX_BYTES = 5 * 1024 * 1024


class UploadService:
    """Validates and stores uploaded images under random file names."""

    def __init__(self, uploads_dir: str, max_bytes: int = DEFAULT_MAX_BYTES,
                 url_prefix: str = '/uploads') -> None:
        self.uploads_dir = uploads_dir
        self.max_bytes = max_bytes
        self.url_prefix = url_prefix.rstrip('/')

    @staticmethod
    def _size(upload: FileStorage) -> int:
        stream = upload.stream
        position = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(position)
        return size

    def save_image(self, upload: FileStorage) -> str:
        """Store *upload* and return its public URL.

        Raises:
            ValidationError:  no file, not an image, or larger than the limit.
            PersistenceError: the file could not be written.
        """
        if upload is None or not upload.filename:
            raise ValidationError('No file uploaded')
        if not (upload.mimetype or '').startswith('image/'):
            raise ValidationError('Only images allowed')
        if self._size(upload) > self.max_bytes:
            raise ValidationError('File too large')

        extension = os.path.splitext(secure_filename(upload.filename))[1].lower()
        name = f'{secrets.token_hex(8)}{extension}'
        try:
            os.makedirs(self.uploads_dir, exist_ok=True)
            upload.save(os.path.join(self.uploads_dir, name))
        except OSError as exc:
            logger.error('Could not store upload %s: %s', name, exc)
            raise PersistenceError('Failed to store file') from exc
        logger.info('Stored upload %s (%s)', name, upload.mimetype)
        return f'{self.url_prefix}/{name}'
