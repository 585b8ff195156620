"""Business logic for the site's content collections.

Every collection shares the same life cycle (create with defaults, update
through an allow-list of fields, delete) and differs only in its field
table, so :class:`ResourceService` implements it once and the concrete
services below just declare their fields.
"""
import copy
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import NotFoundError, ValidationError
from ..repositories.collection_repository import CollectionRepository


class ResourceService:
    """CRUD rules for one collection.

    Sub-classes set:

    * ``SINGULAR``   – name used in response keys and messages.
    * ``FIELDS``     – ``{field: (type, default)}``; the only fields a client
      may ever set.
    * ``REQUIRED``   – fields that must be present and non-empty on create.
    * ``PATCHABLE``  – fields an update may change (defaults to all FIELDS).
    * ``PUBLIC_FLAG`` – boolean field that must be true for public listing.
    """

    SINGULAR = 'record'
    FIELDS: Dict[str, Tuple[Any, Any]] = {}
    REQUIRED: Tuple[str, ...] = ()
    PATCHABLE: Optional[Tuple[str, ...]] = None
    PUBLIC_FLAG: Optional[str] = None
    REQUIRED_MESSAGE: Optional[str] = None

    def __init__(self, repository: CollectionRepository) -> None:
        self._repo = repository

    @property
    def repository(self) -> CollectionRepository:
        return self._repo

    @property
    def collection(self) -> str:
        return self._repo.collection

    @property
    def patchable(self) -> Tuple[str, ...]:
        return self.PATCHABLE if self.PATCHABLE is not None else tuple(self.FIELDS)

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _coerce(self, field: str, value: Any) -> Any:
        """Hook for per-field conversions before type checking."""
        return value

    def _check_type(self, field: str, value: Any) -> Any:
        expected = self.FIELDS[field][0]
        value = self._coerce(field, value)
        if value is None and field not in self.REQUIRED:
            return copy.deepcopy(self.FIELDS[field][1])
        if expected is int and isinstance(value, bool):
            raise ValidationError(f'{field} must be a number')
        if not isinstance(value, expected):
            raise ValidationError(f'{field} must be {_type_label(expected)}')
        return value

    def _clean(self, payload: Dict, allowed: Iterable[str]) -> Dict:
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object')
        return {
            field: self._check_type(field, payload[field])
            for field in allowed if field in payload
        }

    def _require(self, fields: Dict, only_present: bool = False) -> None:
        for field in self.REQUIRED:
            if only_present and field not in fields:
                continue
            value = fields.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(self.REQUIRED_MESSAGE or f'{field.capitalize()} required')

    def _prepare_new(self, fields: Dict, context: Dict) -> Dict:
        """Hook run after defaults are applied and before the record is stored."""
        return fields

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_all(self) -> List[Dict]:
        return self._repo.read_all()

    def list_public(self) -> List[Dict]:
        records = self._repo.read_all()
        if self.PUBLIC_FLAG is None:
            return records
        return [r for r in records if r.get(self.PUBLIC_FLAG) is True]

    def get(self, record_id: str) -> Dict:
        record = self._repo.find(record_id)
        if record is None:
            raise NotFoundError(f'{self.SINGULAR.capitalize()} not found')
        return record

    def create(self, payload: Dict, **context) -> Dict:
        """Validate *payload*, fill defaults and store a new record.

        Keys outside ``FIELDS`` (including ``id`` and timestamps) are dropped.

        Raises:
            ValidationError: a required field is missing or a field has the
                wrong type.
        """
        fields = {name: copy.deepcopy(default) for name, (_, default) in self.FIELDS.items()}
        fields.update(self._clean(payload, self.FIELDS))
        self._require(fields)
        fields = self._prepare_new(fields, context)
        return self._repo.create(fields)

    def update(self, record_id: str, payload: Dict) -> Dict:
        """Shallow-merge the patchable fields of *payload* into the record.

        Raises:
            NotFoundError:   unknown *record_id*.
            ValidationError: a known field has the wrong type, or a required
                field would become empty.
        """
        changes = self._clean(payload, self.patchable)
        self._require(changes, only_present=True)
        try:
            return self._repo.update(record_id, changes)
        except NotFoundError:
            raise NotFoundError(f'{self.SINGULAR.capitalize()} not found') from None

    def delete(self, record_id: str) -> None:
        try:
            self._repo.delete(record_id)
        except NotFoundError:
            raise NotFoundError(f'{self.SINGULAR.capitalize()} not found') from None


def _type_label(expected) -> str:
    return {
        str: 'a string', bool: 'true or false', int: 'a number',
        list: 'a list', dict: 'an object',
    }.get(expected, expected.__name__)


# ---------------------------------------------------------------------------
# Concrete services
# ---------------------------------------------------------------------------

class GameService(ResourceService):
    """Games listed on the site.  Live stats come from :mod:`roblox_client`."""

    SINGULAR = 'game'
    FIELDS = {
        'placeId': (str, ''),
        'universeId': (str, ''),
        'name': (str, ''),
        'thumbnail': (str, ''),
        'featured': (bool, False),
        'active': (bool, True),
    }
    REQUIRED = ('placeId',)
    PUBLIC_FLAG = 'active'

    def _coerce(self, field, value):
        # Roblox ids arrive as JSON numbers from some clients.
        if field in ('placeId', 'universeId') and isinstance(value, int) \
                and not isinstance(value, bool):
            return str(value)
        return value

    def cache_universe_ids(self, resolved: Dict[str, str]) -> int:
        """Store newly resolved universe ids (``{record_id: universe_id}``).

        Only records whose ``universeId`` is still empty are touched.  Returns
        the number of records changed.
        """
        if not resolved:
            return 0
        changed = []

        def apply(records):
            for record in records:
                universe_id = resolved.get(record.get('id'))
                if universe_id and not record.get('universeId'):
                    record['universeId'] = universe_id
                    changed.append(record['id'])

        self._repo.mutate(apply)
        return len(changed)


class PostService(ResourceService):
    SINGULAR = 'post'
    FIELDS = {
        'title': (str, ''),
        'content': (str, ''),
        'excerpt': (str, ''),
        'coverImage': (str, ''),
        'author': (str, ''),
        'published': (bool, False),
    }
    REQUIRED = ('title',)
    PUBLIC_FLAG = 'published'

    def _prepare_new(self, fields, context):
        if not fields['author']:
            fields['author'] = context.get('author', '')
        return fields


class CareerService(ResourceService):
    SINGULAR = 'career'
    FIELDS = {
        'title': (str, ''),
        'department': (str, ''),
        'type': (str, 'Full-time'),
        'location': (str, 'Remote'),
        'description': (str, ''),
        'requirements': (list, []),
        'niceToHave': (list, []),
        'questions': (list, []),
        'active': (bool, True),
    }
    REQUIRED = ('title',)
    PUBLIC_FLAG = 'active'


class StaffService(ResourceService):
    """Team members shown on the about page."""

    SINGULAR = 'staff member'
    FIELDS = {
        'name': (str, ''),
        'title': (str, ''),
        'avatar': (str, ''),
        'bio': (str, ''),
        'socials': (dict, {}),
        'order': (int, 0),
        'active': (bool, True),
    }
    REQUIRED = ('name',)
    PUBLIC_FLAG = 'active'

    def list_public(self) -> List[Dict]:
        return sorted(super().list_public(), key=lambda r: r.get('order', 0))


def _check_email(fields: Dict) -> None:
    if '@' not in fields.get('email', ''):
        raise ValidationError('Invalid email address')


class ContactService(ResourceService):
    """Contact form submissions.  Staff may only toggle ``read``."""

    SINGULAR = 'contact'
    FIELDS = {
        'name': (str, ''),
        'email': (str, ''),
        'subject': (str, ''),
        'message': (str, ''),
        'read': (bool, False),
    }
    REQUIRED = ('name', 'email', 'subject', 'message')
    REQUIRED_MESSAGE = 'All fields are required'
    PATCHABLE = ('read',)

    def _prepare_new(self, fields, context):
        _check_email(fields)
        fields['read'] = False
        return fields

    def mark_read(self, record_id: str, read: bool = True) -> Dict:
        return self.update(record_id, {'read': read})


class ApplicationService(ResourceService):
    """Job applications.  Staff may toggle ``read`` and move ``status``."""

    SINGULAR = 'application'
    STATUSES = ('pending', 'reviewing', 'accepted', 'rejected')
    FIELDS = {
        'position': (str, ''),
        'name': (str, ''),
        'email': (str, ''),
        'discord': (str, ''),
        'portfolio': (str, ''),
        'experience': (str, ''),
        'answers': (list, []),
        'status': (str, 'pending'),
        'read': (bool, False),
    }
    REQUIRED = ('position', 'name', 'email', 'experience')
    REQUIRED_MESSAGE = 'Required fields are missing'
    PATCHABLE = ('read', 'status')

    def _prepare_new(self, fields, context):
        _check_email(fields)
        fields['answers'] = [
            {'question': str(a['question']), 'answer': str(a['answer'])}
            for a in fields['answers']
            if isinstance(a, dict) and a.get('question') and a.get('answer')
        ]
        fields['status'] = 'pending'
        fields['read'] = False
        return fields

    def update(self, record_id: str, payload: Dict) -> Dict:
        if isinstance(payload, dict) and 'status' in payload \
                and payload['status'] not in self.STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(self.STATUSES)}")
        return super().update(record_id, payload)

    def mark_read(self, record_id: str, read: bool = True) -> Dict:
        return self.update(record_id, {'read': read})

    def set_status(self, record_id: str, status: str) -> Dict:
        return self.update(record_id, {'status': status})
