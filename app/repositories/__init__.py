"""Repository package: expose all concrete repositories from one import."""
from .collection_repository import CollectionRepository
from .game_repository import GameRepository
from .post_repository import PostRepository
from .career_repository import CareerRepository
from .staff_repository import StaffRepository
from .contact_repository import ContactRepository
from .application_repository import ApplicationRepository
from .account_repository import AccountRepository

__all__ = [
    'CollectionRepository',
    'GameRepository',
    'PostRepository',
    'CareerRepository',
    'StaffRepository',
    'ContactRepository',
    'ApplicationRepository',
    'AccountRepository',
]
