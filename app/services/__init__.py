"""Services package: expose all concrete services from one import."""
from .session_service import SessionStore
from .auth_service import (
    CredentialVerifier, LoginAttemptTracker, LoginResult, ROLES, role_allows,
)
from .account_service import AccountService
from .content_service import (
    ResourceService, GameService, PostService, CareerService, StaffService,
    ContactService, ApplicationService,
)
from .upload_service import UploadService

__all__ = [
    'SessionStore',
    'CredentialVerifier',
    'LoginAttemptTracker',
    'LoginResult',
    'ROLES',
    'role_allows',
    'AccountService',
    'ResourceService',
    'GameService',
    'PostService',
    'CareerService',
    'StaffService',
    'ContactService',
    'ApplicationService',
    'UploadService',
]
