from .categories import CategoryPolicy
from .identity import IdentityService
from .records import RecordManager
from .users import UserService

__all__ = ["CategoryPolicy", "IdentityService", "RecordManager", "UserService"]
