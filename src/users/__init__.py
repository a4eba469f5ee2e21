"""User records consumed for notification routing."""

from src.users.repository import UserRepository
from src.users.schemas import VALID_ROLES, User, UserRole

__all__ = ["User", "UserRepository", "UserRole", "VALID_ROLES"]
