"""ORM models exposed for metadata discovery."""
from atomic.db.models.category import Category
from atomic.db.models.task import Task
from atomic.db.models.user import User
from atomic.db.models.user_preferences import UserPreferences

__all__ = [
    "Category",
    "Task",
    "User",
    "UserPreferences",
]
