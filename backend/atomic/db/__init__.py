"""Database utilities and models."""

from atomic.db.base import Base
from atomic.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
