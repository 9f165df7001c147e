"""
ModHub Database Package.

SQLAlchemy models, session management and Alembic migrations.
"""

__version__ = "0.1.0"

from .models import Base

__all__ = ["Base"]
