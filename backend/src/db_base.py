"""
SQLAlchemy declarative base for the identity sync models.

Kept free of model and repository imports so every model module can
import it without circular dependencies.
"""

from sqlalchemy.orm import declarative_base

# Shared metadata for users, organizations, memberships and the webhook log
Base = declarative_base()
