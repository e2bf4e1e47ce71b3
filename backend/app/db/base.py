"""
SQLAlchemy Declarative Base
Defines the base class for all SQLAlchemy models.

All database models should inherit from the Base class defined here.
This provides ORM functionality and table creation capabilities.
"""

from sqlalchemy.orm import declarative_base

# Declarative base class for all models
# All database models (User, Role, Store, Client, ...) inherit from this base
# through app.models.base.BaseModel. SQLAlchemy uses it to track all models
# and create their tables.
Base = declarative_base()
