"""Declarative base for persisted tables."""

from sqlalchemy.orm import DeclarativeBase


class BaseSchema(DeclarativeBase):
    """Base class shared by every table in the save database."""
