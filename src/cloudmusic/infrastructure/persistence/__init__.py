"""Persistence layer for database operations."""

from .database import Database
from .models import Base, CatalogEntryModel, ProviderLinkModel
from .repositories import CatalogEntryRepository, ProviderLinkRepository
from .unit_of_work import SqlAlchemyUnitOfWork

__all__ = [
    "Base",
    "CatalogEntryModel",
    "CatalogEntryRepository",
    "Database",
    "ProviderLinkModel",
    "ProviderLinkRepository",
    "SqlAlchemyUnitOfWork",
]
