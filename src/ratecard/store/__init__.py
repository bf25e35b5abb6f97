"""SQLite persistence for catalogs and their version history."""

from ratecard.store.repository import CatalogRepository
from ratecard.store.schema import close_ratecard_db, init_ratecard_db, init_ratecard_tables

__all__ = [
    "CatalogRepository",
    "close_ratecard_db",
    "init_ratecard_db",
    "init_ratecard_tables",
]
