"""Composition root: builds the storage, catalog, directory and engine."""

from dataclasses import dataclass
from pathlib import Path

from .catalog import ProductCatalog
from .database import Database
from .directory import CustomerDirectory
from .engine import OrderEngine


@dataclass
class Services:
    """The wired-up collaborators for one session."""

    database: Database
    catalog: ProductCatalog
    directory: CustomerDirectory
    engine: OrderEngine


def open_services(data_dir: Path | str | None = None) -> Services:
    """
    Load every collection from ``data_dir`` and wire the engine to them.

    Args:
        data_dir: Override data directory (defaults to ORDERDESK_DATA_DIR).
    """
    database = Database(data_dir)
    catalog = ProductCatalog(database)
    directory = CustomerDirectory(database)
    engine = OrderEngine(database, catalog, directory)
    return Services(database=database, catalog=catalog, directory=directory, engine=engine)
