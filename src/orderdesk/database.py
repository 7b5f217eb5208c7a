"""Flat-file storage for orderdesk records."""

import os
import shutil
import tempfile
from pathlib import Path

import structlog

from .errors import StorageError

# Can be overridden via ORDERDESK_DATA_DIR environment variable
DEFAULT_DATA_DIR = "data"
DATA_DIR_ENV = "ORDERDESK_DATA_DIR"

PRODUCTS_FILE = "products.txt"
CUSTOMERS_FILE = "customers.txt"
ORDERS_FILE = "orders.txt"
DATA_FILES = (PRODUCTS_FILE, CUSTOMERS_FILE, ORDERS_FILE)

logger = structlog.get_logger(__name__)


def get_data_dir() -> Path:
    """Resolve the data directory from the environment at call time."""
    return Path(os.environ.get(DATA_DIR_ENV, DEFAULT_DATA_DIR))


class Database:
    """Reads and rewrites whole record files, one record per line."""

    def __init__(self, data_dir: Path | str | None = None):
        """
        Initialize Database.

        Args:
            data_dir: Override data directory (for testing).
        """
        self.data_dir = Path(data_dir) if data_dir is not None else get_data_dir()

    def _ensure_dir(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(str(self.data_dir), str(e))

    def exists(self, filename: str) -> bool:
        return (self.data_dir / filename).exists()

    def load_lines(self, filename: str) -> list[str]:
        """
        Load non-empty lines from a data file.

        A missing file is an empty collection. Bytes that are not valid
        UTF-8 are decoded as U+FFFD so one damaged record cannot hide the
        rest of the file.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        path = self.data_dir / filename
        if not path.exists():
            logger.debug("data_file_missing", path=str(path))
            return []

        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                lines = [line.rstrip("\r\n") for line in f]
        except OSError as e:
            raise StorageError(str(path), str(e))

        lines = [line for line in lines if line]
        logger.debug("records_loaded", path=str(path), count=len(lines))
        return lines

    def save_lines(self, filename: str, lines: list[str]) -> None:
        """
        Replace a data file atomically.

        Uses write-to-temp-then-rename so a failed write never truncates
        the existing file.

        Raises:
            StorageError: If the write fails.
        """
        self._ensure_dir()
        path = self.data_dir / filename

        try:
            fd, temp_path = tempfile.mkstemp(
                dir=self.data_dir, prefix=f".{path.stem}_", suffix=".tmp"
            )
        except OSError as e:
            raise StorageError(str(path), str(e))

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for line in lines:
                    f.write(line)
                    f.write("\n")
            os.replace(temp_path, path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StorageError(str(path), str(e))

        logger.debug("records_saved", path=str(path), count=len(lines))

    def load_products(self) -> list[str]:
        return self.load_lines(PRODUCTS_FILE)

    def save_products(self, lines: list[str]) -> None:
        self.save_lines(PRODUCTS_FILE, lines)

    def load_customers(self) -> list[str]:
        return self.load_lines(CUSTOMERS_FILE)

    def save_customers(self, lines: list[str]) -> None:
        self.save_lines(CUSTOMERS_FILE, lines)

    def load_orders(self) -> list[str]:
        return self.load_lines(ORDERS_FILE)

    def save_orders(self, lines: list[str]) -> None:
        self.save_lines(ORDERS_FILE, lines)

    def create_backup(self, backup_dir: Path | str) -> list[str]:
        """
        Copy every existing data file into ``backup_dir``.

        Returns:
            Names of the files copied.

        Raises:
            StorageError: If copying fails.
        """
        backup_dir = Path(backup_dir)
        copied: list[str] = []
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            for filename in DATA_FILES:
                source = self.data_dir / filename
                if source.exists():
                    shutil.copy2(source, backup_dir / filename)
                    copied.append(filename)
        except OSError as e:
            raise StorageError(str(backup_dir), str(e))

        logger.info("backup_created", backup_dir=str(backup_dir), files=copied)
        return copied

    def restore_from_backup(self, backup_dir: Path | str) -> list[str]:
        """
        Copy data files from ``backup_dir`` over the current ones.

        Components already holding loaded collections must be rebuilt to
        see the restored data.

        Raises:
            StorageError: If the backup directory is missing or copying fails.
        """
        backup_dir = Path(backup_dir)
        if not backup_dir.is_dir():
            raise StorageError(str(backup_dir), "backup directory does not exist")

        self._ensure_dir()
        restored: list[str] = []
        try:
            for filename in DATA_FILES:
                source = backup_dir / filename
                if source.exists():
                    shutil.copy2(source, self.data_dir / filename)
                    restored.append(filename)
        except OSError as e:
            raise StorageError(str(backup_dir), str(e))

        logger.info("backup_restored", backup_dir=str(backup_dir), files=restored)
        return restored
