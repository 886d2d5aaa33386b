"""Persistence collaborators for confirmed scans.

The coordinator only depends on the ``ScanStore`` contract. Stores reject a
code that is already present with ``DuplicateScanError``; every other
failure is a ``ScanStoreError``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import db

logger = logging.getLogger(__name__)


class ScanStoreError(Exception):
    """A scan could not be read from or written to the store."""


class DuplicateScanError(ScanStoreError):
    """The code is already stored."""


@dataclass(frozen=True)
class ScanRecord:
    """A persisted scan."""

    code: str
    group_key: str
    scanned_at: float


@dataclass
class Product:
    """Scanned codes sharing a product group key."""

    id: str
    codes: list[str] = field(default_factory=list)


def group_products(records: Iterable[ScanRecord]) -> list[Product]:
    """Group scans by product, products and codes sorted alphabetically."""
    products: dict[str, Product] = {}
    for record in records:
        products.setdefault(record.group_key, Product(id=record.group_key)).codes.append(record.code)
    for product in products.values():
        product.codes.sort()
    return [products[key] for key in sorted(products)]


class ScanStore(ABC):
    """Contract for the persistence collaborator."""

    @abstractmethod
    async def add_scan(self, code: str, group_key: str) -> None:
        """Persist one confirmed scan.

        Raises:
            DuplicateScanError: If the code is already stored.
            ScanStoreError: If the scan could not be stored.
        """

    @abstractmethod
    async def load_all(self) -> list[ScanRecord]:
        """Return all stored scans."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove all stored scans."""


class InMemoryScanStore(ScanStore):
    """Store keeping scans in a dict of product key -> records.

    ``fail_codes`` makes ``add_scan`` fail for the given codes, and
    ``delay`` postpones every write; both exist for exercising the
    coordinator's failure and race handling.
    """

    def __init__(self, fail_codes: Iterable[str] = (), delay: float = 0.0) -> None:
        self.products: dict[str, list[ScanRecord]] = {}
        self.fail_codes = set(fail_codes)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def add_scan(self, code: str, group_key: str) -> None:
        self.calls.append((code, group_key))
        if self.delay:
            await asyncio.sleep(self.delay)
        if code in self.fail_codes:
            raise ScanStoreError(f"write failed for {code}")
        existing = self.products.setdefault(group_key, [])
        if any(record.code == code for record in existing):
            raise DuplicateScanError(f"Code already exists: {code}")
        existing.append(ScanRecord(code=code, group_key=group_key, scanned_at=time.time() * 1000))

    async def load_all(self) -> list[ScanRecord]:
        return [record for records in self.products.values() for record in records]

    async def clear_all(self) -> None:
        self.products.clear()


class SqliteScanStore(ScanStore):
    """Store backed by the SQLite helpers in ``db``.

    Each call opens its own connection in a worker thread so the event loop
    never blocks on disk I/O.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else db.DB_PATH

    def _connect(self):
        try:
            return db.get_connection(self.db_path)
        except sqlite3.Error as exc:
            raise ScanStoreError(f"Could not open {self.db_path}: {exc}") from exc

    def _add_scan(self, code: str, group_key: str) -> None:
        conn = self._connect()
        try:
            db.insert_scan(conn, code, group_key, time.time() * 1000)
        except sqlite3.IntegrityError as exc:
            raise DuplicateScanError(f"Code already exists: {code}") from exc
        except sqlite3.Error as exc:
            raise ScanStoreError(f"Could not store {code}: {exc}") from exc
        finally:
            conn.close()

    def _load_all(self) -> list[ScanRecord]:
        conn = self._connect()
        try:
            return [ScanRecord(**row) for row in db.list_scans(conn)]
        except sqlite3.Error as exc:
            raise ScanStoreError(f"Could not load scans: {exc}") from exc
        finally:
            conn.close()

    def _clear_all(self) -> int:
        conn = self._connect()
        try:
            return db.clear_scans(conn)
        except sqlite3.Error as exc:
            raise ScanStoreError(f"Could not clear scans: {exc}") from exc
        finally:
            conn.close()

    async def add_scan(self, code: str, group_key: str) -> None:
        await asyncio.to_thread(self._add_scan, code, group_key)
        logger.debug("Saved %s to %s", code, self.db_path)

    async def load_all(self) -> list[ScanRecord]:
        return await asyncio.to_thread(self._load_all)

    async def clear_all(self) -> None:
        removed = await asyncio.to_thread(self._clear_all)
        logger.info("Cleared %s scans from %s", removed, self.db_path)
