"""Service layer for RSS Ingest."""

from .ledger import SeenLedger
from .locks import AsyncRWLock
from .store import DataStore
from .writer import AtomicJsonFile

__all__ = ["SeenLedger", "AsyncRWLock", "DataStore", "AtomicJsonFile"]
