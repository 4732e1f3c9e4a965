"""Atomic JSON file persistence."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, List, Optional

from ..errors import StorageError


logger = logging.getLogger(__name__)


class AtomicJsonFile:
    """A JSON document written with the temp-file-then-rename discipline."""

    def __init__(self, path: Path) -> None:
        """
        Initialize the file wrapper.

        Args:
            path: Canonical location of the document
        """
        self.path = Path(path)

    def read(self, default_factory: Callable[[], Any] = dict) -> Any:
        """
        Read the document.

        A missing file yields the default. A corrupted canonical file falls
        back to the newest temp file left by an interrupted write, then to
        the default.

        Args:
            default_factory: Builds the value returned when nothing is readable

        Returns:
            Decoded JSON value
        """
        if not self.path.exists():
            return default_factory()

        data = self._load(self.path)
        if data is not None:
            return data

        logger.warning(f"Failed to parse {self.path}, trying temp fallback")
        for candidate in self.temp_candidates():
            data = self._load(candidate)
            if data is not None:
                logger.info(f"Recovered {self.path} from {candidate}")
                return data

        logger.error(f"No readable copy of {self.path}, starting empty")
        return default_factory()

    def temp_candidates(self) -> List[Path]:
        """Leftover temp files for this document, newest first."""
        if not self.path.parent.exists():
            return []
        candidates = [p for p in self.path.parent.glob(f"{self.path.name}*.tmp") if p.is_file()]
        return sorted(candidates, key=lambda p: p.stat().st_mtime, reverse=True)

    @staticmethod
    def _load(path: Path) -> Optional[Any]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.debug(f"Unreadable JSON at {path}: {e}")
            return None

    def write(self, data: Any) -> None:
        """
        Atomically replace the document.

        The full document is written and fsynced to a uniquely named temp
        file in the same directory, which is then renamed over the canonical
        path. Concurrent writers never share a temp file.

        Args:
            data: JSON-serializable value

        Raises:
            StorageError: If serialization or any filesystem step fails
        """
        temp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode='w',
                encoding='utf-8',
                dir=self.path.parent,
                prefix=f"{self.path.name}.",
                suffix='.tmp',
                delete=False,
            ) as temp_file:
                temp_path = Path(temp_file.name)
                json.dump(data, temp_file, indent=2, ensure_ascii=False)
                temp_file.flush()
                os.fsync(temp_file.fileno())

            # Atomic move to final location
            os.replace(temp_path, self.path)

        except (OSError, TypeError, ValueError) as e:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {self.path}: {e}") from e

        logger.debug(f"Persisted {self.path}")
