"""Best-effort persistence of the last known location and onboarding flag."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from src.navigation.errors import StorageError
from src.navigation.geo import Coordinate, to_coordinate

logger = logging.getLogger(__name__)

LAST_LOCATION_KEY = "last_location"
ONBOARDING_SEEN_KEY = "onboarding_seen"


class LocationStore:
    """
    Small JSON key-value file holding exactly two values.

    Reads and writes never raise: a missing, unreadable or corrupt file
    behaves like an empty store, and failed writes are logged and dropped.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load_last_location(self) -> Optional[Coordinate]:
        """Return the persisted coordinate, or None if absent or invalid."""
        return to_coordinate(self._read().get(LAST_LOCATION_KEY))

    def save_last_location(self, coordinate: Coordinate) -> None:
        """Persist coordinate as the last known location (invalid values are ignored)."""
        coordinate = to_coordinate(coordinate)
        if coordinate is None:
            return
        self._update(LAST_LOCATION_KEY, list(coordinate))

    def onboarding_seen(self) -> bool:
        return self._read().get(ONBOARDING_SEEN_KEY) is True

    def mark_onboarding_seen(self) -> None:
        self._update(ONBOARDING_SEEN_KEY, True)

    def _read(self) -> dict[str, Any]:
        try:
            return self._read_strict()
        except StorageError as e:
            logger.debug(f"Falling back to empty store: {e}")
            return {}

    def _read_strict(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Unexpected store layout in {self.path}")
        return data

    def _update(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        try:
            self._write_atomic(data)
        except StorageError as e:
            logger.debug(f"Ignoring store write failure: {e}")

    def _write_atomic(self, data: dict[str, Any]) -> None:
        temp_path: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent, delete=False
            ) as handle:
                temp_path = Path(handle.name)
                json.dump(data, handle)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
            temp_path = None
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e
        finally:
            if temp_path is not None:
                try:
                    temp_path.unlink()
                except OSError:
                    pass
