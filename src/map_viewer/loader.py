"""Load recorded position tracks for replay."""

import csv
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Accepted column / key names, first match wins
LATITUDE_KEYS = ("latitude", "lat")
LONGITUDE_KEYS = ("longitude", "lon", "lng")


@dataclass
class TrackData:
    """Container for a loaded track."""

    path: str
    fixes: list[dict[str, Any]]  # raw fixes, {"latitude": ..., "longitude": ...}
    skipped: int = 0             # rows that could not be turned into a fix


def _pick(row: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in row:
            return row[key]
    return None


def _row_to_fix(row: Any) -> dict[str, Any] | None:
    """Normalize a JSON entry or CSV row into a raw fix mapping."""
    if isinstance(row, (list, tuple)) and len(row) == 2:
        return {"latitude": row[0], "longitude": row[1]}
    if not isinstance(row, dict):
        return None

    lat = _pick(row, LATITUDE_KEYS)
    lon = _pick(row, LONGITUDE_KEYS)
    if lat is None or lon is None:
        return None
    return {"latitude": lat, "longitude": lon}


def _parse_number(value: Any) -> Any:
    # CSV gives strings; leave anything unparseable for the validator to reject
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def load_track(path: str) -> TrackData:
    """
    Load a position track from disk.

    Supported formats:
    - .json: a list of [lat, lon] pairs or {"latitude"/"lat", "longitude"/"lon"} objects,
      or an object with a "fixes" list of those
    - .csv: a header row with latitude/lat and longitude/lon/lng columns

    Fixes are not validated here; the position source does that, exactly as
    it would for a live device.

    Args:
        path: Path to the track file

    Returns:
        TrackData with the raw fixes in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file cannot be parsed or has an unknown extension
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Track file not found: {path}")

    extension = os.path.splitext(path)[1].lower()
    if extension == ".json":
        rows = _read_json_rows(path)
    elif extension == ".csv":
        rows = _read_csv_rows(path)
    else:
        raise ValueError(f"Unsupported track format: {extension or '(none)'}")

    fixes: list[dict[str, Any]] = []
    skipped = 0
    for row in rows:
        fix = _row_to_fix(row)
        if fix is None:
            skipped += 1
            continue
        fixes.append({key: _parse_number(value) for key, value in fix.items()})

    if skipped:
        logger.warning(f"Skipped {skipped} unreadable rows in {path}")
    logger.info(f"Loaded track: {len(fixes)} fixes from {path}")

    return TrackData(path=path, fixes=fixes, skipped=skipped)


def _read_json_rows(path: str) -> list[Any]:
    with open(path, "r", encoding="utf-8") as track_file:
        try:
            data = json.load(track_file)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse track file: {e}") from e

    if isinstance(data, dict):
        data = data.get("fixes")
    if not isinstance(data, list):
        raise ValueError("Track JSON must be a list of fixes")
    return data


def _read_csv_rows(path: str) -> list[Any]:
    with open(path, "r", encoding="utf-8", newline="") as track_file:
        reader = csv.DictReader(track_file)
        if not reader.fieldnames:
            raise ValueError("Track CSV has no header row")
        return [
            {key.strip().lower(): value for key, value in row.items() if key}
            for row in reader
        ]
