"""
Administrative Code Table

Builds, stores and loads the lookup table that maps identity-card area code
prefixes to place names.

## Overview

The raw dataset (``database.json``) is a JSON object keyed by hierarchical path
keys, each holding a list of ``"name|code"`` entries:

```json
{
    "1": ["北京市|110000", "四川省|510000"],
    "1_0": ["北京市|110100"],
    "1_0_0": ["东城区|110101", "朝阳区|110105"]
}
```

`build_code_table` flattens it into three mappings:

- **provinces**: first 2 digits of the code → name (single segment keys)
- **cities**: first 4 digits for ``xxxx00`` codes, full code otherwise (two segment keys)
- **countries**: full 6 digit code → county name (three or more segment keys)

`build_location_table` writes the mappings to ``location.json``. This is an offline
step; run ``python -m idcard_info.location_table`` from the directory holding
``database.json``.

At runtime `LocationTableService` loads ``location.json`` exactly once and hands
the same immutable `AdministrativeCodeTable` to every caller. A failed load is
logged and replaced by an empty table so parsing can continue.
"""

from __future__ import annotations
import json
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from idcard_info.errors import DataError
from idcard_info.id_card_data import (
    CITIES_FIELD,
    CITY_KEY_PATTERN,
    CITY_LEVEL_CODE_PATTERN,
    COUNTIES_FIELD,
    COUNTY_KEY_PATTERN,
    DEFAULT_DATABASE_FILE,
    DEFAULT_LOCATION_FILE,
    ENTRY_SEPARATOR,
    LOCATION_FIELDS,
    PROVINCE_KEY_PATTERN,
    PROVINCES_FIELD,
)

PathLike = Union[str, Path]

_PROVINCE_KEY_RE = re.compile(PROVINCE_KEY_PATTERN, re.ASCII)
_CITY_KEY_RE = re.compile(CITY_KEY_PATTERN, re.ASCII)
_COUNTY_KEY_RE = re.compile(COUNTY_KEY_PATTERN, re.ASCII)
_CITY_LEVEL_CODE_RE = re.compile(CITY_LEVEL_CODE_PATTERN, re.ASCII)

# Held while a table is being populated so no caller sees a half-built mapping
_BUILD_LOCK = threading.Lock()


# ════════════════════════════════════════════════════════════════════════════════
# IMMUTABLE TABLE
# ════════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AdministrativeCodeTable:
    """Read-only province, city and county lookups keyed by area code prefix."""

    provinces: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    cities: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    counties: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def empty(cls) -> "AdministrativeCodeTable":
        return cls()

    @classmethod
    def from_mappings(
        cls, provinces: Mapping[str, str], cities: Mapping[str, str], counties: Mapping[str, str]
    ) -> "AdministrativeCodeTable":
        """Copy the given mappings into a frozen table."""
        return cls(
            provinces=MappingProxyType(dict(provinces)),
            cities=MappingProxyType(dict(cities)),
            counties=MappingProxyType(dict(counties)),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.provinces or self.cities or self.counties)

    def to_document(self) -> Dict[str, Dict[str, str]]:
        """Serializable form using the location.json field names."""
        return {
            PROVINCES_FIELD: dict(self.provinces),
            CITIES_FIELD: dict(self.cities),
            COUNTIES_FIELD: dict(self.counties),
        }


# ════════════════════════════════════════════════════════════════════════════════
# BUILDER
# ════════════════════════════════════════════════════════════════════════════════


def _split_entry(key: str, entry: Any) -> Tuple[str, str]:
    if not isinstance(entry, str):
        raise DataError(f"entry under '{key}' is not a string: {entry!r}")
    parts = entry.split(ENTRY_SEPARATOR)
    if len(parts) < 2 or not parts[1]:
        raise DataError(f"entry under '{key}' is not in 'name|code' form: {entry!r}")
    return parts[0], parts[1]


def build_code_table(raw: Mapping[str, Any]) -> AdministrativeCodeTable:
    """
    Flatten a raw hierarchical dataset into an AdministrativeCodeTable.

    Keys that match none of the province, city or county key patterns are skipped.

    Raises:
        DataError: if the dataset is not a mapping of lists of "name|code" strings
    """
    if not isinstance(raw, Mapping):
        raise DataError(f"dataset must be a JSON object, got {type(raw).__name__}")

    provinces: Dict[str, str] = {}
    cities: Dict[str, str] = {}
    counties: Dict[str, str] = {}

    with _BUILD_LOCK:
        for key, entries in raw.items():
            if not isinstance(key, str):
                raise DataError(f"dataset keys must be strings, got {key!r}")
            if not isinstance(entries, list):
                raise DataError(f"value under '{key}' must be a list, got {type(entries).__name__}")

            if _PROVINCE_KEY_RE.fullmatch(key):
                for entry in entries:
                    name, code = _split_entry(key, entry)
                    if len(code) < 2:
                        raise DataError(f"province code too short under '{key}': {entry!r}")
                    provinces[code[:2]] = name
            elif _CITY_KEY_RE.fullmatch(key):
                for entry in entries:
                    name, code = _split_entry(key, entry)
                    if _CITY_LEVEL_CODE_RE.fullmatch(code):
                        cities[code[:4]] = name
                    else:
                        cities[code] = name
            elif _COUNTY_KEY_RE.match(key):
                for entry in entries:
                    name, code = _split_entry(key, entry)
                    counties[code] = name

    return AdministrativeCodeTable.from_mappings(provinces, cities, counties)


def _read_json(path: Path, what: str) -> Any:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DataError(f"failed to read {what} {path}: {e}") from e
    try:
        return json.loads(data.decode("utf-8"))
    except ValueError as e:
        raise DataError(f"failed to parse {what} {path}: {e}") from e


def build_location_table(
    database_path: PathLike = DEFAULT_DATABASE_FILE,
    location_path: PathLike = DEFAULT_LOCATION_FILE,
) -> AdministrativeCodeTable:
    """
    Read the raw dataset, flatten it and write the location table artifact.

    Relative paths are resolved from the current working directory.

    Raises:
        DataError: if the dataset is unreadable or malformed, or the artifact can't be written
    """
    start_time = time.perf_counter()
    source = Path.cwd() / Path(database_path)
    destination = Path.cwd() / Path(location_path)

    table = build_code_table(_read_json(source, "dataset"))

    try:
        destination.write_text(json.dumps(table.to_document(), ensure_ascii=False), encoding="utf-8")
    except (OSError, TypeError) as e:
        raise DataError(f"failed to write location table {destination}: {e}") from e

    build_time = time.perf_counter() - start_time
    print(
        f"Built location table with {len(table.provinces)} provinces, {len(table.cities)} cities "
        f"and {len(table.counties)} counties in {build_time:.3f}s"
    )
    return table


# ════════════════════════════════════════════════════════════════════════════════
# LOADER
# ════════════════════════════════════════════════════════════════════════════════


def _flat_mapping(document: Mapping[str, Any], field_name: str, path: Path) -> Dict[str, str]:
    value = document.get(field_name, {})
    if not isinstance(value, dict):
        raise DataError(f"'{field_name}' in {path} must be an object")
    for code, name in value.items():
        if not isinstance(name, str):
            raise DataError(f"'{field_name}.{code}' in {path} must be a string")
    return value


def load_location_table(location_path: PathLike = DEFAULT_LOCATION_FILE) -> AdministrativeCodeTable:
    """
    Load a location table artifact written by `build_location_table`.

    Missing top-level mappings load as empty mappings.

    Raises:
        DataError: if the artifact is unreadable or malformed
    """
    path = Path.cwd() / Path(location_path)
    document = _read_json(path, "location table")
    if not isinstance(document, dict):
        raise DataError(f"location table {path} must be a JSON object")

    unknown = set(document) - set(LOCATION_FIELDS)
    if unknown:
        logging.warning(f"Ignoring unknown fields in location table {path}: {sorted(unknown)}")

    with _BUILD_LOCK:
        provinces = _flat_mapping(document, PROVINCES_FIELD, path)
        cities = _flat_mapping(document, CITIES_FIELD, path)
        counties = _flat_mapping(document, COUNTIES_FIELD, path)
        return AdministrativeCodeTable.from_mappings(provinces, cities, counties)


# ════════════════════════════════════════════════════════════════════════════════
# RUN-ONCE LOADING SERVICE
# ════════════════════════════════════════════════════════════════════════════════


class LocationTableService:
    """Loads the location table on first use and serves it for the rest of the process."""

    def __init__(
        self,
        location_path: PathLike = DEFAULT_LOCATION_FILE,
        loader: Optional[Callable[[PathLike], AdministrativeCodeTable]] = None,
    ):
        self._location_path = location_path
        self._loader = loader or load_location_table
        self._lock = threading.Lock()
        self._initialized = False
        self._table = AdministrativeCodeTable.empty()
        self._load_error: Optional[DataError] = None

    @classmethod
    def from_table(cls, table: AdministrativeCodeTable) -> "LocationTableService":
        """Service that is already initialized with the given table."""
        service = cls(loader=lambda _path: table)
        service.get_table()
        return service

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def load_error(self) -> Optional[DataError]:
        return self._load_error

    def get_table(self) -> AdministrativeCodeTable:
        """Return the table, loading it on the first call only."""
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._initialize()
        return self._table

    def _initialize(self) -> None:
        try:
            start_time = time.perf_counter()
            self._table = self._loader(self._location_path)
            load_time = time.perf_counter() - start_time
            logging.info(f"Loaded location table from {self._location_path} in {load_time:.3f}s")
        except DataError as e:
            self._load_error = e
            logging.error(f"Failed to load location table: {e}. Continuing with an empty table.")
        finally:
            self._initialized = True


if __name__ == "__main__":
    build_location_table()
