"""
Identity-Card Number Parsing

Derives demographic attributes (province, city, county, sex and age) from a
mainland Chinese resident identity-card number.

## Overview

`IdCardParser.parse` runs a short pipeline over one ID string:

1. **Format check**: the number is checked against the 15/18 digit pattern
2. **Table load**: the location table is loaded once per `LocationTableService`
3. **Area lookups**: province (2 digits), city (4 then 6 digits), county (6 digits)
4. **Birth date**: age in whole years from the embedded YYYYMMDD / YYMMDD digits
5. **Sequence digit**: sex from the parity of the sequence digit

Steps 3-5 are independent. A step that fails is logged and its field keeps its
zero value (``""``, ``Sex.MALE`` or ``0``), so a record can have a valid age and
sex while its province is unknown. Only `FormatError` is raised to the caller.

## Usage Examples

```python
from idcard_info import parse_id_card

record = parse_id_card("510232195508152414")
record.province, record.city, record.county   # looked up in ./location.json
record.sex                                     # Sex.MALE
record.age

# Explicit table and fixed clock
from datetime import date
from idcard_info import IdCardConfig, IdCardParser, LocationTableService

config = IdCardConfig.create_default().with_clock(lambda: date(2024, 1, 1))
parser = IdCardParser(config, LocationTableService.from_table(table))
parser.parse("510232195508152414").age         # 68
```

## Known Looseness

- A number that simply does not match the format pattern is logged and still
  parsed. Only a pattern that fails to compile raises `FormatError`. Set
  ``strict_format=True`` to reject non-matching numbers.
- The default age rule compares the non-zero-padded ``f"{month}{day}"`` of
  today with digits 10-14 of the number as strings, which misorders some
  dates. Set ``legacy_age_rule=False`` for a calendar comparison.

## Thread Safety

Records are immutable and `parse` keeps no state between calls. The location
table is loaded under a lock on first use and is read-only afterwards.
"""

from __future__ import annotations
import logging
import re
import threading
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import IntEnum
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

import pypinyin

from idcard_info.errors import BirthdayError, FormatError, IdCardError, LocationLookupError, SequenceError
from idcard_info.id_card_data import (
    AREA_PREFIX,
    BIRTHDAY_FORMAT,
    CITY_PREFIX,
    CURRENT_BIRTHDAY_SLICE,
    CURRENT_ID_LENGTH,
    CURRENT_SEQUENCE_SLICE,
    DEFAULT_LOCATION_FILE,
    ID_CARD_PATTERN,
    LEGACY_BIRTHDAY_SLICE,
    LEGACY_CENTURY,
    LEGACY_MONTH_DAY_SLICE,
    LEGACY_SEQUENCE_START,
    MUNICIPALITIES,
    PLACE_NAME_SUFFIXES,
    PROVINCE_PREFIX,
)
from idcard_info.location_table import AdministrativeCodeTable, LocationTableService


# ════════════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ════════════════════════════════════════════════════════════════════════════════


class Sex(IntEnum):
    """Sex encoded by the sequence digit; MALE is the zero value."""

    MALE = 0
    FEMALE = 1


def romanize_place_name(name: str) -> str:
    """
    Romanize a Chinese place name without its administrative suffix.

    "四川省" -> "Sichuan", "北京市" -> "Beijing". Empty names stay empty.
    """
    if not name:
        return ""

    stem = name
    for suffix in PLACE_NAME_SUFFIXES:
        if stem.endswith(suffix) and len(stem) > len(suffix):
            stem = stem[: -len(suffix)]
            break

    try:
        syllables = pypinyin.lazy_pinyin(stem, style=pypinyin.Style.NORMAL)
    except (AttributeError, ValueError, TypeError) as e:
        logging.warning(f"Pypinyin failed for '{stem}': {e}")
        return stem
    return "".join(syllables).capitalize()


@dataclass(frozen=True)
class IdentityRecord:
    """Attributes derived from one identity-card number. Fields that failed to resolve keep their zero value."""

    id_card: str
    province: str = ""
    city: str = ""
    county: str = ""
    sex: Sex = Sex.MALE
    age: int = 0

    @property
    def is_female(self) -> bool:
        return self.sex == Sex.FEMALE

    def romanized_location(self) -> Tuple[str, str, str]:
        """Province, city and county in pinyin."""
        return (
            romanize_place_name(self.province),
            romanize_place_name(self.city),
            romanize_place_name(self.county),
        )


# ════════════════════════════════════════════════════════════════════════════════
# IMMUTABLE CONFIGURATION
# ════════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class IdCardConfig:
    """Immutable parser configuration."""

    # Artifact path, resolved from the working directory when loaded
    location_path: Path

    # Number format
    id_pattern: str
    birthday_format: str
    strict_format: bool

    # Province names that may lack a county code
    municipalities: FrozenSet[str]

    # Age derivation
    legacy_age_rule: bool
    clock: Callable[[], date]

    @classmethod
    def create_default(cls) -> "IdCardConfig":
        return cls(
            location_path=Path(DEFAULT_LOCATION_FILE),
            id_pattern=ID_CARD_PATTERN,
            birthday_format=BIRTHDAY_FORMAT,
            strict_format=False,
            municipalities=MUNICIPALITIES,
            legacy_age_rule=True,
            clock=date.today,
        )

    def with_location_path(self, location_path: Path) -> "IdCardConfig":
        return replace(self, location_path=Path(location_path))

    def with_clock(self, clock: Callable[[], date]) -> "IdCardConfig":
        return replace(self, clock=clock)

    def with_strict_format(self, strict: bool = True) -> "IdCardConfig":
        return replace(self, strict_format=strict)

    def with_legacy_age_rule(self, enabled: bool) -> "IdCardConfig":
        return replace(self, legacy_age_rule=enabled)


# ════════════════════════════════════════════════════════════════════════════════
# FORMAT VALIDATION
# ════════════════════════════════════════════════════════════════════════════════


@lru_cache(maxsize=8)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.ASCII)
    except re.error as e:
        raise FormatError(f"idcard format error: invalid pattern: {e}") from e


def validate_format(id_card: str, config: IdCardConfig) -> bool:
    """
    Check an ID number against the configured pattern.

    Returns whether the number matched. A non-match is only logged unless
    ``config.strict_format`` is set.

    Raises:
        FormatError: if the pattern does not compile, the input is not a string,
            or the number does not match in strict mode
    """
    if not isinstance(id_card, str):
        raise FormatError(f"idcard format error: expected str, got {type(id_card).__name__}")

    matched = _compile_pattern(config.id_pattern).fullmatch(id_card) is not None
    if not matched:
        if config.strict_format:
            raise FormatError(f"idcard format error: {id_card}")
        logging.warning(f"ID card number does not match the expected format: {id_card}")
    return matched


# ════════════════════════════════════════════════════════════════════════════════
# PARSER
# ════════════════════════════════════════════════════════════════════════════════


def _prefix(id_card: str, bounds: Tuple[int, int]) -> str:
    return id_card[bounds[0] : bounds[1]]


class IdCardParser:
    """Parses identity-card numbers against a location table."""

    def __init__(self, config: Optional[IdCardConfig] = None, table_service: Optional[LocationTableService] = None):
        self._config = config or IdCardConfig.create_default()
        self._table_service = table_service or LocationTableService(self._config.location_path)

    @property
    def config(self) -> IdCardConfig:
        return self._config

    @property
    def table(self) -> AdministrativeCodeTable:
        return self._table_service.get_table()

    def parse(self, id_card: str) -> IdentityRecord:
        """
        Main API method: derive an IdentityRecord from an ID number.

        Field-level failures are logged and leave the field at its zero value.

        Raises:
            FormatError: only for format validation failures
        """
        validate_format(id_card, self._config)
        table = self._table_service.get_table()

        fields: Dict[str, Any] = {}
        steps = (
            ("province", lambda: self._resolve_province(id_card, table)),
            ("city", lambda: self._resolve_city(id_card, table)),
            ("county", lambda: self._resolve_county(id_card, table, fields.get("province", ""))),
            ("sex", lambda: self._resolve_sex(id_card)),
            ("age", lambda: self._resolve_age(id_card)),
        )
        for name, step in steps:
            try:
                fields[name] = step()
            except IdCardError as e:
                logging.error(str(e))

        return IdentityRecord(id_card=id_card, **fields)

    # Field resolvers, each raises on failure

    def _resolve_province(self, id_card: str, table: AdministrativeCodeTable) -> str:
        province = table.provinces.get(_prefix(id_card, PROVINCE_PREFIX))
        if province is None:
            raise LocationLookupError("province", id_card)
        return province

    def _resolve_city(self, id_card: str, table: AdministrativeCodeTable) -> str:
        city = table.cities.get(_prefix(id_card, CITY_PREFIX))
        if city is None:
            # municipality districts have no 4 digit city code
            city = table.cities.get(_prefix(id_card, AREA_PREFIX))
        if city is None:
            raise LocationLookupError("city", id_card)
        return city

    def _resolve_county(self, id_card: str, table: AdministrativeCodeTable, province: str) -> str:
        county = table.counties.get(_prefix(id_card, AREA_PREFIX))
        if county is None:
            if province not in self._config.municipalities:
                raise LocationLookupError("county", id_card)
            return ""
        return county

    def _birthday_digits(self, id_card: str) -> str:
        if len(id_card) == CURRENT_ID_LENGTH:
            return _prefix(id_card, CURRENT_BIRTHDAY_SLICE)
        return LEGACY_CENTURY + _prefix(id_card, LEGACY_BIRTHDAY_SLICE)

    def _resolve_age(self, id_card: str) -> int:
        birthday = self._birthday_digits(id_card)
        if len(birthday) != 8 or not (birthday.isascii() and birthday.isdigit()):
            raise BirthdayError(f"birthday invalid: {birthday!r} in {id_card}")
        try:
            born = datetime.strptime(birthday, self._config.birthday_format).date()
        except ValueError as e:
            raise BirthdayError(f"birthday invalid: {e}") from e

        today = self._config.clock()
        age = today.year - born.year
        if self._config.legacy_age_rule:
            if f"{today.month}{today.day}" > _prefix(id_card, LEGACY_MONTH_DAY_SLICE):
                age -= 1
        elif (today.month, today.day) < (born.month, born.day):
            age -= 1
        return age

    def _resolve_sex(self, id_card: str) -> Sex:
        if len(id_card) == CURRENT_ID_LENGTH:
            digits = _prefix(id_card, CURRENT_SEQUENCE_SLICE)
        else:
            digits = id_card[LEGACY_SEQUENCE_START:]
        if not (digits.isascii() and digits.isdigit()):
            raise SequenceError(f"sequence digit invalid: {digits!r} in {id_card}")
        return Sex.FEMALE if int(digits) % 2 == 0 else Sex.MALE


# ════════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL CONVENIENCE FUNCTIONS
# ════════════════════════════════════════════════════════════════════════════════

# Global parser instance for module-level functions
_global_parser: Optional[IdCardParser] = None
_global_parser_lock = threading.Lock()


def _get_global_parser() -> IdCardParser:
    """Get or create the global parser instance."""
    global _global_parser
    if _global_parser is None:
        with _global_parser_lock:
            if _global_parser is None:
                _global_parser = IdCardParser()
    return _global_parser


def parse_id_card(id_card: str) -> IdentityRecord:
    """
    Module-level convenience function using ./location.json.

    Raises:
        FormatError: if the number fails format validation
    """
    return _get_global_parser().parse(id_card)
