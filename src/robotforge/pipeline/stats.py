"""Robot stats parsing with a best-effort fallback for imperfect JSON.

The text service is asked for flat JSON but does not always honour it: fields
arrive wrapped in an extra object, keys change case, or a field is dropped.
:func:`parse_stats` first tries a strict parse and then falls back to a
recursive, case-insensitive key search with fixed defaults.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from robotforge.errors import DecodeError
from robotforge.models import RobotStats

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Unknown Robot"
DEFAULT_LORE = "No lore available."
DEFAULT_VISUAL_DESCRIPTION = "A standard mechanical combat robot."
DEFAULT_HP = 1000
DEFAULT_ATK = 50
DEFAULT_DEF = 20

NAME_KEYS = ("name",)
LORE_KEYS = ("lore",)
VISUAL_KEYS = ("visual_description", "visual_description_en", "visualdescription")
HP_KEYS = ("hp",)
ATK_KEYS = ("atk", "attack")
DEF_KEYS = ("def", "defense")

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


def parse_stats(text: str) -> RobotStats:
    """Parse the text service's stats response.

    Raises
    ------
    DecodeError
        If *text* is not JSON at all.
    """
    text = _strip_fence(text)
    try:
        return RobotStats.model_validate_json(text)
    except ValidationError as exc:
        strict_error = exc

    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = (
            f"Failed to parse stats JSON: {exc} "
            f"(strict parse: {strict_error.error_count()} errors) Text: {text}"
        )
        raise DecodeError(msg) from exc

    logger.warning("Stats response was not flat JSON; using fallback key search")
    return extract_stats(value)


def extract_stats(value: Any) -> RobotStats:
    """Recover stats from any JSON tree, filling gaps with defaults."""
    return RobotStats(
        name=find_string(value, NAME_KEYS) or DEFAULT_NAME,
        lore=find_string(value, LORE_KEYS) or DEFAULT_LORE,
        hp=_or_default(find_int(value, HP_KEYS), DEFAULT_HP),
        atk=_or_default(find_int(value, ATK_KEYS), DEFAULT_ATK),
        defense=_or_default(find_int(value, DEF_KEYS), DEFAULT_DEF),
        visual_description=find_string(value, VISUAL_KEYS) or DEFAULT_VISUAL_DESCRIPTION,
    )


def find_string(value: Any, keys: Iterable[str]) -> str | None:
    """Depth-first search for the first string stored under one of *keys*."""
    found = _find(value, frozenset(keys), _as_string)
    return found if isinstance(found, str) else None


def find_int(value: Any, keys: Iterable[str]) -> int | None:
    """Depth-first search for the first integer stored under one of *keys*."""
    found = _find(value, frozenset(keys), _as_int)
    return found if isinstance(found, int) else None


def _find(value: Any, keys: frozenset[str], convert: Any) -> Any:
    if isinstance(value, dict):
        for key, child in value.items():
            if str(key).lower() in keys:
                converted = convert(child)
                if converted is not None:
                    return converted
            found = _find(child, keys, convert)
            if found is not None:
                return found
    elif isinstance(value, list):
        for child in value:
            found = _find(child, keys, convert)
            if found is not None:
                return found
    return None


def _as_string(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _or_default(value: int | None, default: int) -> int:
    return default if value is None else value


def _strip_fence(text: str) -> str:
    match = _FENCE.match(text)
    return match.group(1) if match else text
