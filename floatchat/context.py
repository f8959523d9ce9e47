# floatchat/context.py
"""
Keyword-driven extraction of a QueryContext from recent conversation turns.

Extraction is heuristic: substring matches against fixed tables, a 7-digit
pattern for float identifiers, and a couple of coordinate/date patterns.
Parameters keep the order they were first seen; location, coordinates and
time window take the last match in the window.
"""
from __future__ import annotations

import calendar
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from .schemas import ConversationTurn, QueryContext, SpatialFocus, TemporalFocus

DEFAULT_WINDOW_SIZE = 5

# canonical parameter -> surface synonyms (lowercase)
PARAMETER_SYNONYMS: Dict[str, List[str]] = {
    "temperature": ["temperature", "temp", "thermal"],
    "salinity": ["salinity", "salt", "psu"],
    "pressure": ["pressure", "depth"],
    "oxygen": ["oxygen", "o2", "dissolved oxygen"],
    "chlorophyll": ["chlorophyll", "chl", "phyto"],
    "nitrate": ["nitrate", "no3", "nutrients"],
}

LOCATIONS: List[str] = [
    "arabian sea",
    "indian ocean",
    "pacific",
    "atlantic",
    "equator",
    "tropical",
    "subtropical",
]

ENTITY_ID_PATTERN = re.compile(r"\b\d{7}\b")

COORDINATE_PATTERN = re.compile(
    r"(?<![\d.])(\d{1,2}(?:\.\d+)?)\s*°?\s*([ns])\b[\s,;/]*"
    r"(\d{1,3}(?:\.\d+)?)\s*°?\s*([ew])\b"
)

_MONTHS = {name.lower(): i for i, name in enumerate(calendar.month_name) if name}
_MONTHS.update({name.lower(): i for i, name in enumerate(calendar.month_abbr) if name})
_MONTHS["sept"] = 9

MONTH_YEAR_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(_MONTHS, key=len, reverse=True)) + r")\.?\s+((?:19|20)\d{2})\b"
)
YEAR_PATTERN = re.compile(r"\b(?:in|during|for|of)\s+((?:19|20)\d{2})\b")


# =============================================================================
# Per-turn detectors (text is expected already case-folded)
# =============================================================================
def detect_parameters(text: str) -> List[str]:
    return [
        name
        for name, synonyms in PARAMETER_SYNONYMS.items()
        if any(s in text for s in synonyms)
    ]


def detect_entity_ids(text: str) -> List[str]:
    return ENTITY_ID_PATTERN.findall(text)


def detect_location(text: str) -> Optional[str]:
    found = None
    for location in LOCATIONS:
        if location in text:
            found = location
    return found


def detect_coordinates(text: str) -> Optional[SpatialFocus]:
    found = None
    for m in COORDINATE_PATTERN.finditer(text):
        lat, lon = float(m.group(1)), float(m.group(3))
        if lat > 90 or lon > 180:
            continue
        if m.group(2) == "s":
            lat = -lat
        if m.group(4) == "w":
            lon = -lon
        found = SpatialFocus(latitude=lat, longitude=lon)
    return found


def _month_window(year: int, month: int) -> TemporalFocus:
    last_day = calendar.monthrange(year, month)[1]
    return TemporalFocus(
        start=datetime(year, month, 1, tzinfo=timezone.utc),
        end=datetime(year, month, last_day, 23, 59, 59, tzinfo=timezone.utc),
    )


def _year_window(year: int) -> TemporalFocus:
    return TemporalFocus(
        start=datetime(year, 1, 1, tzinfo=timezone.utc),
        end=datetime(year, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
    )


def detect_time_window(text: str) -> Optional[TemporalFocus]:
    hits = []
    for m in MONTH_YEAR_PATTERN.finditer(text):
        hits.append((m.start(), _month_window(int(m.group(2)), _MONTHS[m.group(1)])))
    for m in YEAR_PATTERN.finditer(text):
        hits.append((m.start(), _year_window(int(m.group(1)))))
    if not hits:
        return None
    hits.sort(key=lambda h: h[0])
    return hits[-1][1]


# =============================================================================
# Extraction
# =============================================================================
def recent_user_turns(turns: Iterable[ConversationTurn], window_size: int) -> List[ConversationTurn]:
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    return [t for t in turns if t.role == "user"][-window_size:]


def extract_context(
    turns: Sequence[ConversationTurn],
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> QueryContext:
    """
    Build a fresh QueryContext from the last `window_size` user turns.

    Pure: the same turn window always yields an equal context.
    """
    parameters: List[str] = []
    entity_ids: List[str] = []
    filters: Dict[str, str] = {}
    spatial: Optional[SpatialFocus] = None
    temporal: Optional[TemporalFocus] = None

    for turn in recent_user_turns(turns, window_size):
        text = turn.text.casefold()

        for name in detect_parameters(text):
            if name not in parameters:
                parameters.append(name)

        entity_ids.extend(detect_entity_ids(text))

        # last match wins, unlike parameters
        location = detect_location(text)
        if location:
            filters["location"] = location
        spatial = detect_coordinates(text) or spatial
        temporal = detect_time_window(text) or temporal

    return QueryContext(
        preferred_parameters=parameters,
        recent_entity_ids=entity_ids,
        spatial_focus=spatial,
        temporal_focus=temporal,
        active_filters=filters,
    )
