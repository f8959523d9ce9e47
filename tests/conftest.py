from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest

from floatchat.schemas import ConversationTurn


def make_turns(*texts: str, role: str = "user") -> List[ConversationTurn]:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [
        ConversationTurn(id=f"t{i}", role=role, text=text, created_at=base + timedelta(minutes=i))
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def turns():
    return make_turns


@pytest.fixture
def profile_rows()-> List[Dict[str, Any]]:
    return [
        {"depth": 0, "temperature": 28, "entityId": "A"},
        {"depth": 50, "temperature": 27, "entityId": "A"},
        {"depth": 0, "temperature": 29, "entityId": "B"},
    ]


@pytest.fixture
def ocean_rows() -> List[Dict[str, Any]]:
    return [
        {"float_id": "2903334", "date": "2023-03-02", "depth": 10, "latitude": 15.0, "longitude": 68.0,
         "temperature": 28.4, "salinity": 36.1, "oxygen": 210.0},
        {"float_id": "2903334", "date": "2023-03-01", "depth": 100, "latitude": 15.0, "longitude": 70.0,
         "temperature": 24.9, "salinity": 35.8, "oxygen": 180.0},
        {"float_id": "2903335", "date": "2023-03-01", "depth": 500, "latitude": 10.0, "longitude": 68.0,
         "temperature": 11.2, "salinity": 35.1},
        {"float_id": "2903335", "date": "2023-03-03", "depth": 1000, "latitude": 10.0, "longitude": 70.0,
         "temperature": 6.5, "salinity": 34.9, "unknown_field": "ignored"},
    ]
