# floatchat/schemas.py
from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
)

# =============================================================================
# Vocabularies
# =============================================================================
Role = Literal["user", "assistant", "system"]

VisualizationKind = Literal["profile", "timeSeries", "scatter", "heatmap"]
VISUALIZATION_KINDS: Tuple[str, ...] = ("profile", "timeSeries", "scatter", "heatmap")

# Measured ocean parameters (profile / heatmap / time-series selectors)
Parameter = Literal["temperature", "salinity", "pressure", "oxygen", "chlorophyll", "nitrate"]
PARAMETERS: Tuple[str, ...] = ("temperature", "salinity", "pressure", "oxygen", "chlorophyll", "nitrate")

# Scatter axes may also plot depth
Axis = Literal["temperature", "salinity", "pressure", "oxygen", "chlorophyll", "nitrate", "depth"]
AXES: Tuple[str, ...] = PARAMETERS + ("depth",)

NUMERIC_FIELDS: Tuple[str, ...] = AXES + ("latitude", "longitude")

# Scatter points can also be colored by platform
ColorBy = Literal["temperature", "salinity", "pressure", "oxygen", "chlorophyll", "nitrate", "depth", "entity_id"]
COLOR_FIELDS: Tuple[str, ...] = AXES + ("entity_id",)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Conversation
# =============================================================================
class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class SpatialFocus(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class TemporalFocus(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return _utc(v)


class QueryContext(BaseModel):
    """
    Short-memory summary of recent user intent.

    `preferred_parameters` keeps first-detection order and never holds a
    name twice; `recent_entity_ids` is most-recent-last and may repeat.
    """

    model_config = ConfigDict(frozen=True)

    preferred_parameters: List[str] = Field(default_factory=list)
    recent_entity_ids: List[str] = Field(default_factory=list)
    spatial_focus: Optional[SpatialFocus] = None
    temporal_focus: Optional[TemporalFocus] = None
    active_filters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("preferred_parameters")
    @classmethod
    def _dedupe(cls, v: List[str]) -> List[str]:
        seen: List[str] = []
        for name in v:
            if name not in seen:
                seen.append(name)
        return seen

    def snapshot(self) -> "QueryContext":
        return self.model_copy(deep=True)


# =============================================================================
# Measurements
# =============================================================================
class MeasurementRow(BaseModel):
    """
    One observation returned by the dataset service.

    Unknown extra fields are ignored. Numeric fields that are absent, empty
    or non-finite read as None.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    entity_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("entity_id", "entityId", "float_id"),
    )
    date: Optional[datetime] = None
    depth: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    temperature: Optional[float] = None
    salinity: Optional[float] = None
    pressure: Optional[float] = None
    oxygen: Optional[float] = None
    chlorophyll: Optional[float] = None
    nitrate: Optional[float] = None

    @field_validator("entity_id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def _finite_or_none(cls, v: Any) -> Optional[float]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, bool):
            raise ValueError("booleans are not measurements")
        try:
            f = float(v)
        except (TypeError, ValueError):
            raise ValueError(f"not a number: {v!r}")
        return f if math.isfinite(f) else None

    @field_validator("date")
    @classmethod
    def _date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)

    def value(self, name: str) -> Optional[float]:
        if name not in NUMERIC_FIELDS:
            raise ValueError(f"unknown measurement field: {name}")
        return getattr(self, name)


# =============================================================================
# Statistics shapes
# =============================================================================
class ValueRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float
    max: float


class Grid(BaseModel):
    """Latitude-by-longitude matrix of one parameter; row_keys descend, col_keys ascend."""

    model_config = ConfigDict(frozen=True)

    cells: List[List[Optional[float]]] = Field(default_factory=list)
    row_keys: List[float] = Field(default_factory=list)
    col_keys: List[float] = Field(default_factory=list)

    @property
    def shape(self) -> Tuple[int, int]:
        return len(self.row_keys), len(self.col_keys)

    @property
    def populated(self) -> int:
        return sum(1 for row in self.cells for cell in row if cell is not None)


# =============================================================================
# Render specs (tagged union on `kind`)
# =============================================================================
class ProfilePoint(BaseModel):
    depth: float
    value: float


class ProfileSpec(BaseModel):
    kind: Literal["profile"] = "profile"
    parameter: Parameter
    entity_ids: List[str] = Field(default_factory=list)
    series: Dict[str, List[ProfilePoint]] = Field(default_factory=dict)
    depth_range: ValueRange
    value_range: ValueRange
    point_count: int = 0


class TimeSeriesPoint(BaseModel):
    date: datetime
    entity_id: Optional[str] = None
    values: Dict[str, Optional[float]] = Field(default_factory=dict)


class TimeSeriesSpec(BaseModel):
    kind: Literal["timeSeries"] = "timeSeries"
    metrics: List[Parameter] = Field(default_factory=list)
    points: List[TimeSeriesPoint] = Field(default_factory=list)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    ranges: Dict[str, ValueRange] = Field(default_factory=dict)


class ScatterPoint(BaseModel):
    x: float
    y: float
    color_value: float
    color: str
    entity_id: Optional[str] = None


class ScatterSpec(BaseModel):
    kind: Literal["scatter"] = "scatter"
    x_axis: Axis
    y_axis: Axis
    color_by: ColorBy
    points: List[ScatterPoint] = Field(default_factory=list)
    correlation: Optional[float] = None
    x_range: ValueRange
    y_range: ValueRange
    color_range: ValueRange
    categories: List[Optional[str]] = Field(default_factory=list)


class HeatmapSpec(BaseModel):
    kind: Literal["heatmap"] = "heatmap"
    parameter: Parameter
    palette: List[str] = Field(default_factory=list)
    grid: Grid
    colors: List[List[str]] = Field(default_factory=list)
    value_range: ValueRange
    coverage: float = 0.0
    point_count: int = 0


RenderSpec = Annotated[
    Union[ProfileSpec, TimeSeriesSpec, ScatterSpec, HeatmapSpec],
    Field(discriminator="kind"),
]
RENDER_SPEC_ADAPTER: TypeAdapter = TypeAdapter(RenderSpec)


class VisualizationOptions(BaseModel):
    """Selector state of the visualization panel."""

    parameter: Parameter = "temperature"
    x_axis: Axis = "temperature"
    y_axis: Axis = "salinity"
    color_by: ColorBy = "depth"
    metrics: List[Parameter] = Field(default_factory=lambda: ["temperature", "salinity"])
    palette: str = "thermal"
