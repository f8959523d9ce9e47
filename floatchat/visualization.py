# floatchat/visualization.py
"""
Turn a result row set plus a visualization kind into a render-ready spec.

Every builder is a pure function of its inputs. Rows missing a field the
chart needs are dropped from that chart only; degenerate statistics surface
as sentinels (None correlation, default range) instead of errors.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from .schemas import (
    AXES,
    COLOR_FIELDS,
    PARAMETERS,
    HeatmapSpec,
    MeasurementRow,
    ProfilePoint,
    ProfileSpec,
    RenderSpec,
    ScatterPoint,
    ScatterSpec,
    TimeSeriesPoint,
    TimeSeriesSpec,
    VisualizationOptions,
)
from .statistics import (
    SCATTER_PALETTE,
    build_grid,
    coverage,
    get_palette,
    pearson_correlation,
    quantize_to_color_scale,
    safe_range,
)

logger = logging.getLogger(__name__)


def _check(name: str, allowed: Sequence[str], what: str) -> str:
    if name not in allowed:
        raise ValueError(f"{what} must be one of {', '.join(allowed)} (got '{name}')")
    return name


def coerce_rows(rows: Iterable[Any]) -> List[MeasurementRow]:
    """Validate raw mappings into MeasurementRow, dropping rows that can't be read."""
    out: List[MeasurementRow] = []
    dropped = 0
    for row in rows:
        if isinstance(row, MeasurementRow):
            out.append(row)
            continue
        if not isinstance(row, Mapping):
            dropped += 1
            continue
        try:
            out.append(MeasurementRow.model_validate(row))
        except ValidationError as e:
            dropped += 1
            logger.debug(f"Unreadable measurement row: {e}")
    if dropped:
        logger.warning(f"Dropped {dropped} unreadable measurement row(s)")
    return out


# =============================================================================
# Profile
# =============================================================================
def build_profile(rows: Sequence[MeasurementRow], parameter: str = "temperature") -> ProfileSpec:
    _check(parameter, PARAMETERS, "parameter")

    by_entity: Dict[str, Dict[float, float]] = {}
    for row in rows:
        value = row.value(parameter)
        if row.entity_id is None or row.depth is None or value is None:
            continue
        depths = by_entity.setdefault(row.entity_id, {})
        # first value seen at a depth wins
        depths.setdefault(row.depth, value)

    series: Dict[str, List[ProfilePoint]] = {}
    all_depths: List[float] = []
    all_values: List[float] = []
    for entity_id, depths in by_entity.items():
        points = [ProfilePoint(depth=d, value=v) for d, v in sorted(depths.items())]
        series[f"{parameter}_{entity_id}"] = points
        all_depths.extend(p.depth for p in points)
        all_values.extend(p.value for p in points)

    return ProfileSpec(
        parameter=parameter,
        entity_ids=list(by_entity),
        series=series,
        depth_range=safe_range(all_depths),
        value_range=safe_range(all_values),
        point_count=len(all_depths),
    )


# =============================================================================
# Time series
# =============================================================================
def build_time_series(
    rows: Sequence[MeasurementRow],
    metrics: Optional[Sequence[str]] = None,
) -> TimeSeriesSpec:
    metrics = list(metrics) if metrics is not None else ["temperature", "salinity"]
    for m in metrics:
        _check(m, PARAMETERS, "metric")

    dated = [row for row in rows if row.date is not None]
    # sorted() is stable: equal dates keep input order
    dated = sorted(dated, key=lambda r: r.date)

    points = [
        TimeSeriesPoint(
            date=row.date,
            entity_id=row.entity_id,
            values={m: row.value(m) for m in metrics},
        )
        for row in dated
    ]
    ranges = {m: safe_range([p.values[m] for p in points]) for m in metrics}

    return TimeSeriesSpec(
        metrics=metrics,
        points=points,
        start=points[0].date if points else None,
        end=points[-1].date if points else None,
        ranges=ranges,
    )


# =============================================================================
# Scatter
# =============================================================================
def build_scatter(
    rows: Sequence[MeasurementRow],
    x_axis: str = "temperature",
    y_axis: str = "salinity",
    color_by: str = "depth",
) -> ScatterSpec:
    _check(x_axis, AXES, "x_axis")
    _check(y_axis, AXES, "y_axis")
    _check(color_by, COLOR_FIELDS, "color_by")

    # entity_id is categorical: each platform is colored by its first-seen ordinal
    categories: List[Optional[str]] = []
    kept = []
    for row in rows:
        x, y = row.value(x_axis), row.value(y_axis)
        if x is None or y is None:
            continue
        if color_by == "entity_id":
            if row.entity_id not in categories:
                categories.append(row.entity_id)
            c = float(categories.index(row.entity_id))
        else:
            c = row.value(color_by)
            if c is None:
                c = row.depth if row.depth is not None else 0.0
        kept.append((x, y, c, row.entity_id))

    xs = [k[0] for k in kept]
    ys = [k[1] for k in kept]
    color_range = safe_range([k[2] for k in kept])

    points = [
        ScatterPoint(
            x=x,
            y=y,
            color_value=c,
            color=quantize_to_color_scale(c, color_range.min, color_range.max, SCATTER_PALETTE),
            entity_id=entity_id,
        )
        for x, y, c, entity_id in kept
    ]

    return ScatterSpec(
        x_axis=x_axis,
        y_axis=y_axis,
        color_by=color_by,
        points=points,
        correlation=pearson_correlation(xs, ys),
        x_range=safe_range(xs),
        y_range=safe_range(ys),
        color_range=color_range,
        categories=categories,
    )


# =============================================================================
# Heatmap
# =============================================================================
def build_heatmap(
    rows: Sequence[MeasurementRow],
    parameter: str = "temperature",
    palette: str = "thermal",
) -> HeatmapSpec:
    _check(parameter, PARAMETERS, "parameter")
    colors_available = get_palette(palette)

    grid = build_grid(rows, "latitude", "longitude", parameter)
    vrange = safe_range([row.value(parameter) for row in rows])
    colors = [
        [quantize_to_color_scale(cell, vrange.min, vrange.max, colors_available) for cell in cells]
        for cells in grid.cells
    ]

    return HeatmapSpec(
        parameter=parameter,
        palette=colors_available,
        grid=grid,
        colors=colors,
        value_range=vrange,
        coverage=coverage(grid),
        point_count=len(rows),
    )


# =============================================================================
# Dispatch
# =============================================================================
def map_visualization(
    kind: str,
    rows: Iterable[Any],
    options: Optional[VisualizationOptions] = None,
) -> RenderSpec:
    """
    Build the RenderSpec for `kind` from `rows`.

    `rows` may hold MeasurementRow instances or raw mappings; the input
    sequence is never modified. Unknown kinds and selector values raise
    ValueError; malformed rows only shrink the result.
    """
    options = options or VisualizationOptions()
    measurements = coerce_rows(rows)

    if kind == "profile":
        return build_profile(measurements, options.parameter)
    if kind == "timeSeries":
        return build_time_series(measurements, options.metrics)
    if kind == "scatter":
        return build_scatter(measurements, options.x_axis, options.y_axis, options.color_by)
    if kind == "heatmap":
        return build_heatmap(measurements, options.parameter, options.palette)
    raise ValueError(f"unknown visualization kind '{kind}'")
