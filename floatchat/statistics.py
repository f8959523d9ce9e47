# floatchat/statistics.py
"""
Pure numeric routines used by the visualization mapper: value ranges,
Pearson correlation, color-scale quantization and lat/lon grid binning.

Degenerate inputs come back as sentinels (``None`` correlation, the
``DEFAULT_RANGE`` range) rather than exceptions, so callers must branch on
them before formatting.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .schemas import Grid, ValueRange


class EmptyInputError(ValueError):
    """Raised when a statistic is asked for over an empty sequence."""


DEFAULT_RANGE = ValueRange(min=0.0, max=1.0)

# Reserved token for cells/points without data; never a palette entry.
MISSING_COLOR = "rgba(148, 163, 184, 0.3)"

# Six-step palettes, low -> high (no yellows)
PALETTES: Dict[str, List[str]] = {
    "thermal": ["#1e3a8a", "#3b82f6", "#06b6d4", "#10b981", "#f97316", "#dc2626"],
    "ocean": ["#0c4a6e", "#0284c7", "#0ea5e9", "#38bdf8", "#7dd3fc", "#bae6fd"],
    "viridis": ["#581c87", "#7c3aed", "#8b5cf6", "#a78bfa", "#c4b5fd", "#ddd6fe"],
}

# Blue -> red hue ramp for scatter markers
SCATTER_PALETTE: List[str] = [f"hsl({240 - i * 30}, 70%, 50%)" for i in range(9)]


# =============================================================================
# Helpers
# =============================================================================
def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _field(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def _finite(values: Iterable[Any]) -> np.ndarray:
    arr = np.array([np.nan if v is None else v for v in values], dtype=float)
    return arr[np.isfinite(arr)]


# =============================================================================
# Range
# =============================================================================
def value_range(values: Sequence[Any]) -> ValueRange:
    """
    Min/max over the finite members of `values`.

    Raises EmptyInputError for an empty sequence. When every value is
    NaN/Infinity/None the degenerate DEFAULT_RANGE is returned instead so
    downstream color scaling stays well-defined.
    """
    items = list(values)
    if not items:
        raise EmptyInputError("value_range() needs at least one value")
    arr = _finite(items)
    if arr.size == 0:
        return DEFAULT_RANGE
    return ValueRange(min=float(arr.min()), max=float(arr.max()))


def safe_range(values: Sequence[Any]) -> ValueRange:
    try:
        return value_range(values)
    except EmptyInputError:
        return DEFAULT_RANGE


# =============================================================================
# Correlation
# =============================================================================
def pearson_correlation(xs: Sequence[Any], ys: Sequence[Any]) -> Optional[float]:
    """
    Pearson's r of two equal-length series.

    Returns None when fewer than two finite pairs remain or either series is
    constant; a ValueError is raised only for mismatched lengths.
    """
    if len(xs) != len(ys):
        raise ValueError(f"length mismatch: {len(xs)} != {len(ys)}")

    x = np.array([np.nan if v is None else v for v in xs], dtype=float)
    y = np.array([np.nan if v is None else v for v in ys], dtype=float)
    mask = np.isfinite(x) & np.isfinite(y)
    x, y = x[mask], y[mask]
    if x.size < 2:
        return None
    if np.all(x == x[0]) or np.all(y == y[0]):
        return None

    dx = x - x.mean()
    dy = y - y.mean()
    denom = float(np.sqrt(np.sum(dx * dx) * np.sum(dy * dy)))
    if denom == 0.0 or not math.isfinite(denom):
        return None
    r = float(np.sum(dx * dy)) / denom
    return max(-1.0, min(1.0, r))


# =============================================================================
# Color scale
# =============================================================================
def color_index(value: Any, vmin: float, vmax: float, size: int) -> Optional[int]:
    if size <= 0:
        raise ValueError("palette must not be empty")
    v = _as_float(value)
    lo, hi = _as_float(vmin), _as_float(vmax)
    if v is None or lo is None or hi is None:
        return None
    span = hi - lo
    ratio = (v - lo) / span if span > 0 else 0.0
    ratio = min(max(ratio, 0.0), 1.0)
    # ratio == 1.0 lands one past the end
    return min(int(math.floor(ratio * size)), size - 1)


def quantize_to_color_scale(
    value: Any,
    vmin: float,
    vmax: float,
    palette: Sequence[str],
    missing: str = MISSING_COLOR,
) -> str:
    idx = color_index(value, vmin, vmax, len(palette))
    if idx is None:
        return missing
    return palette[idx]


def get_palette(name: str) -> List[str]:
    try:
        return list(PALETTES[name])
    except KeyError:
        raise ValueError(f"unknown palette '{name}', expected one of {sorted(PALETTES)}")


# =============================================================================
# Grid
# =============================================================================
def build_grid(rows: Sequence[Any], lat_key: str, lon_key: str, value_key: str) -> Grid:
    """
    Bin rows onto a latitude x longitude matrix.

    Every row with both coordinates contributes its keys; latitudes are
    sorted north-to-south, longitudes west-to-east. A cell belongs to the
    first row at that coordinate, even when that row has no finite value;
    later rows at the same coordinate are ignored.
    """
    located = []
    lats, lons = set(), set()
    for row in rows:
        lat = _as_float(_field(row, lat_key))
        lon = _as_float(_field(row, lon_key))
        if lat is None or lon is None:
            continue
        lats.add(lat)
        lons.add(lon)
        located.append((lat, lon, _as_float(_field(row, value_key))))

    row_keys = sorted(lats, reverse=True)
    col_keys = sorted(lons)
    row_index = {lat: i for i, lat in enumerate(row_keys)}
    col_index = {lon: j for j, lon in enumerate(col_keys)}

    cells: List[List[Optional[float]]] = [[None] * len(col_keys) for _ in row_keys]
    claimed = set()
    for lat, lon, value in located:
        i, j = row_index[lat], col_index[lon]
        if (i, j) in claimed:
            continue
        claimed.add((i, j))
        cells[i][j] = value

    return Grid(cells=cells, row_keys=row_keys, col_keys=col_keys)


def coverage(grid: Grid) -> float:
    n_rows, n_cols = grid.shape
    total = n_rows * n_cols
    if total == 0:
        return 0.0
    return grid.populated / total
