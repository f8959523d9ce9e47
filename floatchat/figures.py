# floatchat/figures.py
"""Plotly figure JSON for each RenderSpec; always returns a usable figure."""
from __future__ import annotations

from typing import Any, Dict

from .schemas import HeatmapSpec, ProfileSpec, RenderSpec, ScatterSpec, TimeSeriesSpec

MARGIN = {"l": 60, "r": 20, "t": 40, "b": 50}

UNITS = {
    "temperature": "°C",
    "salinity": "PSU",
    "pressure": "dbar",
    "oxygen": "μmol/kg",
    "chlorophyll": "mg/m³",
    "nitrate": "μmol/kg",
    "depth": "m",
}


def _label(name: str) -> str:
    unit = UNITS.get(name)
    return f"{name.capitalize()} ({unit})" if unit else name.capitalize()


def placeholder(title: str, note: str) -> Dict[str, Any]:
    return {
        "layout": {
            "title": title,
            "annotations": [{
                "text": note,
                "xref": "paper", "yref": "paper",
                "x": 0.5, "y": 0.5, "showarrow": False
            }],
            "margin": MARGIN,
        },
        "data": [{
            "type": "scatter",
            "mode": "markers",
            "x": [0], "y": [0],
            "marker": {"opacity": 0}  # invisible point to keep axes alive
        }]
    }


def profile_figure(spec: ProfileSpec) -> Dict[str, Any]:
    if not spec.series:
        return placeholder("Profile unavailable", "Ask about ocean profiles to see depth-based measurements.")
    data = []
    for index, entity_id in enumerate(spec.entity_ids):
        points = spec.series[f"{spec.parameter}_{entity_id}"]
        color = f"hsl({(index * 120 + 200) % 360}, 65%, 45%)"
        data.append({
            "type": "scatter",
            "mode": "lines+markers",
            "x": [p.value for p in points],
            "y": [p.depth for p in points],
            "name": f"Float {entity_id}",
            "line": {"color": color},
        })
    return {
        "layout": {
            "title": f"{spec.parameter.capitalize()} Profiles",
            "xaxis": {"title": _label(spec.parameter)},
            "yaxis": {"title": "Depth (m)", "autorange": "reversed"},
            "margin": MARGIN,
        },
        "data": data,
    }


def time_series_figure(spec: TimeSeriesSpec) -> Dict[str, Any]:
    if not spec.points:
        return placeholder("No Time Series Data", "Ask about temporal trends to see data over time.")
    x = [p.date.isoformat() for p in spec.points]
    data = [
        {
            "type": "scatter",
            "mode": "lines+markers",
            "x": x,
            "y": [p.values.get(m) for p in spec.points],
            "name": m.capitalize(),
        }
        for m in spec.metrics
    ]
    return {
        "layout": {
            "title": "Time Series Analysis",
            "xaxis": {"title": "Date"},
            "yaxis": {"title": ", ".join(_label(m) for m in spec.metrics)},
            "margin": MARGIN,
        },
        "data": data,
    }


def scatter_figure(spec: ScatterSpec) -> Dict[str, Any]:
    if not spec.points:
        return placeholder(
            "No data for scatter plot",
            f"Need {spec.x_axis.upper()} and {spec.y_axis.upper()} values.",
        )
    r = "N/A" if spec.correlation is None else f"{spec.correlation:.3f}"
    return {
        "layout": {
            "title": f"{spec.x_axis.capitalize()} vs {spec.y_axis.capitalize()} (r = {r})",
            "xaxis": {"title": _label(spec.x_axis)},
            "yaxis": {"title": _label(spec.y_axis)},
            "margin": MARGIN,
        },
        "data": [{
            "type": "scatter",
            "mode": "markers",
            "x": [p.x for p in spec.points],
            "y": [p.y for p in spec.points],
            "text": [p.entity_id for p in spec.points],
            "marker": {"color": [p.color for p in spec.points]},
            "name": f"{spec.x_axis} vs {spec.y_axis}",
        }]
    }


def heatmap_figure(spec: HeatmapSpec) -> Dict[str, Any]:
    if not spec.grid.row_keys:
        return placeholder("No Heatmap Data", "Ask about spatial distributions to see geographic patterns.")
    n = len(spec.palette)
    colorscale = [[i / max(n - 1, 1), c] for i, c in enumerate(spec.palette)]
    return {
        "layout": {
            "title": f"{spec.parameter.capitalize()} Heatmap ({spec.coverage * 100:.1f}% coverage)",
            "xaxis": {"title": "Longitude (°E)"},
            "yaxis": {"title": "Latitude (°N)"},
            "margin": MARGIN,
        },
        "data": [{
            "type": "heatmap",
            "z": spec.grid.cells,
            "x": spec.grid.col_keys,
            "y": spec.grid.row_keys,
            "zmin": spec.value_range.min,
            "zmax": spec.value_range.max,
            "colorscale": colorscale,
            "colorbar": {"title": _label(spec.parameter)},
        }]
    }


def to_figure(spec: RenderSpec) -> Dict[str, Any]:
    if isinstance(spec, ProfileSpec):
        return profile_figure(spec)
    if isinstance(spec, TimeSeriesSpec):
        return time_series_figure(spec)
    if isinstance(spec, ScatterSpec):
        return scatter_figure(spec)
    if isinstance(spec, HeatmapSpec):
        return heatmap_figure(spec)
    raise TypeError(f"not a render spec: {type(spec).__name__}")
