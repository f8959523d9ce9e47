# floatchat/ingest.py
"""
Read ARGO-style NetCDF files into MeasurementRow lists.

Accepts 1D and 2D (profile x level) layouts. Per-profile variables are
repeated across levels; if depth is missing but pressure exists, pressure is
used as depth. Rows without any physical observation are skipped.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import netCDF4 as nc
import numpy as np

from .schemas import MeasurementRow

logger = logging.getLogger(__name__)

ARGO_NAME_MAP = {
    "temperature": ["TEMP_ADJUSTED", "TEMP", "TEMP_K", "TEMP_C"],
    "salinity": ["PSAL_ADJUSTED", "PSAL", "SALINITY"],
    "pressure": ["PRES_ADJUSTED", "PRES", "PRESSURE"],
    "depth": ["DEPTH", "DEPH"],
    "latitude": ["LATITUDE", "LAT"],
    "longitude": ["LONGITUDE", "LON"],
    "time": ["JULD", "TIME", "DATE_TIME"],
    "float_id": ["PLATFORM_NUMBER", "PLATFORM_CODE", "FLOAT_SERIAL_NO"],
    "oxygen": ["DOXY_ADJUSTED", "DOXY", "OXYGEN"],
    "chlorophyll": ["CHLA_ADJUSTED", "CHLA", "CHLOROPHYLL"],
    "nitrate": ["NITRATE_ADJUSTED", "NITRATE"],
}

OBSERVED = ("temperature", "salinity", "pressure", "oxygen", "chlorophyll", "nitrate")

ARGO_EPOCH_UNITS = "days since 1950-01-01 00:00:00 UTC"


# =============================================================================
# JSON helpers (NumPy/bytes -> JSON-safe)
# =============================================================================
def json_safe(x):
    if isinstance(x, (np.integer,)):
        return int(x)
    if isinstance(x, (np.floating,)):
        return float(x)
    if isinstance(x, (np.ndarray,)):
        return [json_safe(v) for v in x.tolist()]
    if isinstance(x, (bytes, bytearray)):
        return x.decode("utf-8", errors="ignore")
    return x


# =============================================================================
# Array helpers
# =============================================================================
def _find_first_var(ds, candidates):
    for c in candidates:
        if c in ds.variables:
            return c
    return None


def _to_array(ds, varname):
    if not varname:
        return None
    arr = ds.variables[varname][:]
    if np.ma.isMaskedArray(arr):
        if arr.dtype.kind in ("f", "i", "u"):
            return np.array(arr.astype(float).filled(np.nan))
        return np.array(arr.filled(b"" if arr.dtype.kind == "S" else ""))
    return np.array(arr)


def _flatten(a: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if a is None:
        return None
    a = np.squeeze(a)
    if a.ndim == 2:
        return a.reshape(-1)
    return a


def _expand(arr: Optional[np.ndarray], length: int) -> Optional[np.ndarray]:
    if arr is None:
        return None
    arr = np.squeeze(arr)
    if arr.ndim == 0:
        return np.full(length, arr.item())
    if arr.size == length:
        return arr
    if length % arr.size == 0:
        rep = length // arr.size
        return np.repeat(arr, rep)
    out = np.full(length, np.nan)
    out[: min(length, arr.size)] = arr[: min(length, arr.size)]
    return out


def _float_ids(ds, varname) -> Optional[np.ndarray]:
    if not varname:
        return None
    raw = _to_array(ds, varname)
    if raw is None:
        return None
    if raw.dtype.kind == "S" and raw.ndim == 2:
        raw = nc.chartostring(raw)
    if raw.dtype.kind == "S":
        return np.array([v.decode("utf-8", errors="ignore").strip() for v in raw.reshape(-1)])
    if raw.dtype.kind == "U":
        return np.array([v.strip() for v in raw.reshape(-1)])
    if raw.dtype.kind == "f":
        return np.array(["" if np.isnan(v) else str(int(v)) if float(v).is_integer() else str(v) for v in raw.reshape(-1)])
    return np.array([str(v) for v in raw.reshape(-1)])


def _decode_times(ds, varname, values: Optional[np.ndarray]) -> List[Optional[datetime]]:
    if values is None:
        return []
    var = ds.variables[varname]
    units = getattr(var, "units", None) or ARGO_EPOCH_UNITS
    calendar = getattr(var, "calendar", "standard")
    cache: Dict[float, Optional[datetime]] = {}
    out: List[Optional[datetime]] = []
    for t in values.tolist():
        if t is None or not np.isfinite(t):
            out.append(None)
            continue
        if t not in cache:
            try:
                d = nc.num2date(
                    float(t),
                    units,
                    calendar,
                    only_use_cftime_datetimes=False,
                    only_use_python_datetimes=True,
                )
                cache[t] = d.replace(tzinfo=timezone.utc) if d.tzinfo is None else d
            except Exception as e:
                logger.warning(f"Cannot decode time {t!r} with units '{units}': {e}")
                cache[t] = None
        out.append(cache[t])
    return out


def _num(arr: Optional[np.ndarray], i: int) -> Optional[float]:
    if arr is None:
        return None
    val = arr[i]
    if isinstance(val, (int, float, np.integer, np.floating)) and not np.isnan(val):
        return float(val)
    return None


# =============================================================================
# Public API
# =============================================================================
def read_argo_rows(nc_path: str) -> List[MeasurementRow]:
    """Read every observation level of an ARGO NetCDF file into rows."""
    with nc.Dataset(nc_path, "r") as ds:
        found = {key: _find_first_var(ds, names) for key, names in ARGO_NAME_MAP.items()}

        # Must have at least one physical var to ingest anything
        if not any(found[k] for k in OBSERVED):
            logger.warning(f"No physical variables found in {nc_path}")
            return []

        series = {k: _flatten(_to_array(ds, found[k])) for k in OBSERVED + ("depth",)}
        candidates = [a for a in series.values() if isinstance(a, np.ndarray)]
        if not candidates:
            return []
        N = max(a.size for a in candidates)

        cols = {k: _expand(a, N) for k, a in series.items()}
        lat = _expand(_to_array(ds, found["latitude"]), N)
        lon = _expand(_to_array(ds, found["longitude"]), N)
        tim = _expand(_to_array(ds, found["time"]), N)
        dates = _decode_times(ds, found["time"], tim) if found["time"] else []
        try:
            fid = _expand(_float_ids(ds, found["float_id"]), N)
        except ValueError:
            logger.warning(f"Float ids in {nc_path} do not align with observations; ignoring them")
            fid = None

        if cols["depth"] is None and cols["pressure"] is not None:
            cols["depth"] = cols["pressure"].copy()

        rows: List[MeasurementRow] = []
        for i in range(N):
            observed = {k: _num(cols[k], i) for k in OBSERVED}
            depth = _num(cols["depth"], i)
            # keep row if at least one numeric observation exists
            if all(v is None for v in observed.values()) and depth is None:
                continue
            entity = str(fid[i]) if fid is not None else ""
            rows.append(
                MeasurementRow(
                    entity_id=entity if entity not in ("", "nan") else None,
                    date=dates[i] if dates else None,
                    depth=depth,
                    latitude=_num(lat, i),
                    longitude=_num(lon, i),
                    **observed,
                )
            )
    logger.info(f"Read {len(rows)} measurement rows from {nc_path}")
    return rows


def describe_dataset(nc_path: str) -> Dict[str, Any]:
    """Dimensions, variables and global attributes of a NetCDF file, JSON-safe."""
    with nc.Dataset(nc_path, "r") as ds:
        dimensions = {
            name: {"size": len(dim), "unlimited": dim.isunlimited()}
            for name, dim in ds.dimensions.items()
        }

        variables = {}
        for name, var in ds.variables.items():
            info = {
                "type": str(var.dtype),
                "dimensions": list(var.dimensions),
                "shape": list(var.shape),
            }
            attrs = {a: json_safe(getattr(var, a)) for a in var.ncattrs()}
            if attrs:
                info["attributes"] = attrs
            variables[name] = info

        global_attributes = {a: json_safe(getattr(ds, a)) for a in ds.ncattrs()}

    return {
        "dimensions": dimensions,
        "variables": variables,
        "global_attributes": global_attributes,
    }
