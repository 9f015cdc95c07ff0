from __future__ import annotations

from functools import lru_cache

import numpy as np
from pyproj import Transformer


# Half of the EPSG:3857 world width in meters.
HALF_WORLD_M = 20037508.342789244
MAX_MERCATOR_LAT = 85.05112878


@lru_cache(maxsize=1)
def transformer_4326_to_3857() -> Transformer:
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


@lru_cache(maxsize=1)
def transformer_3857_to_4326() -> Transformer:
    return Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


def project_lonlat(lons, lats) -> tuple[np.ndarray, np.ndarray]:
    """
    Project lon/lat degrees into the unit Web Mercator square.

    x grows eastwards from 0 (lon -180) to 1 (lon 180); y grows southwards from
    0 (north edge) to 1 (south edge), like slippy-map pixel space.
    """
    lon_arr = np.asarray(lons, dtype=np.float64).reshape(-1)
    lat_arr = np.clip(
        np.asarray(lats, dtype=np.float64).reshape(-1), -MAX_MERCATOR_LAT, MAX_MERCATOR_LAT
    )
    if lon_arr.size == 0:
        return np.empty(0, dtype=np.float64), np.empty(0, dtype=np.float64)

    # x is linear in longitude; computing it directly keeps -180 and 180 distinct.
    xs = lon_arr / 360.0 + 0.5
    _mx, my = transformer_4326_to_3857().transform(np.zeros_like(lat_arr), lat_arr)
    ys = 0.5 - np.asarray(my, dtype=np.float64) / (2.0 * HALF_WORLD_M)
    return xs, np.clip(ys, 0.0, 1.0)


def project_point(lon: float, lat: float) -> tuple[float, float]:
    xs, ys = project_lonlat([lon], [lat])
    return float(xs[0]), float(ys[0])


def unproject_xy(xs, ys) -> tuple[np.ndarray, np.ndarray]:
    """
    Inverse of `project_lonlat` (unit square -> lon/lat degrees).
    """
    x_arr = np.asarray(xs, dtype=np.float64).reshape(-1)
    y_arr = np.asarray(ys, dtype=np.float64).reshape(-1)
    if x_arr.size == 0:
        return np.empty(0, dtype=np.float64), np.empty(0, dtype=np.float64)

    lons = (x_arr - 0.5) * 360.0
    my = (0.5 - y_arr) * 2.0 * HALF_WORLD_M
    _lon, lats = transformer_3857_to_4326().transform(np.zeros_like(my), my)
    return lons, np.asarray(lats, dtype=np.float64)


def pixels_to_unit(pixels: float, *, extent: int, zoom: int) -> float:
    """
    Screen pixels at `zoom` expressed in unit-square distance.

    At zoom z the world is `extent * 2**z` pixels wide.
    """
    return float(pixels) / (float(extent) * float(2**int(zoom)))
