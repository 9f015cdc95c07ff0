from __future__ import annotations

from dataclasses import dataclass


WORLD_MIN_LON = -180.0
WORLD_MAX_LON = 180.0


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees.

    Convention used throughout this repo:
    - minLon (west), minLat (south), maxLon (east), maxLat (north)
    - west > east means the box crosses the antimeridian.
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @classmethod
    def world(cls) -> "BBox":
        return cls(min_lon=-180.0, min_lat=-90.0, max_lon=180.0, max_lat=90.0)

    @classmethod
    def from_list(cls, values: list[float] | tuple[float, ...]) -> "BBox":
        """
        Build from `[west, south, east, north]` (the order map SDKs use for bounds).
        """
        if len(values) != 4:
            raise ValueError(f"Expected 4 bbox values, got {len(values)}")
        w, s, e, n = (float(v) for v in values)
        return cls(min_lon=w, min_lat=s, max_lon=e, max_lat=n)

    def wrapped(self) -> list["BBox"]:
        """
        Normalize longitudes into [-180, 180] and clamp latitudes into [-90, 90].

        Returns one box, or two when the view crosses the antimeridian
        (eastern half first, then western half).
        """
        min_lat = max(-90.0, min(90.0, float(self.min_lat)))
        max_lat = max(-90.0, min(90.0, float(self.max_lat)))

        if float(self.max_lon) - float(self.min_lon) >= 360.0:
            return [
                BBox(
                    min_lon=WORLD_MIN_LON,
                    min_lat=min_lat,
                    max_lon=WORLD_MAX_LON,
                    max_lat=max_lat,
                )
            ]

        # 180 on either edge is the right edge of the map, never -180.
        min_lon = 180.0 if float(self.min_lon) == 180.0 else _wrap_lon(self.min_lon)
        max_lon = 180.0 if float(self.max_lon) == 180.0 else _wrap_lon(self.max_lon)

        if min_lon > max_lon:
            return [
                BBox(min_lon=min_lon, min_lat=min_lat, max_lon=WORLD_MAX_LON, max_lat=max_lat),
                BBox(min_lon=WORLD_MIN_LON, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat),
            ]
        return [BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)]

    def contains(self, lon: float, lat: float) -> bool:
        for part in self.wrapped():
            if part.min_lon <= lon <= part.max_lon and part.min_lat <= lat <= part.max_lat:
                return True
        return False


def _wrap_lon(lon: float) -> float:
    # Python's float modulo is non-negative for a positive divisor.
    return ((float(lon) + 180.0) % 360.0) - 180.0
