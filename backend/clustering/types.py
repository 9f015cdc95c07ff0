from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias, Union


@dataclass(frozen=True)
class GeoPoint:
    """
    An input item: stable id, lon/lat in degrees, opaque metadata.

    `props` is never read or copied by the engine; renderers get the same object back.
    """

    id: str
    lon: float
    lat: float
    props: dict[str, Any]


@dataclass(frozen=True)
class PointFeature:
    point: GeoPoint
    cluster: Literal[False] = False

    @property
    def id(self) -> str:
        return self.point.id

    @property
    def lon(self) -> float:
        return self.point.lon

    @property
    def lat(self) -> float:
        return self.point.lat

    @property
    def point_count(self) -> int:
        return 1

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "Feature",
            "id": self.point.id,
            "properties": {**self.point.props, "cluster": False},
            "geometry": {"type": "Point", "coordinates": [self.lon, self.lat]},
        }


@dataclass(frozen=True)
class Cluster:
    """
    Aggregate of >= 2 leaves at one zoom level.

    Members are resolved through the index that produced the cluster
    (`ClusterIndex.get_children` / `get_leaves`).
    """

    id: int
    lon: float
    lat: float
    point_count: int
    cluster: Literal[True] = True

    @property
    def point_count_abbreviated(self) -> str | int:
        return abbreviate_count(self.point_count)

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "Feature",
            "id": self.id,
            "properties": {
                "cluster": True,
                "cluster_id": self.id,
                "point_count": self.point_count,
                "point_count_abbreviated": self.point_count_abbreviated,
            },
            "geometry": {"type": "Point", "coordinates": [self.lon, self.lat]},
        }


Feature: TypeAlias = Union[Cluster, PointFeature]


@dataclass(frozen=True)
class TileFeature:
    """
    A feature placed inside a slippy tile.

    `x`/`y` are integer pixel offsets in tile extent units; they may fall slightly
    outside [0, extent) because tiles are padded by the clustering radius.
    """

    x: int
    y: int
    feature: Feature


def abbreviate_count(count: int) -> str | int:
    # Half-up rounding: 1_050 -> "1.1k", 10_500 -> "11k".
    if count >= 10_000:
        return f"{math.floor(count / 1000 + 0.5)}k"
    if count >= 1_000:
        return f"{math.floor(count / 100 + 0.5) / 10:g}k"
    return count
