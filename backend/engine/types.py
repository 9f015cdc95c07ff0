from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from clustering.index import ClusterIndex
from clustering.types import Feature, GeoPoint
from geo.aoi import BBox


@dataclass(frozen=True)
class MapContext:
    """
    Request-scoped map view coming from the frontend.
    """

    bbox: BBox
    zoom: float
    # Extra pixels around the view; keeps markers straddling the edge.
    padding: float = 0.0


@dataclass(frozen=True)
class Snapshot:
    """
    One built index plus the version it was published under.
    """

    version: int
    index: ClusterIndex


@dataclass(frozen=True)
class EngineResult:
    """
    What an engine returns for a given view.

    `snapshot` is the index the features came from; cluster lookups for these
    features must go through it.
    """

    features: list[Feature]
    zoom: int
    snapshot: Snapshot


class ClusterEngine(Protocol):
    """
    Point-set holder interface.

    - InMemoryEngine: keeps the current snapshot in process memory
    """

    def load(self, points: list[GeoPoint]) -> Snapshot: ...

    def get(self, ctx: MapContext) -> EngineResult: ...
