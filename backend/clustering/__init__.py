from .errors import ClusterError, NotFoundError, ValidationError
from .index import ClusterIndex, build_cluster_index
from .options import ClusterOptions
from .types import Cluster, Feature, GeoPoint, PointFeature, TileFeature

from geo.aoi import BBox


def build(points: list[GeoPoint], config: ClusterOptions | None = None) -> ClusterIndex:
    return build_cluster_index(points, config)


def query(index: ClusterIndex, bounds: BBox, zoom: float, *, padding: float = 0.0) -> list[Feature]:
    return index.get_clusters(bounds, zoom, padding=padding)


def expansion_zoom(index: ClusterIndex, cluster_id: int) -> int:
    return index.get_cluster_expansion_zoom(cluster_id)


__all__ = [
    "Cluster",
    "ClusterError",
    "ClusterIndex",
    "ClusterOptions",
    "Feature",
    "GeoPoint",
    "NotFoundError",
    "PointFeature",
    "TileFeature",
    "ValidationError",
    "build",
    "build_cluster_index",
    "expansion_zoom",
    "query",
]
