from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
import shapely
from shapely.strtree import STRtree

from clustering.errors import NotFoundError, ValidationError
from clustering.options import ClusterOptions
from clustering.types import Cluster, Feature, GeoPoint, PointFeature, TileFeature
from geo.aoi import BBox
from geo.projection import pixels_to_unit, project_lonlat, unproject_xy
from geo.tiles import is_valid_tile, tile_unit_bounds

logger = logging.getLogger(__name__)

_NONE = -1
# Cluster ids pack the origin zoom into the low 5 bits: (seed << 5) + (zoom + 1) + n_points.
_ZOOM_BITS = 5
_ZOOM_MASK = (1 << _ZOOM_BITS) - 1


@dataclass(frozen=True)
class _Level:
    """
    All nodes visible at one zoom: clusters formed at this zoom plus points/clusters
    carried over unchanged from the finer level.

    Arrays are parallel and read-only:
    - xs/ys: unit Web Mercator position (cluster centroid or point position)
    - lons/lats: output coordinates (original point coords for leaves)
    - counts: number of leaves under the node
    - cluster_ids: cluster id, or -1 for a leaf
    - leaves: input index for a leaf, or -1 for a cluster
    - parent_ids: id of the cluster this node merged into at zoom - 1, or -1
    """

    zoom: int
    xs: np.ndarray
    ys: np.ndarray
    lons: np.ndarray
    lats: np.ndarray
    counts: np.ndarray
    cluster_ids: np.ndarray
    leaves: np.ndarray
    parent_ids: np.ndarray
    tree: STRtree = field(repr=False)

    def __len__(self) -> int:
        return int(self.xs.size)


@dataclass(frozen=True)
class ClusterIndex:
    """
    Multi-resolution point index: one level per integer zoom in [min_zoom, max_zoom].

    Level `max_zoom` holds the raw points; every coarser level is built greedily from
    the next finer one. The index never changes after `build_cluster_index` returns;
    rebuilding produces a new value.
    """

    points: tuple[GeoPoint, ...]
    options: ClusterOptions
    _levels: tuple[_Level, ...] = field(repr=False)

    @property
    def min_zoom(self) -> int:
        return self.options.min_zoom

    @property
    def max_zoom(self) -> int:
        return self.options.max_zoom

    def __len__(self) -> int:
        return len(self.points)

    def get_clusters(self, bbox: BBox, zoom: float, *, padding: float = 0.0) -> list[Feature]:
        """
        Clusters and singleton points whose position falls inside `bbox` at `zoom`.

        Zoom is floored and clamped into [min_zoom, max_zoom]. `padding` widens the
        box by that many pixels so markers just outside the view are kept. It
        defaults to 0, so a plain call returns only what lies inside `bbox`;
        map views usually pass `options.radius`.
        Output follows index order, so identical inputs give identical lists.
        """
        z = self.limit_zoom(zoom)
        level = self._level(z)
        pad = pixels_to_unit(padding, extent=self.options.extent, zoom=z) if padding else 0.0

        seen: set[int] = set()
        out: list[Feature] = []
        for part in bbox.wrapped():
            xs, ys = project_lonlat(
                [part.min_lon, part.max_lon], [part.max_lat, part.min_lat]
            )
            idxs = _range(
                level,
                float(xs[0]) - pad,
                float(ys[0]) - pad,
                float(xs[1]) + pad,
                float(ys[1]) + pad,
            )
            for i in idxs:
                i = int(i)
                if i in seen:
                    continue
                seen.add(i)
                out.append(self._feature(level, i))
        return out

    def get_children(self, cluster_id: int) -> list[Feature]:
        """
        The nodes one zoom level finer that merged into `cluster_id`.
        """
        level, _origin_zoom, cid = self._origin(cluster_id)
        idxs = np.flatnonzero(level.parent_ids == cid)
        if idxs.size == 0:
            raise NotFoundError(cid)
        return [self._feature(level, int(i)) for i in idxs]

    def get_leaves(
        self, cluster_id: int, *, limit: int | None = 10, offset: int = 0
    ) -> list[GeoPoint]:
        """
        Input points under `cluster_id`, depth-first in child order.

        `limit=None` returns every leaf; `offset` skips that many leaves first.
        """
        if limit is not None and limit < 0:
            raise ValidationError(f"limit must be >= 0, got {limit}")
        if offset < 0:
            raise ValidationError(f"offset must be >= 0, got {offset}")

        out: list[GeoPoint] = []
        # Validate the id even when nothing would be returned.
        children = self.get_children(cluster_id)
        if limit == 0:
            return out
        self._append_leaves(out, children, limit, offset, 0)
        return out

    def get_cluster_expansion_zoom(self, cluster_id: int) -> int:
        """
        Smallest zoom at which `cluster_id` splits into more than one feature,
        capped at `max_zoom`.
        """
        _level, origin_zoom, current = self._origin(cluster_id)
        expansion_zoom = origin_zoom - 1
        while expansion_zoom <= self.max_zoom:
            children = self.get_children(current)
            expansion_zoom += 1
            if len(children) != 1 or not children[0].cluster:
                break
            current = children[0].id  # type: ignore[assignment]
        return min(expansion_zoom, self.max_zoom)

    def get_tile(self, z: int, x: int, y: int) -> list[TileFeature]:
        """
        Features of slippy tile z/x/y in tile pixel coordinates.

        The tile is padded by the clustering radius; edge tiles also pick up features
        just across the antimeridian.
        """
        if not is_valid_tile(z, x, y):
            raise ValidationError(f"Invalid tile {z}/{x}/{y}")
        z, x, y = int(z), int(x), int(y)
        level = self._level(self.limit_zoom(z))
        z2 = 2**z
        p = float(self.options.radius) / float(self.options.extent)
        min_x, min_y, max_x, max_y = tile_unit_bounds(z, x, y, pad=p)

        out: list[TileFeature] = []
        self._add_tile_features(out, _range(level, min_x, min_y, max_x, max_y), level, x, y, z2)
        if x == 0:
            self._add_tile_features(
                out, _range(level, 1.0 - p / z2, min_y, 1.0, max_y), level, z2, y, z2
            )
        if x == z2 - 1:
            self._add_tile_features(
                out, _range(level, 0.0, min_y, p / z2, max_y), level, -1, y, z2
            )
        return out

    def _add_tile_features(
        self,
        out: list[TileFeature],
        idxs: np.ndarray,
        level: _Level,
        x: int,
        y: int,
        z2: int,
    ) -> None:
        extent = self.options.extent
        for i in idxs:
            i = int(i)
            px = math.floor(extent * (float(level.xs[i]) * z2 - x) + 0.5)
            py = math.floor(extent * (float(level.ys[i]) * z2 - y) + 0.5)
            out.append(TileFeature(x=int(px), y=int(py), feature=self._feature(level, i)))

    def _append_leaves(
        self,
        out: list[GeoPoint],
        children: list[Feature],
        limit: int | None,
        offset: int,
        skipped: int,
    ) -> int:
        for child in children:
            if isinstance(child, Cluster):
                if skipped + child.point_count <= offset:
                    skipped += child.point_count
                else:
                    skipped = self._append_leaves(
                        out, self.get_children(child.id), limit, offset, skipped
                    )
            elif skipped < offset:
                skipped += 1
            else:
                out.append(child.point)
            if limit is not None and len(out) >= limit:
                break
        return skipped

    def _feature(self, level: _Level, i: int) -> Feature:
        leaf = int(level.leaves[i])
        if leaf != _NONE:
            return PointFeature(point=self.points[leaf])
        return Cluster(
            id=int(level.cluster_ids[i]),
            lon=float(level.lons[i]),
            lat=float(level.lats[i]),
            point_count=int(level.counts[i]),
        )

    def _origin(self, cluster_id: int) -> tuple[_Level, int, int]:
        """
        Decode `cluster_id` into the level holding its children, that level's zoom
        and the id as an int.
        """
        try:
            cid = int(cluster_id)
        except (TypeError, ValueError):
            raise NotFoundError(cluster_id) from None

        offset = cid - len(self.points)
        if offset < 0:
            raise NotFoundError(cid)
        origin_zoom = offset & _ZOOM_MASK
        seed = offset >> _ZOOM_BITS
        if origin_zoom <= self.min_zoom or origin_zoom > self.max_zoom:
            raise NotFoundError(cid)

        level = self._level(origin_zoom)
        # The seed node always merges into its own cluster.
        if seed >= len(level) or int(level.parent_ids[seed]) != cid:
            raise NotFoundError(cid)
        return level, origin_zoom, cid

    def _level(self, zoom: int) -> _Level:
        return self._levels[zoom - self.min_zoom]

    def limit_zoom(self, zoom: float) -> int:
        z = float(zoom)
        if math.isnan(z):
            raise ValidationError("zoom must be a number, got NaN")
        if z <= self.min_zoom:
            return self.min_zoom
        if z >= self.max_zoom:
            return self.max_zoom
        return int(math.floor(z))


def build_cluster_index(
    points: Sequence[GeoPoint], options: ClusterOptions | None = None
) -> ClusterIndex:
    """
    Validate `points` and build every zoom level from `max_zoom` down to `min_zoom`.

    Raises `ValidationError` naming the first point with a NaN or out-of-range
    coordinate. An empty list is fine and yields empty levels.
    """
    opts = options or ClusterOptions()
    started = time.perf_counter()

    pts = tuple(points)
    for p in pts:
        _validate_point(p)

    n = len(pts)
    point_lons = np.asarray([p.lon for p in pts], dtype=np.float64)
    point_lats = np.asarray([p.lat for p in pts], dtype=np.float64)
    xs, ys = project_lonlat(point_lons, point_lats)
    counts = np.ones(n, dtype=np.int64)
    cluster_ids = np.full(n, _NONE, dtype=np.int64)
    leaves = np.arange(n, dtype=np.int64)

    levels: list[_Level] = []
    for z in range(opts.max_zoom - 1, opts.min_zoom - 1, -1):
        tree = _build_tree(xs, ys, opts.node_size)
        nxt, parent_ids = _cluster_level(
            xs, ys, counts, cluster_ids, leaves, tree, zoom=z, options=opts, n_points=n
        )
        levels.append(
            _freeze_level(
                z + 1, xs, ys, counts, cluster_ids, leaves, parent_ids, tree,
                point_lons, point_lats,
            )
        )
        xs, ys, counts, cluster_ids, leaves = nxt

    levels.append(
        _freeze_level(
            opts.min_zoom,
            xs,
            ys,
            counts,
            cluster_ids,
            leaves,
            np.full(xs.size, _NONE, dtype=np.int64),
            _build_tree(xs, ys, opts.node_size),
            point_lons,
            point_lats,
        )
    )
    levels.reverse()

    logger.debug(
        "Built cluster index: points=%d zooms=%d..%d top_level_nodes=%d in %.1fms",
        n,
        opts.min_zoom,
        opts.max_zoom,
        len(levels[0]),
        (time.perf_counter() - started) * 1000.0,
    )
    return ClusterIndex(points=pts, options=opts, _levels=tuple(levels))


def _validate_point(p: GeoPoint) -> None:
    try:
        lon = float(p.lon)
        lat = float(p.lat)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Point {p.id!r} has non-numeric coordinates ({p.lon!r}, {p.lat!r})",
            point_id=p.id,
        ) from None
    if not (math.isfinite(lon) and -180.0 <= lon <= 180.0):
        raise ValidationError(
            f"Point {p.id!r} has invalid longitude {p.lon!r}", point_id=p.id
        )
    if not (math.isfinite(lat) and -90.0 <= lat <= 90.0):
        raise ValidationError(
            f"Point {p.id!r} has invalid latitude {p.lat!r}", point_id=p.id
        )


def _build_tree(xs: np.ndarray, ys: np.ndarray, node_size: int) -> STRtree:
    return STRtree(shapely.points(xs, ys), node_capacity=node_size)


def _range(level: _Level, min_x: float, min_y: float, max_x: float, max_y: float) -> np.ndarray:
    if len(level) == 0:
        return np.empty(0, dtype=np.int64)
    # Envelope intersection is exact for points (edges inclusive).
    idxs = level.tree.query(shapely.box(min_x, min_y, max_x, max_y))
    return np.sort(np.asarray(idxs, dtype=np.int64))


def _cluster_level(
    xs: np.ndarray,
    ys: np.ndarray,
    counts: np.ndarray,
    cluster_ids: np.ndarray,
    leaves: np.ndarray,
    tree: STRtree,
    *,
    zoom: int,
    options: ClusterOptions,
    n_points: int,
):
    """
    Greedy radius clustering of one level into the next coarser one (`zoom`).

    Nodes are visited in index order; each unvisited node absorbs every unvisited
    neighbour within the radius. Returns the coarser level's arrays and, for the
    input level, the id of the cluster each node merged into (-1 if carried over).
    """
    r = pixels_to_unit(options.radius, extent=options.extent, zoom=zoom)
    size = int(xs.size)
    geoms = tree.geometries
    visited = np.zeros(size, dtype=bool)
    parent_ids = np.full(size, _NONE, dtype=np.int64)

    out_x: list[float] = []
    out_y: list[float] = []
    out_counts: list[int] = []
    out_ids: list[int] = []
    out_leaves: list[int] = []

    def carry(i: int) -> None:
        out_x.append(float(xs[i]))
        out_y.append(float(ys[i]))
        out_counts.append(int(counts[i]))
        out_ids.append(int(cluster_ids[i]))
        out_leaves.append(int(leaves[i]))

    for i in range(size):
        if visited[i]:
            continue
        visited[i] = True

        found = np.sort(np.asarray(tree.query(geoms[i], predicate="dwithin", distance=r), dtype=np.int64))
        neighbors = found[~visited[found]] if found.size else found
        num_points = int(counts[i]) + int(counts[neighbors].sum())

        if neighbors.size and num_points >= options.min_points:
            members = np.concatenate(([i], neighbors))
            weights = counts[members]
            # Leaf-weighted centroid, so large clusters pull proportionally.
            cx = float((xs[members] * weights).sum()) / num_points
            cy = float((ys[members] * weights).sum()) / num_points
            cid = (i << _ZOOM_BITS) + (zoom + 1) + n_points

            visited[neighbors] = True
            parent_ids[members] = cid
            out_x.append(cx)
            out_y.append(cy)
            out_counts.append(num_points)
            out_ids.append(cid)
            out_leaves.append(_NONE)
        else:
            carry(i)
            # Too few leaves to cluster: keep the neighbours as they are.
            if neighbors.size:
                visited[neighbors] = True
                for j in neighbors:
                    carry(int(j))

    nxt = (
        np.asarray(out_x, dtype=np.float64),
        np.asarray(out_y, dtype=np.float64),
        np.asarray(out_counts, dtype=np.int64),
        np.asarray(out_ids, dtype=np.int64),
        np.asarray(out_leaves, dtype=np.int64),
    )
    return nxt, parent_ids


def _freeze_level(
    zoom: int,
    xs: np.ndarray,
    ys: np.ndarray,
    counts: np.ndarray,
    cluster_ids: np.ndarray,
    leaves: np.ndarray,
    parent_ids: np.ndarray,
    tree: STRtree,
    point_lons: np.ndarray,
    point_lats: np.ndarray,
) -> _Level:
    is_leaf = leaves != _NONE
    lons = np.empty(xs.size, dtype=np.float64)
    lats = np.empty(xs.size, dtype=np.float64)
    if is_leaf.any():
        lons[is_leaf] = point_lons[leaves[is_leaf]]
        lats[is_leaf] = point_lats[leaves[is_leaf]]
    if (~is_leaf).any():
        c_lons, c_lats = unproject_xy(xs[~is_leaf], ys[~is_leaf])
        lons[~is_leaf] = c_lons
        lats[~is_leaf] = c_lats

    arrays = (xs, ys, lons, lats, counts, cluster_ids, leaves, parent_ids)
    for a in arrays:
        a.flags.writeable = False
    return _Level(
        zoom=zoom,
        xs=xs,
        ys=ys,
        lons=lons,
        lats=lats,
        counts=counts,
        cluster_ids=cluster_ids,
        leaves=leaves,
        parent_ids=parent_ids,
        tree=tree,
    )
