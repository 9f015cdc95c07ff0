from __future__ import annotations

import logging
import threading
import time

from clustering.errors import NotFoundError
from clustering.index import build_cluster_index
from clustering.options import ClusterOptions
from clustering.types import GeoPoint
from engine.types import ClusterEngine, EngineResult, MapContext, Snapshot

logger = logging.getLogger(__name__)


class InMemoryEngine(ClusterEngine):
    """
    Holds the current point set as an immutable cluster index.

    `load` builds a brand-new index and swaps it in; readers that already hold the
    previous snapshot keep using it undisturbed.
    """

    def __init__(self, options: ClusterOptions | None = None) -> None:
        self.options = options or ClusterOptions()
        self._lock = threading.RLock()
        self._snapshot = Snapshot(version=0, index=build_cluster_index([], self.options))

    @property
    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def load(self, points: list[GeoPoint]) -> Snapshot:
        started = time.perf_counter()
        # Build outside the lock; only the swap is serialized.
        index = build_cluster_index(points, self.options)
        with self._lock:
            snap = Snapshot(version=self._snapshot.version + 1, index=index)
            self._snapshot = snap
        logger.info(
            "Rebuilt cluster index v%d: %d points in %.1fms",
            snap.version,
            len(index),
            (time.perf_counter() - started) * 1000.0,
        )
        return snap

    def get(self, ctx: MapContext) -> EngineResult:
        snap = self.snapshot
        zoom = snap.index.limit_zoom(ctx.zoom)
        features = snap.index.get_clusters(ctx.bbox, zoom, padding=ctx.padding)
        return EngineResult(features=features, zoom=zoom, snapshot=snap)

    def resolve(self, version: int | None, cluster_id: int) -> Snapshot:
        """
        Snapshot that `cluster_id` must be looked up in.

        A `version` other than the current one means the caller's cluster id came
        from an index that has since been replaced.
        """
        snap = self.snapshot
        if version is not None and int(version) != snap.version:
            logger.warning(
                "Rejecting cluster %s from stale index v%s (current v%d)",
                cluster_id,
                version,
                snap.version,
            )
            raise NotFoundError(cluster_id)
        return snap
