from __future__ import annotations


class ClusterError(Exception):
    """Base class for cluster engine errors."""


class ValidationError(ClusterError, ValueError):
    """
    Input rejected by the cluster engine (bad coordinates, NaN zoom, bad tile).

    `point_id` identifies the offending GeoPoint when the error came from `build`.
    """

    def __init__(self, message: str, *, point_id: str | None = None) -> None:
        super().__init__(message)
        self.point_id = point_id


class NotFoundError(ClusterError, LookupError):
    """The cluster id does not belong to the index it was looked up in."""

    def __init__(self, cluster_id: int) -> None:
        super().__init__(f"Cluster {cluster_id} not found in this index")
        self.cluster_id = cluster_id
