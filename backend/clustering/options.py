from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ClusterOptions(BaseModel):
    """
    Cluster engine configuration.

    Defaults match the listings map: 75px radius, no clustering from zoom 20 on.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Clustering radius in pixels (relative to `extent`).
    radius: float = Field(default=75.0, gt=0.0)
    # At this zoom (and above) every feature is a singleton.
    max_zoom: int = Field(default=20, ge=0, le=30)
    min_zoom: int = Field(default=0, ge=0, le=30)
    min_points: int = Field(default=2, ge=2)
    # Tile extent in pixels.
    extent: int = Field(default=512, gt=0)
    # STRtree node capacity.
    node_size: int = Field(default=64, ge=2)

    @model_validator(mode="after")
    def _check_zoom_range(self) -> "ClusterOptions":
        if self.min_zoom > self.max_zoom:
            raise ValueError(
                f"min_zoom ({self.min_zoom}) must not exceed max_zoom ({self.max_zoom})"
            )
        return self
