from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from clustering.options import ClusterOptions

# env var -> ClusterOptions field
_ENV_FIELDS: dict[str, str] = {
    "CLUSTERMAP_RADIUS": "radius",
    "CLUSTERMAP_MAX_ZOOM": "max_zoom",
    "CLUSTERMAP_MIN_ZOOM": "min_zoom",
    "CLUSTERMAP_MIN_POINTS": "min_points",
    "CLUSTERMAP_EXTENT": "extent",
    "CLUSTERMAP_NODE_SIZE": "node_size",
}


def config_path() -> Path | None:
    v = (os.getenv("CLUSTERMAP_CONFIG") or "").strip()
    return Path(v) if v else None


def listings_path() -> Path | None:
    v = (os.getenv("CLUSTERMAP_LISTINGS_PATH") or "").strip()
    return Path(v) if v else None


def _load_yaml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid cluster config yaml root: {path}")
    # Accept both a bare mapping and one nested under `cluster:`.
    nested = data.get("cluster")
    if isinstance(nested, dict):
        return nested
    return data


def load_options(path: Path | None = None) -> ClusterOptions:
    """
    Cluster options from (lowest to highest precedence): defaults, YAML file, env vars.

    `path` defaults to $CLUSTERMAP_CONFIG when set.
    """
    values: dict[str, Any] = {}
    p = path or config_path()
    if p is not None:
        values.update(_load_yaml(p))

    for env_name, field_name in _ENV_FIELDS.items():
        v = (os.getenv(env_name) or "").strip()
        if v:
            values[field_name] = v

    # pydantic coerces numeric strings and rejects anything out of range.
    return ClusterOptions.model_validate(values)
