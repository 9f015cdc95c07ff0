from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from clustering.errors import ValidationError
from clustering.types import GeoPoint


def listing_to_point(listing: dict[str, Any], *, index: int = 0) -> GeoPoint:
    """
    Convert one listing record (`_id`, `lng`, `lat`, anything else) to a GeoPoint.

    The record itself becomes the point's props; `mainCategory` is resolved from
    `category.mainCategory` for renderers that pick icons by category.
    """
    lid = listing.get("_id")
    if lid is None:
        lid = listing.get("id")
    pid = str(lid) if lid is not None else f"listing-{index}"

    lon = _parse_coord(listing.get("lng", listing.get("lon")), pid, "lng")
    lat = _parse_coord(listing.get("lat"), pid, "lat")

    props: dict[str, Any] = dict(listing)
    if "mainCategory" not in props:
        category = listing.get("category")
        main = category.get("mainCategory") if isinstance(category, dict) else None
        props["mainCategory"] = main or "Unknown"

    return GeoPoint(id=pid, lon=lon, lat=lat, props=props)


def listings_to_points(listings: Iterable[Any]) -> list[GeoPoint]:
    out: list[GeoPoint] = []
    for i, row in enumerate(listings):
        if not isinstance(row, dict):
            pid = f"listing-{i}"
            raise ValidationError(f"Listing {pid!r} is not an object: {row!r}", point_id=pid)
        out.append(listing_to_point(row, index=i))
    return out


def geojson_to_points(data: dict[str, Any]) -> list[GeoPoint]:
    """
    Input: a GeoJSON FeatureCollection of Point features.

    Non-point features are skipped; properties pass through untouched.
    """
    features = data.get("features") or []
    if not isinstance(features, list):
        raise ValidationError("FeatureCollection features must be a list")

    out: list[GeoPoint] = []
    for i, feature in enumerate(features):
        if not isinstance(feature, dict):
            pid = f"point-{i}"
            raise ValidationError(f"Feature {pid!r} is not an object: {feature!r}", point_id=pid)
        geom = feature.get("geometry") or {}
        props = feature.get("properties") or {}
        if not isinstance(geom, dict) or not isinstance(props, dict):
            pid = f"point-{i}"
            raise ValidationError(
                f"Feature {pid!r} has a malformed geometry or properties", point_id=pid
            )
        if geom.get("type") != "Point":
            continue
        coords = geom.get("coordinates") or []

        fid = feature.get("id")
        if fid is None:
            fid = props.get("id", props.get("_id"))
        pid = str(fid) if fid is not None else f"point-{i}"

        if not isinstance(coords, (list, tuple)) or len(coords) < 2:
            raise ValidationError(f"Point {pid!r} has no coordinates", point_id=pid)
        out.append(
            GeoPoint(
                id=pid,
                lon=_parse_coord(coords[0], pid, "lon"),
                lat=_parse_coord(coords[1], pid, "lat"),
                props=props,
            )
        )
    return out


def parse_points(data: Any) -> list[GeoPoint]:
    """
    Accept either a GeoJSON FeatureCollection or a plain list of listing records.
    """
    if isinstance(data, dict) and data.get("type") == "FeatureCollection":
        return geojson_to_points(data)
    if isinstance(data, list):
        return listings_to_points(data)
    raise ValidationError("Expected a GeoJSON FeatureCollection or a list of listings")


def load_points(path: Path) -> list[GeoPoint]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return parse_points(data)


def _parse_coord(value: Any, pid: str, name: str) -> float:
    # Listings may carry coordinates as strings.
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Point {pid!r} has non-numeric {name} {value!r}", point_id=pid
        ) from None
