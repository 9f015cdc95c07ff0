from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from clustering.config import listings_path, load_options
from clustering.errors import NotFoundError, ValidationError
from clustering.types import PointFeature
from engine.in_memory import InMemoryEngine
from engine.types import MapContext
from geo.aoi import BBox
from listings.loaders import load_points, parse_points

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_engine() -> InMemoryEngine:
    engine = InMemoryEngine(load_options())
    path = listings_path()
    if path is not None:
        engine.load(load_points(path))
    return engine


class ApiBBox(BaseModel):
    minLon: float
    minLat: float
    maxLon: float
    maxLat: float

    def to_bbox(self) -> BBox:
        return BBox(
            min_lon=self.minLon,
            min_lat=self.minLat,
            max_lon=self.maxLon,
            max_lat=self.maxLat,
        )


class ApiClustersRequest(BaseModel):
    bbox: ApiBBox
    zoom: float
    padding: float = Field(default=0.0, ge=0.0)


@app.exception_handler(ValidationError)
async def _validation_error(_request: Request, exc: ValidationError) -> JSONResponse:
    body: dict[str, Any] = {"detail": str(exc)}
    if exc.point_id is not None:
        body["pointId"] = exc.point_id
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(NotFoundError)
async def _not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404, content={"detail": str(exc), "clusterId": exc.cluster_id}
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.put("/listings")
def put_listings(
    body: Any = Body(...), engine: InMemoryEngine = Depends(get_engine)
):
    snap = engine.load(parse_points(body))
    return {"version": snap.version, "points": len(snap.index)}


@app.post("/clusters")
def post_clusters(
    body: ApiClustersRequest, engine: InMemoryEngine = Depends(get_engine)
):
    res = engine.get(
        MapContext(bbox=body.bbox.to_bbox(), zoom=body.zoom, padding=body.padding)
    )
    return {
        "version": res.snapshot.version,
        "zoom": res.zoom,
        "features": [f.to_geojson() for f in res.features],
    }


@app.get("/clusters/{cluster_id}/expansion-zoom")
def get_expansion_zoom(
    cluster_id: int,
    version: int | None = None,
    engine: InMemoryEngine = Depends(get_engine),
):
    snap = engine.resolve(version, cluster_id)
    return {
        "clusterId": cluster_id,
        "version": snap.version,
        "zoom": snap.index.get_cluster_expansion_zoom(cluster_id),
    }


@app.get("/clusters/{cluster_id}/children")
def get_children(
    cluster_id: int,
    version: int | None = None,
    engine: InMemoryEngine = Depends(get_engine),
):
    snap = engine.resolve(version, cluster_id)
    children = snap.index.get_children(cluster_id)
    return {"version": snap.version, "features": [f.to_geojson() for f in children]}


@app.get("/clusters/{cluster_id}/leaves")
def get_leaves(
    cluster_id: int,
    limit: int = Query(default=10, ge=0),
    offset: int = Query(default=0, ge=0),
    version: int | None = None,
    engine: InMemoryEngine = Depends(get_engine),
):
    snap = engine.resolve(version, cluster_id)
    leaves = snap.index.get_leaves(cluster_id, limit=limit, offset=offset)
    return {
        "version": snap.version,
        "features": [PointFeature(point=p).to_geojson() for p in leaves],
    }


@app.get("/tiles/{z}/{x}/{y}")
def get_tile(z: int, x: int, y: int, engine: InMemoryEngine = Depends(get_engine)):
    snap = engine.snapshot
    feats = snap.index.get_tile(z, x, y)
    return {
        "version": snap.version,
        "extent": snap.index.options.extent,
        "features": [
            {"x": tf.x, "y": tf.y, "feature": tf.feature.to_geojson()} for tf in feats
        ],
    }
