"""FastAPI service exposing credential verification, identifier lookups and matching.

Core endpoints:
GET /health  -> cheap liveness (always returns status ok if process up)
GET /live    -> alias of /health
GET /ready   -> readiness probe (verifies Mongo connectivity)
GET /auth/me -> normalized claim for the presented bearer token
GET /accounts/{ref}, /skills, /skills/{ref}, /equipment, /equipment/{ref}
GET /match/opening/{ref}?max_distance_km=50
POST /filter/talents -> legacy-compatible match list

Every {ref} accepts a native id or a legacy numeric id.
MongoDB ONLY.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .db import create_indexes, ping
from .deps import get_database
from .errors import InconsistentTaxonomy, InvalidReference, StorageFault
from .routers_auth import router as auth_router
from .routers_match import router as match_router
from .routers_taxonomy import router as taxonomy_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover
    # Set SKIP_BOOTSTRAP=1 to start without touching Mongo (e.g. tests, read replicas).
    if not os.getenv("SKIP_BOOTSTRAP"):
        try:
            create_indexes(get_database())
        except StorageFault as e:
            logging.warning(f"BOOT index creation skipped: {e}")
    yield


app = FastAPI(title="talentbridge API", version="0.1.0", lifespan=lifespan)

# Legacy mobile builds call cross-origin with a bearer header.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response


@app.exception_handler(StorageFault)
async def storage_fault_handler(request: Request, exc: StorageFault):
    logging.error(f"API storage_fault path={request.url.path} op={exc.operation}")
    return JSONResponse(status_code=503, content={"detail": "storage_unavailable", "retryable": True})


@app.exception_handler(InconsistentTaxonomy)
async def taxonomy_fault_handler(request: Request, exc: InconsistentTaxonomy):
    logging.error(f"API taxonomy_inconsistent path={request.url.path} family={exc.family} node={exc.node_id}")
    return JSONResponse(status_code=500, content={"detail": "taxonomy_inconsistent"})


@app.exception_handler(InvalidReference)
async def invalid_reference_handler(request: Request, exc: InvalidReference):
    return JSONResponse(status_code=400, content={"detail": "invalid_id"})


app.include_router(auth_router)
app.include_router(taxonomy_router)
app.include_router(match_router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/live")
def live():
    return {"status": "ok"}


@app.get("/ready")
def ready(db=Depends(get_database)):
    """Readiness probe: 200 when Mongo answers a ping, 503 otherwise."""
    try:
        ping(db)
    except StorageFault:
        return JSONResponse(status_code=503, content={"status": "not_ready", "mongo": False})
    return {"status": "ready", "mongo": True}
