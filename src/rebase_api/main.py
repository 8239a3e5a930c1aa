from __future__ import annotations
import datetime
import json
import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import Response
from pydantic import ValidationError

from .settings import settings
from .errors import HashComputationError, PreconditionError
from .logutil import setup_logging
from .merkle import compute_boundary
from .models import BoundaryRequest, MergeRequest, TreeDocument
from .pipeline import fold_trees
from .middleware.size_limit import SizeLimitMiddleware

setup_logging(settings.log_level)
log = logging.getLogger(__name__)

app = FastAPI(title="Rebased Merkle Tree Service")
app.add_middleware(SizeLimitMiddleware)


async def _json_body(request: Request):
    ct = request.headers.get("content-type", "")
    if not ct.lower().startswith("application/json"):
        raise HTTPException(status_code=415, detail="unsupported content type")
    body = request.scope.get("_cached_body")
    if body is None:
        body = await request.body()
    try:
        return json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid JSON body")


@app.post("/trees/merge")
async def merge(request: Request):
    raw = await _json_body(request)
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="payload schema invalid")
    try:
        req = MergeRequest(**raw)
    except ValidationError:
        raise HTTPException(status_code=400, detail="payload schema invalid")

    try:
        trees = [doc.to_handle() for doc in req.trees]
        merged = fold_trees(trees)
    except PreconditionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except HashComputationError:
        log.exception("hash provider failed during merge")
        raise HTTPException(status_code=500, detail="hash computation failed")

    log.info("merged %d trees into %d leaves", len(trees), len(merged.chunks))
    return Response(
        content=TreeDocument.from_handle(merged).dumps(), media_type="application/json"
    )


@app.post("/trees/boundary")
async def boundary(request: Request):
    raw = await _json_body(request)
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="payload schema invalid")
    try:
        req = BoundaryRequest(**raw)
    except ValidationError:
        raise HTTPException(status_code=400, detail="payload schema invalid")
    return {"left_size": req.left_size, "boundary": compute_boundary(req.left_size)}


@app.get("/healthz")
async def healthz():
    return {"ok": True, "ts": datetime.datetime.utcnow().isoformat()}
