"""
FastAPI application exposing an embedded database over HTTP.

The HTTP layer is a thin front end: every route maps onto one collection or
TTL store call, and library errors are translated into HTTP status codes.
"""

from __future__ import annotations

import argparse
import logging
import math
import os
from typing import Any

import uvicorn
from embedded_collections import (
    EmbeddedCollectionsError,
    EmbeddedDatabase,
    InvalidFormatError,
    InvalidInputError,
    KeyExistsError,
    KeyNotFoundError,
    NotFoundError,
    PersistenceConfig,
    PreconditionViolationError,
    StoreConfig,
    TTLConfig,
)
from fastapi import FastAPI, HTTPException

app = FastAPI(title="embedded-python-collections FastAPI example", version="0.1.0")
_LOGGER = logging.getLogger(__name__)

_db: EmbeddedDatabase | None = None


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value if value else default


def _get_env_optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value if value else None


def _parse_float_optional(name: str) -> float | None:
    raw = _get_env_optional(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number.") from exc


def _build_store_config() -> StoreConfig:
    sweep = _parse_float_optional("EC_TTL_SWEEP_SECONDS")
    return StoreConfig(
        persistence=PersistenceConfig(
            snapshot_path=_get_env("EC_SNAPSHOT_PATH", "embedded_collections_snapshot.json"),
            autosave_interval_seconds=_parse_float_optional("EC_AUTOSAVE_SECONDS") or 60.0,
            load_on_start=_get_env("EC_LOAD_ON_START", "true").lower() in ("1", "true", "yes", "on"),
        ),
        ttl=TTLConfig(enforce_expiry=sweep is not None, sweep_interval_seconds=sweep),
    )


def _require_db() -> EmbeddedDatabase:
    if _db is None:
        raise HTTPException(status_code=503, detail="Database not started.")
    return _db


def _parse_ttl(raw: Any) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise HTTPException(status_code=400, detail="ttl_seconds must be a number.")
    try:
        ttl = float(raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="ttl_seconds must be a number.") from exc
    if not math.isfinite(ttl):
        raise HTTPException(status_code=400, detail="ttl_seconds must be finite.")
    return ttl


def _http_error(exc: EmbeddedCollectionsError) -> HTTPException:
    if isinstance(exc, (NotFoundError, KeyNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, KeyExistsError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (InvalidInputError, InvalidFormatError, PreconditionViolationError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.on_event("startup")
def on_startup() -> None:
    global _db
    if _db is not None:
        return
    _db = EmbeddedDatabase(_build_store_config())
    _db.start()
    _LOGGER.info("Embedded database started snapshot=%s", _db.persistence.path)


@app.on_event("shutdown")
def on_shutdown() -> None:
    global _db
    db = _db
    if db is None:
        return
    try:
        db.stop()
    finally:
        _db = None


@app.get("/stats")
def stats() -> dict[str, Any]:
    return _require_db().stats()


@app.post("/collections/{name}/documents")
def insert_documents(name: str, payload: dict[str, Any] | list[dict[str, Any]]) -> dict[str, Any]:
    try:
        handle = _require_db().collection(name)
        if isinstance(payload, list):
            return {"inserted": handle.insert().many(payload)}
        return {"inserted": [handle.insert(payload).one()]}
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc


@app.post("/collections/{name}/find")
def find_documents(name: str, predicate: dict[str, Any], first: bool = False) -> dict[str, Any]:
    try:
        query = _require_db().collection(name).find(predicate)
        if first:
            return {"documents": [query.first()]}
        return {"documents": query.all()}
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc


@app.post("/collections/{name}/update")
def update_document(name: str, payload: dict[str, Any]) -> dict[str, Any]:
    predicate = payload.get("filter")
    patch = payload.get("patch")
    if not isinstance(predicate, dict) or not isinstance(patch, dict):
        raise HTTPException(status_code=400, detail="Payload must include 'filter' and 'patch' objects.")
    try:
        return {"updated": _require_db().collection(name).update(predicate, patch).one()}
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc


@app.post("/collections/{name}/delete")
def delete_documents(name: str, predicate: dict[str, Any], many: bool = False) -> dict[str, Any]:
    try:
        query = _require_db().collection(name).delete(predicate)
        if many:
            return {"deleted": query.all()}
        query.one()
        return {"deleted": 1}
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc


@app.post("/snapshot/save")
def snapshot_save() -> dict[str, Any]:
    try:
        return {"saved": _require_db().save()}
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc


@app.put("/kv/{key}")
def kv_set(key: str, payload: dict[str, Any]) -> dict[str, Any]:
    if "value" not in payload:
        raise HTTPException(status_code=400, detail="Payload must include 'value'.")
    ttl = _parse_ttl(payload.get("ttl_seconds"))
    try:
        _require_db().ttl.set(key, payload["value"], ttl_seconds=ttl)
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc
    return {"key": key}


@app.get("/kv/{key}")
def kv_get(key: str) -> dict[str, Any]:
    ttl = _require_db().ttl
    try:
        return {"value": ttl.get(key), "expires_at": ttl.expires_at(key)}
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc


@app.delete("/kv/{key}")
def kv_delete(key: str) -> dict[str, Any]:
    try:
        _require_db().ttl.delete(key)
    except EmbeddedCollectionsError as exc:
        raise _http_error(exc) from exc
    return {"deleted": key}


def main(port: int) -> int:
    logging.basicConfig(level=logging.INFO)
    host = _get_env("EC_API_HOST", "127.0.0.1")
    uvicorn.run("ec_example.fastapi_app:app", host=host, port=port, reload=False)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Serve an embedded database over HTTP.")
    parser.add_argument("--port", type=int, default=8000, help="The port number to use")
    args = parser.parse_args()
    raise SystemExit(main(args.port))
