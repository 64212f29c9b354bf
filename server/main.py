# server/main.py
from __future__ import annotations

import logging
import os
from typing import Literal, Optional

from fastapi import Body, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError

from config.settings import RemoteConfig, get_remote_config
from db import repository as repo
from events.backup import export_json
from events.dump import render_sql_dump
from events.reconcile import ImportResult
from events.schema import Event, dump_event, parse_event
from events.tabular import render_csv
from remote import bridge

app = FastAPI(title="BabyLog API", version="0.1.0")

# --- CORS (configurable) ---
def _parse_cors_origins(env_val: str | None):
    """
    Parse comma-separated origins. If env is None or '*', return ['*'] (dev).
    Otherwise, return a cleaned list like ['https://app.example.com', 'https://example.com'].
    """
    if not env_val or env_val.strip() == "*":
        return ["*"]
    parts = [p.strip() for p in env_val.split(",")]
    return [p for p in parts if p] or ["*"]

_CORS_ORIGINS = _parse_cors_origins(os.getenv("CORS_ORIGINS"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)
if _CORS_ORIGINS == ["*"]:
    logger.warning("CORS is permissive ('*'). This is fine for dev but restrict in production via CORS_ORIGINS.")
else:
    logger.info("CORS allowed origins: %s", _CORS_ORIGINS)


# --- Helpers ---
def _remote_config() -> RemoteConfig:
    """
    Return the configured remote endpoint.

    Raises:
        HTTPException: 400 Bad Request when BABYLOG_REMOTE_URL is not set.
    """
    config = get_remote_config()
    if config is None:
        raise HTTPException(status_code=400, detail="Remote URL is not configured (BABYLOG_REMOTE_URL).")
    return config


def _parse_body(payload: dict) -> Event:
    """Validate a request body into an event; 422 with pydantic's errors on failure."""
    try:
        return parse_event(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))


def _sync_response(result: bridge.SyncResult) -> JSONResponse:
    """Successful syncs map to 200, remote failures to 502 with the typed result as body."""
    code = status.HTTP_200_OK if result.success else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


# --- Routes ---
@app.get("/health")
def health():
    """
    Indicate whether the service is healthy.

    Returns:
        dict: A JSON-serializable mapping with key `"ok"` set to `True` when the service is healthy.
    """
    return {"ok": True}


@app.get("/events")
def api_list_events(order: Optional[Literal["asc", "desc"]] = Query(default="desc")):
    return [dump_event(e) for e in repo.list_events(order=order)]


@app.post("/events", status_code=201)
def api_add_event(payload: dict = Body(...)):
    event = _parse_body(payload)
    repo.add_event(event)
    return dump_event(event)


@app.put("/events/{event_id}")
def api_update_event(event_id: str, payload: dict = Body(...)):
    """
    Replace a stored event wholesale.

    Raises:
        HTTPException: 400 if the body id differs from the path, 404 if no such event exists.
    """
    event = _parse_body(payload)
    if event.id != event_id:
        raise HTTPException(status_code=400, detail="Event id in body does not match the path.")
    if repo.get_event(event_id) is None:
        raise HTTPException(status_code=404, detail="Event not found.")
    repo.update_event(event)
    return dump_event(event)


@app.delete("/events/{event_id}")
def api_delete_event(event_id: str):
    if repo.get_event(event_id) is None:
        raise HTTPException(status_code=404, detail="Event not found.")
    repo.delete_event(event_id)
    return {"deleted": event_id}


class ImportRequest(BaseModel):
    format: Literal["csv", "json"] = "csv"
    content: str


@app.post("/import", response_model=ImportResult)
def api_import(payload: ImportRequest):
    """
    Merge a CSV export or JSON backup into the store.

    Duplicates are skipped; an unreadable payload yields `success: false` rather than an error status.
    """
    return repo.import_text(payload.content, fmt=payload.format)


@app.get("/export/json")
def api_export_json():
    return PlainTextResponse(export_json(repo.list_events(order="desc")), media_type="application/json")


@app.get("/export/csv")
def api_export_csv():
    return PlainTextResponse(render_csv(repo.get_all()), media_type="text/csv")


@app.get("/export/sql")
def api_export_sql():
    return PlainTextResponse(render_sql_dump(repo.get_all()))


@app.post("/sync/push")
def api_sync_push():
    result = bridge.push_events(_remote_config(), repo.get_all())
    return _sync_response(result)


@app.post("/sync/pull")
def api_sync_pull():
    result = bridge.pull_events(_remote_config(), repo.import_events)
    return _sync_response(result)


@app.get("/sync/status")
def api_sync_status():
    config = _remote_config()
    return {"url": config.url, "reachable": bridge.check_connection(config)}
