"""
Sync bridge to a PostgREST-style ``baby_events`` endpoint.

Push flattens every stored event into rows and posts them in one batch;
pull reads all rows, reconstructs events and merges them through the
reconciler. Neither direction raises for remote failures: each returns a
:class:`SyncResult` whose ``error_kind`` tells a connectivity problem
(``NETWORK``) from a server-side rejection (``HTTP``) or an unreadable
response (``PROTOCOL``).

At most one sync may be in flight per remote; the caller enforces this.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from config.settings import RemoteConfig
from events.reconcile import ImportResult
from events.rows import EventRow, flatten_all, reconstruct
from events.schema import Event

__all__ = ["SyncErrorKind", "SyncResult", "build_headers", "check_connection", "fetch_rows", "push_events", "pull_events"]

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error (CORS or server unreachable)"


class SyncErrorKind(str, Enum):
    NETWORK = "network"
    HTTP = "http"
    PROTOCOL = "protocol"


class SyncResult(BaseModel):
    success: bool
    count: int = 0
    error_kind: Optional[SyncErrorKind] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def network(cls, exc: Exception) -> "SyncResult":
        return cls(success=False, error_kind=SyncErrorKind.NETWORK, error=f"{NETWORK_ERROR_MESSAGE}: {exc}")

    @classmethod
    def http(cls, response: httpx.Response) -> "SyncResult":
        detail = response.text.strip() or response.reason_phrase
        return cls(
            success=False,
            error_kind=SyncErrorKind.HTTP,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}: {detail}",
        )

    @classmethod
    def protocol(cls, detail: str, status_code: Optional[int] = None) -> "SyncResult":
        return cls(success=False, error_kind=SyncErrorKind.PROTOCOL, status_code=status_code, error=detail)


def build_headers(config: RemoteConfig) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Prefer": "resolution=merge-duplicates",
    }
    if config.has_token:
        headers["Authorization"] = f"Bearer {config.token.strip()}"
    return headers


def _client(config: RemoteConfig, transport: Optional[httpx.BaseTransport]) -> httpx.Client:
    kwargs = {"transport": transport}
    if config.timeout is not None:
        kwargs["timeout"] = config.timeout
    return httpx.Client(**kwargs)


def check_connection(config: RemoteConfig, transport: Optional[httpx.BaseTransport] = None) -> bool:
    """``HEAD`` the endpoint; a 2xx or 405 answer counts as reachable."""
    try:
        with _client(config, transport) as client:
            response = client.head(config.url, headers=build_headers(config))
    except httpx.TransportError as exc:
        logger.warning("Remote %s unreachable: %s", config.url, exc)
        return False
    return response.is_success or response.status_code == 405


def push_events(
    config: RemoteConfig,
    events: List[Event],
    transport: Optional[httpx.BaseTransport] = None,
) -> SyncResult:
    """Send all events to the remote as one batch of rows."""
    rows = flatten_all(events)
    if not rows:
        return SyncResult(success=True, count=0, message="Nothing to push.")

    payload = [row.to_payload() for row in rows]
    try:
        with _client(config, transport) as client:
            response = client.post(config.url, json=payload, headers=build_headers(config))
    except httpx.TransportError as exc:
        logger.error("Sync push to %s failed: %s", config.url, exc)
        return SyncResult.network(exc)

    if not response.is_success:
        result = SyncResult.http(response)
        logger.error("Sync push to %s rejected: %s", config.url, result.error)
        return result

    logger.info("Pushed %d rows for %d events to %s", len(rows), len(events), config.url)
    return SyncResult(success=True, count=len(rows), message=f"Sent {len(rows)} records.")


def fetch_rows(config: RemoteConfig, transport: Optional[httpx.BaseTransport] = None) -> SyncResult | List[EventRow]:
    """Read every remote row, newest first; a :class:`SyncResult` on failure."""
    headers = build_headers(config)
    headers["Accept"] = "application/json"
    params = {"select": "*", "order": "event_datetime.desc"}
    try:
        with _client(config, transport) as client:
            response = client.get(config.url, params=params, headers=headers)
    except httpx.TransportError as exc:
        logger.error("Sync pull from %s failed: %s", config.url, exc)
        return SyncResult.network(exc)

    if not response.is_success:
        result = SyncResult.http(response)
        logger.error("Sync pull from %s rejected: %s", config.url, result.error)
        return result

    try:
        data = response.json()
    except ValueError as exc:
        return SyncResult.protocol(f"Response is not JSON: {exc}", response.status_code)
    if not isinstance(data, list):
        return SyncResult.protocol("Expected a JSON array of rows", response.status_code)

    try:
        return [EventRow.model_validate(item) for item in data]
    except ValidationError as exc:
        return SyncResult.protocol(f"Malformed row: {exc}", response.status_code)


def pull_events(
    config: RemoteConfig,
    merge_into: Callable[[List[Event]], ImportResult],
    transport: Optional[httpx.BaseTransport] = None,
) -> SyncResult:
    """Fetch remote rows, rebuild events and hand them to ``merge_into``.

    ``merge_into`` is normally :func:`db.repository.import_events`; pull never
    replaces local data.
    """
    fetched = fetch_rows(config, transport)
    if isinstance(fetched, SyncResult):
        return fetched

    try:
        events = [reconstruct(row) for row in fetched]
    except ValidationError as exc:
        return SyncResult.protocol(f"Row could not be rebuilt: {exc}")

    outcome = merge_into(events)
    if not outcome.success:
        return SyncResult(success=False, error=outcome.message, message=outcome.message)
    return SyncResult(success=True, count=outcome.count, message=outcome.message)
