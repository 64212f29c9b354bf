"""
Runtime settings read from the environment (and a local `.env` file).

The store path, slot and import timezone are read on every call so tests can
switch them with `monkeypatch.setenv`; the remote endpoint is handed to the
sync bridge as an explicit `RemoteConfig`.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load variables from a local .env file, if present
load_dotenv()

DEFAULT_SLOT = "baby_events_v1"


class RemoteConfig(BaseModel):
    """Remote endpoint settings handed explicitly to the sync bridge."""

    url: str
    token: Optional[str] = None
    timeout: Optional[float] = None

    @field_validator("url")
    def _strip_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("remote url must not be empty")
        return v.rstrip("/")

    @property
    def has_token(self) -> bool:
        return bool(self.token and self.token.strip())


def db_path() -> Path:
    env_path = os.getenv("BABYLOG_DB_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return (Path.cwd() / "babylog.db").resolve()


def slot_name() -> str:
    return os.getenv("BABYLOG_SLOT") or DEFAULT_SLOT


def import_timezone() -> str:
    return os.getenv("BABYLOG_IMPORT_TZ") or "UTC"


def get_remote_config() -> Optional[RemoteConfig]:
    """Build a :class:`RemoteConfig` from the environment, or ``None`` if no URL is set."""
    url = os.getenv("BABYLOG_REMOTE_URL", "").strip()
    if not url:
        return None
    timeout = os.getenv("BABYLOG_REMOTE_TIMEOUT")
    return RemoteConfig(
        url=url,
        token=os.getenv("BABYLOG_REMOTE_TOKEN") or None,
        timeout=float(timeout) if timeout else None,
    )
