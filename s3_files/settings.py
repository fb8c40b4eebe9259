from __future__ import annotations
"""Server settings persistence helpers."""

from dataclasses import asdict, dataclass, replace
import json
import logging
import os
from pathlib import Path
from typing import Mapping

from .profiles import ENV_PREFIX, KeychainStore

LOGGER = logging.getLogger(__name__)

ROUTING_POLICIES = ("explicit", "separator")
TOKEN_ENTRY = "auth-token"


@dataclass
class AppSettings:
    """Container for persistent server settings."""

    active_profile: str = ""
    auth_token: str = ""
    routing: str = "explicit"
    host: str = "127.0.0.1"
    port: int = 8000
    upload_max_concurrency: int = 4
    max_upload_bytes: int = 100 * 1024 * 1024
    root_label: str = "Home"


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`.

    The auth token never touches the JSON file; it is kept in the keychain.
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pys3files_settings.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore(service_name="pys3files-server")

    def load(self) -> AppSettings:
        defaults = AppSettings()
        token = self._keychain.get_secret(TOKEN_ENTRY)
        if not self._path.exists():
            return replace(defaults, auth_token=token)
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable settings file %s", self._path)
            return replace(defaults, auth_token=token)
        if not isinstance(data, dict):
            return replace(defaults, auth_token=token)

        routing = data.get("routing", defaults.routing)
        if routing not in ROUTING_POLICIES:
            routing = defaults.routing
        return AppSettings(
            active_profile=_string(data.get("active_profile"), defaults.active_profile),
            auth_token=token,
            routing=routing,
            host=_string(data.get("host"), defaults.host) or defaults.host,
            port=_positive_int(data.get("port"), defaults.port),
            upload_max_concurrency=_positive_int(
                data.get("upload_max_concurrency"), defaults.upload_max_concurrency
            ),
            max_upload_bytes=_positive_int(data.get("max_upload_bytes"), defaults.max_upload_bytes),
            root_label=_string(data.get("root_label"), defaults.root_label) or defaults.root_label,
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        self._keychain.set_secret(TOKEN_ENTRY, payload.pop("auth_token"))
        payload["port"] = max(int(settings.port), 1)
        payload["upload_max_concurrency"] = max(int(settings.upload_max_concurrency), 1)
        payload["max_upload_bytes"] = max(int(settings.max_upload_bytes), 1)
        if payload["routing"] not in ROUTING_POLICIES:
            payload["routing"] = AppSettings.routing
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Unwritable home directory; the running server keeps its settings.
            LOGGER.warning("Could not write settings file %s", self._path)


def apply_env_overrides(settings: AppSettings, environ: Mapping[str, str] | None = None) -> AppSettings:
    """Return ``settings`` updated from ``PYS3FILES_*`` variables."""

    env = os.environ if environ is None else environ
    updates: dict[str, object] = {}
    if env.get(f"{ENV_PREFIX}TOKEN"):
        updates["auth_token"] = env[f"{ENV_PREFIX}TOKEN"]
    if env.get(f"{ENV_PREFIX}PROFILE"):
        updates["active_profile"] = env[f"{ENV_PREFIX}PROFILE"]
    routing = env.get(f"{ENV_PREFIX}ROUTING")
    if routing:
        if routing not in ROUTING_POLICIES:
            raise ValueError(f"{ENV_PREFIX}ROUTING must be one of {', '.join(ROUTING_POLICIES)}")
        updates["routing"] = routing
    if env.get(f"{ENV_PREFIX}HOST"):
        updates["host"] = env[f"{ENV_PREFIX}HOST"]
    if env.get(f"{ENV_PREFIX}PORT"):
        updates["port"] = _positive_int(env[f"{ENV_PREFIX}PORT"], settings.port)
    return replace(settings, **updates)


def _string(value: object, default: str) -> str:
    return value if isinstance(value, str) else default


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default
