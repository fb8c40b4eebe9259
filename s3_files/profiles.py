from __future__ import annotations
"""Storage profile models and persistence."""
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Mapping

import keyring
from keyring.errors import KeyringError

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "PYS3FILES_"
ENV_PROFILE_NAME = "env"


@dataclass
class StorageProfile:
    """Credentials and addressing for one bucket."""

    name: str
    bucket: str
    region: str
    access_key: str
    secret_key: str
    endpoint_url: str = ""
    public_host: str = ""

    @property
    def resolved_public_host(self) -> str:
        if self.public_host:
            return self.public_host
        return f"s3.{self.region}.amazonaws.com" if self.region else "s3.amazonaws.com"

    @property
    def is_complete(self) -> bool:
        return all((self.bucket, self.region, self.access_key, self.secret_key))


def profile_from_env(
    environ: Mapping[str, str] | None = None,
    base: StorageProfile | None = None,
) -> StorageProfile | None:
    """Overlay ``PYS3FILES_*`` variables on ``base``.

    Returns ``None`` when neither a base profile nor any variable is present.
    """

    env = os.environ if environ is None else environ
    fields = {
        "endpoint_url": env.get(f"{ENV_PREFIX}ENDPOINT_URL"),
        "bucket": env.get(f"{ENV_PREFIX}BUCKET"),
        "region": env.get(f"{ENV_PREFIX}REGION"),
        "access_key": env.get(f"{ENV_PREFIX}ACCESS_KEY"),
        "secret_key": env.get(f"{ENV_PREFIX}SECRET_KEY"),
        "public_host": env.get(f"{ENV_PREFIX}PUBLIC_HOST"),
    }
    overrides = {name: value for name, value in fields.items() if value}
    if base is None and not overrides:
        return None
    if base is None:
        base = StorageProfile(name=ENV_PROFILE_NAME, bucket="", region="", access_key="", secret_key="")
    values = {**base.__dict__, **overrides}
    return StorageProfile(**values)


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "pys3files"):
        self._service_name = service_name

    def get_secret(self, entry_name: str) -> str:
        if not entry_name:
            return ""
        try:
            return keyring.get_password(self._service_name, entry_name) or ""
        except KeyringError:
            LOGGER.warning("Keychain lookup failed for '%s'", entry_name)
            return ""

    def set_secret(self, entry_name: str, secret: str) -> None:
        if not entry_name:
            return
        if not secret:
            self.delete_secret(entry_name)
            return
        try:
            keyring.set_password(self._service_name, entry_name, secret)
        except KeyringError:
            LOGGER.warning("Keychain write failed for '%s'", entry_name)

    def delete_secret(self, entry_name: str) -> None:
        if not entry_name:
            return
        try:
            keyring.delete_password(self._service_name, entry_name)
        except KeyringError:
            return


class ProfileStorage:
    """Read-only JSON store of named storage profiles.

    Profiles are written by hand. A ``secret_key`` left in the file is moved
    into the keychain on the next load and scrubbed from the file.
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pys3files_profiles.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[StorageProfile]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable profile file %s", self._path)
            return []

        profiles: list[StorageProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        for entry in data:
            try:
                name = entry["name"]
                secret_key = entry.get("secret_key", "")
                if secret_key:
                    saw_plaintext = True
                    self._keychain.set_secret(name, secret_key)
                else:
                    secret_key = self._keychain.get_secret(name)
                profile = StorageProfile(
                    name=name,
                    bucket=entry["bucket"],
                    region=entry.get("region", ""),
                    access_key=entry["access_key"],
                    secret_key=secret_key,
                    endpoint_url=entry.get("endpoint_url", ""),
                    public_host=entry.get("public_host", ""),
                )
            except KeyError:
                continue
            profiles.append(profile)
            sanitized.append(self._serialize(profile))
        if saw_plaintext:
            LOGGER.info("Moved plaintext secrets from %s into the keychain", self._path)
            self._path.write_text(json.dumps(sanitized, indent=2), encoding="utf-8")
        return profiles

    def get(self, name: str) -> StorageProfile:
        for profile in self.load():
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    @staticmethod
    def _serialize(profile: StorageProfile) -> dict[str, str]:
        return {
            "name": profile.name,
            "bucket": profile.bucket,
            "region": profile.region,
            "access_key": profile.access_key,
            "endpoint_url": profile.endpoint_url,
            "public_host": profile.public_host,
        }

