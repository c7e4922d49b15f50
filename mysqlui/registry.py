"""Connection profile registry backed by the config file and a secret store."""

from __future__ import annotations

import logging
import uuid
from typing import Protocol, runtime_checkable

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .config import ConfigStore, ConnectionProfileConfig
from .models import DEFAULT_PORT, ConnectionOptions, ConnectionProfile

LOG = logging.getLogger(__name__)

KEYRING_SERVICE = "mysqlui"


class ProfileNotFoundError(KeyError):
    """Raised when a connection id is not present in the registry."""


@runtime_checkable
class SecretStore(Protocol):
    """Password storage addressed by connection id."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, secret: str) -> None: ...

    def delete(self, key: str) -> None: ...


class KeyringSecretStore:
    """Secret store delegating to the operating system keyring."""

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self._service = service

    def get(self, key: str) -> str | None:
        return keyring.get_password(self._service, key)

    def set(self, key: str, secret: str) -> None:
        keyring.set_password(self._service, key, secret)

    def delete(self, key: str) -> None:
        try:
            keyring.delete_password(self._service, key)
        except PasswordDeleteError:
            # Connections saved with an empty password never had a secret.
            LOG.debug("No stored secret to delete", extra={"profile_id": key})


class ConnectionRegistry:
    """CRUD over connection profiles plus the pinned table list."""

    def __init__(self, store: ConfigStore, secrets: SecretStore) -> None:
        self._store = store
        self._secrets = secrets

    def add(
        self,
        host: str,
        user: str,
        *,
        port: int = DEFAULT_PORT,
        password: str | None = None,
        cert_path: str | None = None,
        display_name: str | None = None,
    ) -> str:
        """Persist a new profile and return its generated id."""

        profile_id = uuid.uuid1().hex
        entry = ConnectionProfileConfig(
            host=host,
            user=user,
            port=port,
            cert_path=cert_path or None,
            display_name=display_name or None,
        )
        self._store.update(self._store.config.with_connection(profile_id, entry))
        if password:
            try:
                self._secrets.set(profile_id, password)
            except KeyringError:
                self._store.update(self._store.config.without_connection(profile_id))
                raise
        LOG.info("Added connection", extra={"profile_id": profile_id, "host": host})
        return profile_id

    def delete(self, profile_id: str) -> None:
        """Remove the profile, then its secret once the profile map is saved."""

        self._require(profile_id)
        self._store.update(self._store.config.without_connection(profile_id))
        self._secrets.delete(profile_id)
        LOG.info("Deleted connection", extra={"profile_id": profile_id})

    def rename(self, profile_id: str, new_name: str) -> ConnectionProfile:
        entry = self._require(profile_id)
        updated = entry.model_copy(update={"display_name": new_name or None})
        self._store.update(self._store.config.with_connection(profile_id, updated))
        return self._to_profile(profile_id, updated)

    def list(self) -> list[ConnectionProfile]:
        return [
            self._to_profile(profile_id, entry)
            for profile_id, entry in self._store.config.connections.items()
        ]

    def get(self, profile_id: str) -> ConnectionProfile:
        return self._to_profile(profile_id, self._require(profile_id))

    def password_for(self, profile_id: str) -> str | None:
        return self._secrets.get(profile_id)

    def options_for(self, profile: ConnectionProfile, database: str | None = None) -> ConnectionOptions:
        """Resolve the profile's secret into ready-to-use connection options."""

        return ConnectionOptions(
            host=profile.host,
            user=profile.user,
            password=self.password_for(profile.id),
            port=profile.port,
            database=database,
            cert_path=profile.cert_path,
        )

    def pinned_tables(self) -> list[str]:
        return list(self._store.config.pinned_tables)

    def pin(self, key: str) -> bool:
        """Append ``key`` to the pinned list; returns False when already pinned."""

        pins = self.pinned_tables()
        if key in pins:
            return False
        pins.append(key)
        self._store.update(self._store.config.with_pinned_tables(pins))
        return True

    def unpin(self, key: str) -> bool:
        pins = self.pinned_tables()
        if key not in pins:
            return False
        pins.remove(key)
        self._store.update(self._store.config.with_pinned_tables(pins))
        return True

    def _require(self, profile_id: str) -> ConnectionProfileConfig:
        entry = self._store.config.connections.get(profile_id)
        if entry is None:
            raise ProfileNotFoundError(profile_id)
        return entry

    @staticmethod
    def _to_profile(profile_id: str, entry: ConnectionProfileConfig) -> ConnectionProfile:
        return ConnectionProfile(
            id=profile_id,
            host=entry.host,
            user=entry.user,
            port=entry.port,
            cert_path=entry.cert_path,
            display_name=entry.display_name,
        )


__all__ = [
    "ConnectionRegistry",
    "KEYRING_SERVICE",
    "KeyringSecretStore",
    "ProfileNotFoundError",
    "SecretStore",
]
