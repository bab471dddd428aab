"""Client-side project configuration.

A ProjectConfigStore is constructed by whoever owns the client and handed to
it; there is no module-level instance. Switching projects (a different API
deployment) goes through update(), which notifies subscribers so that open
HTTP clients can rebind.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_FUNCTION_URL = "http://localhost:8000/api/v1"


@dataclass(frozen=True)
class ProjectConfig:
    project_id: str
    anon_key: str
    function_url: str = DEFAULT_FUNCTION_URL
    region: str | None = None

    def is_valid(self) -> bool:
        return bool(self.project_id and self.anon_key and self.function_url)


class ClientSettings(BaseSettings):
    """Environment variables read by ProjectConfigStore.from_env()."""

    model_config = SettingsConfigDict(
        env_prefix="MVDB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    project_id: str = "local"
    anon_key: str = ""
    function_url: str = DEFAULT_FUNCTION_URL
    region: str | None = None


Listener = Callable[[ProjectConfig], None]


class ProjectConfigStore:
    """Holds the active ProjectConfig and notifies subscribers on change."""

    def __init__(self, config: ProjectConfig):
        self._initial = config
        self._config = config
        self._listeners: list[Listener] = []

    @classmethod
    def from_env(cls) -> "ProjectConfigStore":
        env = ClientSettings()
        return cls(
            ProjectConfig(
                project_id=env.project_id,
                anon_key=env.anon_key,
                function_url=env.function_url,
                region=env.region,
            )
        )

    def get(self) -> ProjectConfig:
        return self._config

    def update(self, **changes) -> ProjectConfig:
        """Replace some fields of the active config and notify subscribers."""
        old = self._config
        self._config = replace(old, **changes)
        if old.project_id != self._config.project_id:
            logger.info(f"Project switched from {old.project_id} to {self._config.project_id}")
        self._notify()
        return self._config

    def reset(self) -> ProjectConfig:
        """Go back to the config the store was created with."""
        self._config = self._initial
        self._notify()
        return self._config

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def storage_key(self, base_key: str) -> str:
        """Namespace a local cache key by project."""
        return f"{base_key}_{self._config.project_id}"

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._config)
