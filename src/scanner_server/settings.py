"""Per-resource settings resolution.

Exactly one :class:`ConfigurationSource` is active per session, chosen at
initialization from the client's capabilities:

* :class:`PullConfigurationSource` asks the client for each resource's
  settings and memoizes the pending request per URI until invalidated.
* :class:`PushConfigurationSource` holds one global record that the client
  replaces wholesale through configuration-change notifications.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Protocol

from pydantic import ValidationError

from scanner_server.exceptions import ConfigurationUnavailable
from scanner_server.schema import DEFAULT_SETTINGS, Settings

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "languageServerExample"

FetchConfiguration = Callable[[str], Awaitable[object]]


class ConfigurationSource(Protocol):
    async def get(self, uri: str) -> Settings: ...

    def invalidate(self, payload: object = None) -> None: ...

    def discard(self, uri: str) -> None: ...

    def close(self) -> None: ...


def parse_settings(payload: object, defaults: Settings = DEFAULT_SETTINGS) -> Settings:
    if payload is None:
        return defaults
    if isinstance(payload, Settings):
        return payload
    if not isinstance(payload, Mapping):
        logger.warning("settings payload of type %s ignored", type(payload).__name__)
        return defaults
    try:
        return Settings.model_validate(dict(payload))
    except ValidationError as exc:
        logger.warning("malformed settings payload, using defaults: %s", exc)
        return defaults


class PullConfigurationSource:
    def __init__(
        self,
        fetch: FetchConfiguration,
        defaults: Settings = DEFAULT_SETTINGS,
    ) -> None:
        self._fetch = fetch
        self.defaults = defaults
        self._cache: dict[str, asyncio.Future[Settings]] = {}
        self._fetches: set[asyncio.Future[Settings]] = set()

    async def get(self, uri: str) -> Settings:
        pending = self._cache.get(uri)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve(uri))
            self._cache[uri] = pending
            self._fetches.add(pending)
            pending.add_done_callback(self._fetches.discard)
        return await asyncio.shield(pending)

    async def _fetch_payload(self, uri: str) -> object:
        try:
            return await self._fetch(uri)
        except Exception as exc:
            raise ConfigurationUnavailable(uri, str(exc)) from exc

    async def _resolve(self, uri: str) -> Settings:
        try:
            payload = await self._fetch_payload(uri)
        except ConfigurationUnavailable as exc:
            logger.warning("%s; falling back to default settings", exc)
            # Drop the failed entry so the next run asks again.
            if self._cache.get(uri) is asyncio.current_task():
                del self._cache[uri]
            return self.defaults
        return parse_settings(payload, self.defaults)

    def invalidate(self, payload: object = None) -> None:
        self._cache.clear()

    def discard(self, uri: str) -> None:
        self._cache.pop(uri, None)

    def close(self) -> None:
        """Cancel every fetch still waiting on the client."""
        self._cache.clear()
        for pending in list(self._fetches):
            pending.cancel()

    def cached_uris(self) -> list[str]:
        return sorted(self._cache)


class PushConfigurationSource:
    def __init__(self, defaults: Settings = DEFAULT_SETTINGS) -> None:
        self.defaults = defaults
        self.current = defaults

    async def get(self, uri: str) -> Settings:
        return self.current

    def invalidate(self, payload: object = None) -> None:
        section = payload.get(SETTINGS_SECTION) if isinstance(payload, Mapping) else None
        self.current = parse_settings(section, self.defaults)

    def discard(self, uri: str) -> None:
        return None

    def close(self) -> None:
        return None


def select_configuration_source(
    pull_supported: bool,
    fetch: FetchConfiguration | None,
    defaults: Settings = DEFAULT_SETTINGS,
) -> ConfigurationSource:
    if pull_supported and fetch is not None:
        return PullConfigurationSource(fetch, defaults)
    return PushConfigurationSource(defaults)
