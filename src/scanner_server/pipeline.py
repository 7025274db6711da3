"""Document validation pipeline.

One ``validate(uri)`` run reads the document, resolves its settings, clears
and refills the document's collector through the scan engine, and publishes
the mapped diagnostics. Runs for the same URI may overlap while a settings
fetch is pending; each run takes a ticket and only the newest ticket for a
URI is allowed to publish, so late completions of superseded runs (or of runs
for documents closed in the meantime) are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from itertools import count
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Callable, Protocol, Sequence
from urllib.parse import unquote, urlparse

from scanner_server.collectors import CollectorRegistry
from scanner_server.diagnostics import to_diagnostics
from scanner_server.dialects import is_supported, resolve_dialects
from scanner_server.documents import DocumentSnapshot, DocumentStore
from scanner_server.engine import ScanConfig, Scanner, bind_plugins
from scanner_server.schema import DEFAULT_PLUGINS, DiagnosticDTO, PluginSpec, Settings
from scanner_server.settings import ConfigurationSource

if TYPE_CHECKING:
    from scanner_server.session import SessionCapabilities

logger = logging.getLogger(__name__)

ClientLog = Callable[[str], None]


class DiagnosticPublisher(Protocol):
    def publish(
        self, uri: str, diagnostics: list[DiagnosticDTO], version: int | None
    ) -> None: ...


class DiagnosticState(str, Enum):
    UNVALIDATED = "unvalidated"
    VALIDATING = "validating"
    PUBLISHED = "published"


@dataclass(frozen=True)
class ValidationRun:
    uri: str
    version: int
    diagnostics: tuple[DiagnosticDTO, ...]
    engine_failed: bool = False
    truncated: int = 0


def effective_plugins(
    settings: Settings, defaults: Sequence[PluginSpec] = DEFAULT_PLUGINS
) -> list[PluginSpec]:
    if settings.scan_plugins_conf:
        return list(settings.scan_plugins_conf)
    return list(defaults)


def _uri_path_parts(uri: str) -> dict[str, str]:
    path = PurePosixPath(unquote(urlparse(uri).path or ""))
    return {"dir": str(path.parent), "base": path.name, "ext": path.suffix, "name": path.stem}


class ValidationPipeline:
    def __init__(
        self,
        *,
        documents: DocumentStore,
        collectors: CollectorRegistry,
        configuration: ConfigurationSource,
        scanner: Scanner,
        publisher: DiagnosticPublisher,
        capabilities: SessionCapabilities,
        default_plugins: Sequence[PluginSpec] = DEFAULT_PLUGINS,
        client_log: ClientLog | None = None,
    ) -> None:
        self.documents = documents
        self.collectors = collectors
        self.configuration = configuration
        self.scanner = scanner
        self.publisher = publisher
        self.capabilities = capabilities
        self.default_plugins = tuple(default_plugins)
        self._client_log = client_log or (lambda message: None)
        self._tickets = count(1)
        self._latest: dict[str, int] = {}
        self._states: dict[str, DiagnosticState] = {}

    def state(self, uri: str) -> DiagnosticState:
        return self._states.get(uri, DiagnosticState.UNVALIDATED)

    def forget(self, uri: str) -> None:
        self._latest.pop(uri, None)
        self._states.pop(uri, None)

    def _is_current(self, uri: str, ticket: int) -> bool:
        return self._latest.get(uri) == ticket

    async def validate(self, uri: str) -> ValidationRun | None:
        snapshot = self.documents.get(uri)
        if snapshot is None or not is_supported(snapshot.language_id):
            return None
        ticket = next(self._tickets)
        self._latest[uri] = ticket
        self._states[uri] = DiagnosticState.VALIDATING

        settings = await self.configuration.get(uri)

        if not self._is_current(uri, ticket):
            logger.debug("validation %d of %s superseded", ticket, uri)
            return None
        snapshot = self.documents.get(uri)
        if snapshot is None:
            return None
        return self._run(snapshot, settings)

    def _run(self, snapshot: DocumentSnapshot, settings: Settings) -> ValidationRun:
        uri = snapshot.uri
        collector = self.collectors.get_or_create(uri)
        collector.clear_all()
        plugins = bind_plugins(effective_plugins(settings, self.default_plugins), collector)
        self._client_log(f"{uri} {_uri_path_parts(uri)} version={snapshot.version}")

        self.scanner.configure(
            ScanConfig(
                plugins=plugins,
                code=snapshot.text,
                file_path=uri,
                dialects=resolve_dialects(snapshot.language_id),
            )
        )
        engine_failed = False
        try:
            self.scanner.run()
        except Exception:
            engine_failed = True
            logger.warning("scan engine failed on %s", uri, exc_info=True)
            self._client_log(f"code parse error! ({uri})")

        diagnostics = to_diagnostics(collector.errors(), snapshot, self.capabilities)
        limit = settings.max_number_of_problems
        truncated = max(0, len(diagnostics) - limit)
        if truncated:
            logger.info(
                "%s: %d diagnostics over maxNumberOfProblems=%d dropped",
                uri,
                truncated,
                limit,
            )
            diagnostics = diagnostics[:limit]

        self.publisher.publish(uri, diagnostics, snapshot.version)
        self._states[uri] = DiagnosticState.PUBLISHED
        return ValidationRun(
            uri=uri,
            version=snapshot.version,
            diagnostics=tuple(diagnostics),
            engine_failed=engine_failed,
            truncated=truncated,
        )
