"""State owned by one client connection."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from scanner_server.collectors import CollectorRegistry
from scanner_server.documents import DocumentSnapshot, DocumentStore, TextChange
from scanner_server.engine import Scanner
from scanner_server.pipeline import (
    ClientLog,
    DiagnosticPublisher,
    ValidationPipeline,
    ValidationRun,
)
from scanner_server.schema import DEFAULT_PLUGINS, DEFAULT_SETTINGS, Settings
from scanner_server.settings import FetchConfiguration, select_configuration_source

logger = logging.getLogger(__name__)


def _lookup(source: object, *path: str) -> object:
    # Works for lsprotocol attrs objects (snake_case) and raw camelCase dicts.
    current = source
    for name in path:
        if current is None:
            return None
        if isinstance(current, dict):
            camel = name.split("_")[0] + "".join(part.title() for part in name.split("_")[1:])
            current = current.get(camel, current.get(name))
        else:
            current = getattr(current, name, None)
    return current


@dataclass(frozen=True)
class SessionCapabilities:
    configuration_pull: bool = False
    workspace_folders: bool = False
    related_information: bool = False

    @classmethod
    def from_client(cls, capabilities: object) -> SessionCapabilities:
        return cls(
            configuration_pull=bool(_lookup(capabilities, "workspace", "configuration")),
            workspace_folders=bool(_lookup(capabilities, "workspace", "workspace_folders")),
            related_information=bool(
                _lookup(
                    capabilities,
                    "text_document",
                    "publish_diagnostics",
                    "related_information",
                )
            ),
        )


class Session:
    """Documents, collectors, settings and the pipeline for one connection.

    Opening or changing a document schedules a validation task on the running
    event loop; :meth:`drain` waits until every scheduled run has finished.
    """

    def __init__(
        self,
        capabilities: SessionCapabilities,
        *,
        scanner: Scanner,
        publisher: DiagnosticPublisher,
        fetch_configuration: FetchConfiguration | None = None,
        defaults: Settings = DEFAULT_SETTINGS,
        client_log: ClientLog | None = None,
    ) -> None:
        self.capabilities = capabilities
        self._client_log = client_log or (lambda message: None)
        self.documents = DocumentStore()
        self.collectors = CollectorRegistry()
        self.configuration = select_configuration_source(
            capabilities.configuration_pull, fetch_configuration, defaults
        )
        self.pipeline = ValidationPipeline(
            documents=self.documents,
            collectors=self.collectors,
            configuration=self.configuration,
            scanner=scanner,
            publisher=publisher,
            capabilities=capabilities,
            default_plugins=defaults.scan_plugins_conf or DEFAULT_PLUGINS,
            client_log=self._client_log,
        )
        self._pending: set[asyncio.Task[ValidationRun | None]] = set()
        self._scheduled: dict[str, asyncio.Task[ValidationRun | None]] = {}
        self.documents.on_open(self._validate_soon)
        self.documents.on_change(self._validate_soon)
        self.documents.on_close(self._discard)

    def _validate_soon(self, snapshot: DocumentSnapshot) -> None:
        self.schedule(snapshot.uri)

    def schedule(self, uri: str) -> asyncio.Task[ValidationRun | None]:
        task = asyncio.get_running_loop().create_task(self.pipeline.validate(uri))
        self._pending.add(task)
        self._scheduled[uri] = task
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[ValidationRun | None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("validation task failed", exc_info=exc)

    def _discard(self, snapshot: DocumentSnapshot) -> None:
        uri = snapshot.uri
        self.configuration.discard(uri)
        self.collectors.discard(uri)
        self.pipeline.forget(uri)
        self._scheduled.pop(uri, None)

    def did_open(
        self, uri: str, language_id: str, version: int, text: str
    ) -> asyncio.Task[ValidationRun | None]:
        self.documents.open(uri, language_id, version, text)
        return self._scheduled[uri]

    def did_change(
        self, uri: str, version: int | None, changes: Sequence[TextChange]
    ) -> asyncio.Task[ValidationRun | None]:
        self.documents.change(uri, version, changes)
        return self._scheduled[uri]

    def did_close(self, uri: str) -> None:
        self.documents.close(uri)

    def did_change_configuration(self, payload: object = None) -> list[asyncio.Task]:
        self.configuration.invalidate(payload)
        self.collectors.clear_all_collectors()
        return self.revalidate_all()

    def did_change_watched_files(self, changes: Iterable[object] = ()) -> None:
        self._client_log(f"We received a file change event ({len(list(changes))} files)")

    def did_change_workspace_folders(self, event: object = None) -> None:
        self._client_log("Workspace folder change event received.")

    def revalidate_all(self) -> list[asyncio.Task]:
        return [self.schedule(snapshot.uri) for snapshot in self.documents.all()]

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        """Cancel in-flight validations; nothing is published afterwards."""
        for task in list(self._pending):
            task.cancel()
        self.configuration.close()
        for snapshot in self.documents.all():
            self.documents.close(snapshot.uri)
