from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Generator
from urllib.parse import unquote, urlparse

from pygls.lsp.server import LanguageServer
from pygls.protocol import LanguageServerProtocol, lsp_method
from lsprotocol.types import (
    INITIALIZE,
    INITIALIZED,
    SHUTDOWN,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    WORKSPACE_DID_CHANGE_WATCHED_FILES,
    WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS,
    ConfigurationItem,
    ConfigurationParams,
    Diagnostic,
    DiagnosticRelatedInformation,
    DiagnosticSeverity,
    DidChangeConfigurationParams,
    DidChangeTextDocumentParams,
    DidChangeWatchedFilesParams,
    DidChangeWorkspaceFoldersParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    InitializedParams,
    InitializeParams,
    InitializeResult,
    Location,
    LogMessageParams,
    MessageType,
    Position,
    PublishDiagnosticsParams,
    Range,
    Registration,
    RegistrationParams,
    TextDocumentSyncKind,
)

from scanner_server import __version__
from scanner_server.config import default_settings
from scanner_server.documents import TextChange
from scanner_server.engine import PluginScanner, Scanner
from scanner_server.exceptions import DocumentNotOpen
from scanner_server.schema import DiagnosticDTO, RangeDTO
from scanner_server.session import Session, SessionCapabilities
from scanner_server.settings import SETTINGS_SECTION
from scanner_server.text import Position as TextPosition, TextRange

logger = logging.getLogger(__name__)

DEMO_REQUEST = "request"
DEMO_NOTIFICATION = "notification"


def restrict_capabilities(result: InitializeResult, client_capabilities) -> InitializeResult:
    """Advertise workspace folders only to clients that support them."""
    workspace = result.capabilities.workspace
    supported = SessionCapabilities.from_client(client_capabilities).workspace_folders
    if workspace is not None and not supported:
        workspace.workspace_folders = None
    return result


class ScannerLanguageServerProtocol(LanguageServerProtocol):
    @lsp_method(INITIALIZE)
    def lsp_initialize(
        self, params: InitializeParams
    ) -> Generator[Any, Any, InitializeResult]:
        result = yield from super().lsp_initialize(params)
        return restrict_capabilities(result, params.capabilities)


class ScannerLanguageServer(LanguageServer):
    def __init__(self, *args, scanner_factory: Callable[[], Scanner] = PluginScanner, **kwargs):
        super().__init__(*args, **kwargs)
        self.scanner_factory = scanner_factory
        self.config_path: Path | None = None
        self.session: Session | None = None


server = ScannerLanguageServer(
    "scanner-server",
    __version__,
    protocol_cls=ScannerLanguageServerProtocol,
    text_document_sync_kind=TextDocumentSyncKind.Incremental,
)


def _uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _workspace_root(params: InitializeParams) -> Path | None:
    if params.workspace_folders:
        return _uri_to_path(params.workspace_folders[0].uri)
    if params.root_uri:
        return _uri_to_path(params.root_uri)
    if params.root_path:
        return Path(params.root_path)
    return None


def _lsp_range(span: RangeDTO) -> Range:
    return Range(
        start=Position(line=span.start.line, character=span.start.character),
        end=Position(line=span.end.line, character=span.end.character),
    )


def _lsp_diagnostic(diagnostic: DiagnosticDTO) -> Diagnostic:
    related = None
    if diagnostic.related_information:
        related = [
            DiagnosticRelatedInformation(
                location=Location(uri=item.location.uri, range=_lsp_range(item.location.range)),
                message=item.message,
            )
            for item in diagnostic.related_information
        ]
    return Diagnostic(
        range=_lsp_range(diagnostic.range),
        message=diagnostic.message,
        severity=DiagnosticSeverity(diagnostic.severity),
        source=diagnostic.source,
        code=diagnostic.code,
        related_information=related,
    )


def _text_change(change) -> TextChange:
    span = getattr(change, "range", None)
    if span is None:
        return TextChange(text=change.text)
    return TextChange(
        text=change.text,
        range=TextRange(
            start=TextPosition(line=span.start.line, character=span.start.character),
            end=TextPosition(line=span.end.line, character=span.end.character),
        ),
    )


def _consume_reply(future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.debug("client rejected %s: %s", DEMO_REQUEST, exc)


class LspDiagnosticPublisher:
    def __init__(self, ls: LanguageServer) -> None:
        self._ls = ls

    def publish(self, uri: str, diagnostics: list[DiagnosticDTO], version: int | None) -> None:
        self._ls.text_document_publish_diagnostics(
            PublishDiagnosticsParams(
                uri=uri,
                version=version,
                diagnostics=[_lsp_diagnostic(item) for item in diagnostics],
            )
        )
        reply = self._ls.protocol.send_request(DEMO_REQUEST, {"text": "send request"})
        reply.add_done_callback(_consume_reply)
        self._ls.protocol.notify(DEMO_NOTIFICATION, {"text": "send notification"})


def _client_log(ls: LanguageServer) -> Callable[[str], None]:
    def _log(message: str) -> None:
        ls.window_log_message(LogMessageParams(type=MessageType.Log, message=message))

    return _log


def _fetch_configuration(ls: LanguageServer):
    async def _fetch(uri: str) -> object:
        items = await ls.workspace_configuration_async(
            ConfigurationParams(items=[ConfigurationItem(scope_uri=uri, section=SETTINGS_SECTION)])
        )
        return items[0] if items else None

    return _fetch


def create_session(ls: ScannerLanguageServer, params: InitializeParams) -> Session:
    capabilities = SessionCapabilities.from_client(params.capabilities)
    return Session(
        capabilities,
        scanner=ls.scanner_factory(),
        publisher=LspDiagnosticPublisher(ls),
        fetch_configuration=_fetch_configuration(ls),
        defaults=default_settings(root=_workspace_root(params), config_path=ls.config_path),
        client_log=_client_log(ls),
    )


def _session(ls: ScannerLanguageServer) -> Session | None:
    if ls.session is None:
        logger.warning("event received before initialize")
    return ls.session


@server.feature(INITIALIZE)
def initialize(ls: ScannerLanguageServer, params: InitializeParams) -> None:
    ls.session = create_session(ls, params)
    logger.info("session initialized: %s", ls.session.capabilities)


@server.feature(INITIALIZED)
async def initialized(ls: ScannerLanguageServer, params: InitializedParams) -> None:
    session = _session(ls)
    if session is None or not session.capabilities.configuration_pull:
        return
    await ls.client_register_capability_async(
        RegistrationParams(
            registrations=[
                Registration(id=str(uuid.uuid4()), method=WORKSPACE_DID_CHANGE_CONFIGURATION)
            ]
        )
    )


@server.feature(WORKSPACE_DID_CHANGE_CONFIGURATION)
def did_change_configuration(
    ls: ScannerLanguageServer, params: DidChangeConfigurationParams
) -> None:
    session = _session(ls)
    if session is None:
        return
    session.did_change_configuration(params.settings)


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: ScannerLanguageServer, params: DidOpenTextDocumentParams) -> None:
    session = _session(ls)
    if session is None:
        return
    doc = params.text_document
    session.did_open(doc.uri, doc.language_id, doc.version, doc.text)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: ScannerLanguageServer, params: DidChangeTextDocumentParams) -> None:
    session = _session(ls)
    if session is None:
        return
    doc = params.text_document
    try:
        session.did_change(
            doc.uri, doc.version, [_text_change(change) for change in params.content_changes]
        )
    except DocumentNotOpen as exc:
        logger.warning("%s", exc)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: ScannerLanguageServer, params: DidCloseTextDocumentParams) -> None:
    session = _session(ls)
    if session is None:
        return
    try:
        session.did_close(params.text_document.uri)
    except DocumentNotOpen as exc:
        logger.warning("%s", exc)


@server.feature(WORKSPACE_DID_CHANGE_WATCHED_FILES)
def did_change_watched_files(
    ls: ScannerLanguageServer, params: DidChangeWatchedFilesParams
) -> None:
    session = _session(ls)
    if session is not None:
        session.did_change_watched_files(params.changes)


@server.feature(WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
def did_change_workspace_folders(
    ls: ScannerLanguageServer, params: DidChangeWorkspaceFoldersParams
) -> None:
    session = _session(ls)
    if session is not None and session.capabilities.workspace_folders:
        session.did_change_workspace_folders(params.event)


@server.feature(SHUTDOWN)
def shutdown(ls: ScannerLanguageServer, params=None) -> None:
    if ls.session is not None:
        ls.session.close()
        ls.session = None


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Serve over stdio unless another start function is supplied."""
    (start_fn or server.start_io)()


def start_tcp(host: str, port: int) -> None:
    server.start_tcp(host, port)


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
