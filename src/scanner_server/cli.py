from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer

from scanner_server.collectors import ErrorLevel
from scanner_server.config import default_settings
from scanner_server.engine import PluginScanner, Scanner
from scanner_server.schema import DiagnosticDTO
from scanner_server.session import Session, SessionCapabilities

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LANGUAGE_IDS_BY_SUFFIX = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".jsx": "javascriptreact",
    ".tsx": "typescriptreact",
}


def configure_logging(level: str = "WARNING", log_file: Path | None = None) -> None:
    # stdout carries the protocol stream; never log there.
    handler: logging.Handler
    if log_file is not None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


def language_id_for(path: Path) -> str:
    return LANGUAGE_IDS_BY_SUFFIX.get(path.suffix.lower(), "plaintext")


class CollectingPublisher:
    def __init__(self) -> None:
        self.published: dict[str, list[DiagnosticDTO]] = {}

    def publish(self, uri: str, diagnostics: list[DiagnosticDTO], version: int | None) -> None:
        self.published[uri] = list(diagnostics)


def _expand_paths(paths: List[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                sorted(
                    candidate
                    for candidate in path.rglob("*")
                    if candidate.is_file()
                    and candidate.suffix.lower() in LANGUAGE_IDS_BY_SUFFIX
                    and "node_modules" not in candidate.parts
                )
            )
        else:
            files.append(path)
    return files


def scan_files(
    files: List[Path],
    *,
    scanner: Scanner,
    root: Path | None = None,
    config_path: Path | None = None,
    language_id: str | None = None,
) -> dict[str, list[DiagnosticDTO]]:
    publisher = CollectingPublisher()

    async def _scan() -> None:
        session = Session(
            SessionCapabilities(related_information=True),
            scanner=scanner,
            publisher=publisher,
            defaults=default_settings(root=root, config_path=config_path),
        )
        for path in files:
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.error("skipping %s: %s", path, exc)
                continue
            session.did_open(
                path.resolve().as_uri(), language_id or language_id_for(path), 1, text
            )
            await session.drain()

    asyncio.run(_scan())
    return publisher.published


@app.command()
def serve(
    tcp: bool = typer.Option(False, "--tcp", help="Listen on TCP instead of stdio."),
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(2087, "--port"),
    config: Optional[Path] = typer.Option(None, "--config"),
    log_level: str = typer.Option("WARNING", "--log-level"),
    log_file: Optional[Path] = typer.Option(None, "--log-file"),
) -> None:
    """Run the language server."""
    configure_logging(log_level, log_file)
    from scanner_server import server

    server.server.config_path = config
    if tcp:
        server.start_tcp(host, port)
    else:
        server.start()


@app.command()
def scan(
    paths: List[Path] = typer.Argument(..., exists=True),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    language_id: Optional[str] = typer.Option(None, "--language-id"),
    log_level: str = typer.Option("WARNING", "--log-level"),
) -> None:
    """Scan files with the installed plugins and print diagnostics as JSON."""
    configure_logging(log_level)
    published = scan_files(
        _expand_paths(paths),
        scanner=PluginScanner(),
        root=root,
        config_path=config,
        language_id=language_id,
    )
    payload = {
        uri: [diagnostic.to_payload() for diagnostic in diagnostics]
        for uri, diagnostics in sorted(published.items())
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    has_errors = any(
        diagnostic.severity == ErrorLevel.Error
        for diagnostics in published.values()
        for diagnostic in diagnostics
    )
    raise typer.Exit(code=1 if has_errors else 0)


def main() -> None:  # pragma: no cover
    app()
