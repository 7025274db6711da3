"""Open-document state, synchronized from incremental change events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from scanner_server.exceptions import DocumentNotOpen
from scanner_server.text import TextRange, line_starts, offset_at

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSnapshot:
    uri: str
    language_id: str
    version: int
    text: str


@dataclass(frozen=True)
class TextChange:
    """One content change; ``range=None`` replaces the whole document."""

    text: str
    range: Optional[TextRange] = None


Listener = Callable[[DocumentSnapshot], None]


def apply_changes(text: str, changes: Iterable[TextChange]) -> str:
    for change in changes:
        if change.range is None:
            text = change.text
            continue
        starts = line_starts(text)
        start = offset_at(text, change.range.start, starts)
        end = offset_at(text, change.range.end, starts)
        if end < start:
            start, end = end, start
        text = text[:start] + change.text + text[end:]
    return text


class DocumentStore:
    def __init__(self) -> None:
        self._documents: dict[str, DocumentSnapshot] = {}
        self._on_open: list[Listener] = []
        self._on_change: list[Listener] = []
        self._on_close: list[Listener] = []

    def on_open(self, listener: Listener) -> None:
        self._on_open.append(listener)

    def on_change(self, listener: Listener) -> None:
        self._on_change.append(listener)

    def on_close(self, listener: Listener) -> None:
        self._on_close.append(listener)

    def open(self, uri: str, language_id: str, version: int, text: str) -> DocumentSnapshot:
        snapshot = DocumentSnapshot(uri=uri, language_id=language_id, version=version, text=text)
        self._documents[uri] = snapshot
        _notify(self._on_open, snapshot)
        return snapshot

    def change(
        self, uri: str, version: int | None, changes: Iterable[TextChange]
    ) -> DocumentSnapshot:
        current = self._documents.get(uri)
        if current is None:
            raise DocumentNotOpen(uri)
        if version is None or version <= current.version:
            if version is not None:
                logger.warning(
                    "non-increasing version %s for %s (current %s)",
                    version,
                    uri,
                    current.version,
                )
            version = current.version + 1
        snapshot = DocumentSnapshot(
            uri=uri,
            language_id=current.language_id,
            version=version,
            text=apply_changes(current.text, changes),
        )
        self._documents[uri] = snapshot
        _notify(self._on_change, snapshot)
        return snapshot

    def close(self, uri: str) -> DocumentSnapshot:
        snapshot = self._documents.pop(uri, None)
        if snapshot is None:
            raise DocumentNotOpen(uri)
        _notify(self._on_close, snapshot)
        return snapshot

    def get(self, uri: str) -> DocumentSnapshot | None:
        return self._documents.get(uri)

    def all(self) -> list[DocumentSnapshot]:
        return list(self._documents.values())

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)


def _notify(listeners: list[Listener], snapshot: DocumentSnapshot) -> None:
    for listener in listeners:
        listener(snapshot)
