from __future__ import annotations

import pytest

from scanner_server.documents import DocumentStore, TextChange, apply_changes
from scanner_server.exceptions import DocumentNotOpen
from scanner_server.text import Position, TextRange


def _span(start_line: int, start_col: int, end_line: int, end_col: int) -> TextRange:
    return TextRange(
        start=Position(line=start_line, character=start_col),
        end=Position(line=end_line, character=end_col),
    )


def test_incremental_changes_apply_sequentially() -> None:
    store = DocumentStore()
    store.open("file:///a.js", "javascript", 1, "hello\nworld")
    snapshot = store.change(
        "file:///a.js",
        2,
        [
            TextChange(text="HELLO", range=_span(0, 0, 0, 5)),
            TextChange(text="!", range=_span(1, 5, 1, 5)),
            TextChange(text="", range=_span(0, 5, 1, 0)),
        ],
    )
    assert snapshot.text == "HELLOworld!"
    assert snapshot.version == 2
    assert store.get("file:///a.js") == snapshot


def test_unranged_change_replaces_text() -> None:
    assert apply_changes("old", [TextChange(text="new")]) == "new"


def test_non_increasing_version_is_bumped() -> None:
    store = DocumentStore()
    store.open("file:///a.js", "javascript", 5, "a")
    assert store.change("file:///a.js", 5, [TextChange(text="b")]).version == 6
    assert store.change("file:///a.js", None, [TextChange(text="c")]).version == 7
    assert store.change("file:///a.js", 10, [TextChange(text="d")]).version == 10


def test_unknown_document_raises() -> None:
    store = DocumentStore()
    with pytest.raises(DocumentNotOpen):
        store.change("file:///missing.js", 2, [TextChange(text="x")])
    with pytest.raises(DocumentNotOpen):
        store.close("file:///missing.js")


def test_lifecycle_listeners_fire() -> None:
    store = DocumentStore()
    events: list[tuple[str, int]] = []
    store.on_open(lambda snap: events.append(("open", snap.version)))
    store.on_change(lambda snap: events.append(("change", snap.version)))
    store.on_close(lambda snap: events.append(("close", snap.version)))
    store.open("file:///a.ts", "typescript", 1, "")
    store.change("file:///a.ts", 2, [TextChange(text="x")])
    store.close("file:///a.ts")
    assert events == [("open", 1), ("change", 2), ("close", 2)]
    assert "file:///a.ts" not in store
    assert len(store) == 0


def test_overlong_columns_stop_before_the_line_break() -> None:
    assert apply_changes("ab\ncd", [TextChange(text="Z", range=_span(0, 0, 0, 50))]) == "Z\ncd"
    assert apply_changes("ab\ncd", [TextChange(text="X", range=_span(0, 99, 0, 99))]) == "abX\ncd"
    assert apply_changes("ab\r\ncd", [TextChange(text="!", range=_span(0, 3, 0, 3))]) == "ab!\r\ncd"
