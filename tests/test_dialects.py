from __future__ import annotations

from scanner_server.dialects import Dialect, is_supported, resolve_dialects


def test_resolve_dialects() -> None:
    assert resolve_dialects("javascript") == frozenset()
    assert resolve_dialects("typescript") == {Dialect.TYPESCRIPT}
    assert resolve_dialects("javascriptreact") == {Dialect.JSX}
    assert resolve_dialects("typescriptreact") == {Dialect.JSX, Dialect.TYPESCRIPT}
    assert resolve_dialects("python") == frozenset()


def test_supported_language_ids() -> None:
    assert is_supported("typescriptreact")
    assert not is_supported("json")
