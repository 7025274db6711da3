"""Language id to parser dialect resolution."""

from __future__ import annotations

from enum import Enum


class Dialect(str, Enum):
    JSX = "jsx"
    TYPESCRIPT = "typescript"


_DIALECTS_BY_LANGUAGE: dict[str, frozenset[Dialect]] = {
    "javascript": frozenset(),
    "typescript": frozenset({Dialect.TYPESCRIPT}),
    "javascriptreact": frozenset({Dialect.JSX}),
    "typescriptreact": frozenset({Dialect.JSX, Dialect.TYPESCRIPT}),
}


def is_supported(language_id: str) -> bool:
    return language_id in _DIALECTS_BY_LANGUAGE


def resolve_dialects(language_id: str) -> frozenset[Dialect]:
    return _DIALECTS_BY_LANGUAGE.get(language_id, frozenset())
