from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator


class ErrorLevel(IntEnum):
    # Numbering matches LSP DiagnosticSeverity.
    Error = 1
    Warning = 2
    Information = 3
    Hint = 4

    @classmethod
    def coerce(cls, value: object, default: ErrorLevel | None = None) -> ErrorLevel:
        if isinstance(value, ErrorLevel):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.name.lower() == value.strip().lower():
                    return member
        elif isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        return default if default is not None else cls.Error


@dataclass(frozen=True)
class ScanError:
    range: tuple[int, int]
    error_level: ErrorLevel
    plugin_tips: str
    extra_msg: str | None = None
    plugin: str | None = None


class ErrorCollector:
    """Ordered, de-duplicating sink for the findings of one validation run."""

    def __init__(self) -> None:
        self._errors: dict[ScanError, None] = {}

    def add(self, error: ScanError) -> None:
        self._errors.setdefault(error, None)

    def clear_all(self) -> None:
        self._errors.clear()

    def errors(self) -> tuple[ScanError, ...]:
        return tuple(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[ScanError]:
        return iter(self.errors())


class CollectorRegistry:
    def __init__(self) -> None:
        self._collectors: dict[str, ErrorCollector] = {}

    def get_or_create(self, uri: str) -> ErrorCollector:
        collector = self._collectors.get(uri)
        if collector is None:
            collector = ErrorCollector()
            self._collectors[uri] = collector
        return collector

    def clear(self, uri: str) -> None:
        collector = self._collectors.get(uri)
        if collector is not None:
            collector.clear_all()

    def discard(self, uri: str) -> None:
        self._collectors.pop(uri, None)

    def clear_all_collectors(self) -> None:
        for collector in self._collectors.values():
            collector.clear_all()

    def __contains__(self, uri: object) -> bool:
        return uri in self._collectors

    def __len__(self) -> int:
        return len(self._collectors)
