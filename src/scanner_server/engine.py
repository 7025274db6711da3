"""Seam between the validation pipeline and the code-scanning engine.

The engine is configured once per run with the bound plugin list, the source
text, its URI and the parser dialects, then run. It reports findings only
through the collectors bound to the plugins; ``run()`` returns nothing and
may raise (for example on source it cannot parse).

:class:`PluginScanner` is the default engine: it looks each plugin name up in
a :class:`PluginRegistry` and calls the registered rule with a
:class:`ScanContext`. Rules are published by other distributions under the
``scanner_server.plugins`` entry-point group.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any, Callable, Mapping, Protocol, Sequence

from scanner_server.collectors import ErrorCollector, ErrorLevel, ScanError
from scanner_server.dialects import Dialect
from scanner_server.exceptions import ScannerNotConfigured
from scanner_server.schema import PluginSpec

logger = logging.getLogger(__name__)

PLUGIN_ENTRY_POINT_GROUP = "scanner_server.plugins"


@dataclass(frozen=True)
class PluginBinding:
    name: str
    options: Mapping[str, Any]
    collector: ErrorCollector


@dataclass(frozen=True)
class ScanConfig:
    plugins: tuple[PluginBinding, ...]
    code: str
    file_path: str
    dialects: frozenset[Dialect] = frozenset()


class Scanner(Protocol):
    def configure(self, config: ScanConfig) -> None: ...

    def run(self) -> None: ...


def bind_plugins(
    specs: Sequence[PluginSpec], collector: ErrorCollector
) -> tuple[PluginBinding, ...]:
    """Attach one shared collector to every plugin, keeping declaration order."""
    return tuple(
        PluginBinding(name=spec.name, options=dict(spec.options), collector=collector)
        for spec in specs
    )


@dataclass(frozen=True)
class ScanContext:
    plugin: str
    code: str
    file_path: str
    dialects: frozenset[Dialect]
    options: Mapping[str, Any]
    collector: ErrorCollector

    def report(
        self,
        span: tuple[int, int],
        tips: str,
        *,
        level: ErrorLevel | int | str | None = None,
        extra_msg: str | None = None,
    ) -> ScanError:
        default_level = ErrorLevel.coerce(self.options.get("level"), ErrorLevel.Error)
        error = ScanError(
            range=(int(span[0]), int(span[1])),
            error_level=ErrorLevel.coerce(level, default_level),
            plugin_tips=tips,
            extra_msg=extra_msg,
            plugin=self.plugin,
        )
        self.collector.add(error)
        return error


Rule = Callable[[ScanContext], None]


@dataclass
class PluginRegistry:
    rules: dict[str, Rule] = field(default_factory=dict)

    def register(self, name: str, rule: Rule) -> None:
        self.rules[name] = rule

    def get(self, name: str) -> Rule | None:
        return self.rules.get(name)

    def names(self) -> list[str]:
        return sorted(self.rules)

    @classmethod
    def from_entry_points(cls, group: str = PLUGIN_ENTRY_POINT_GROUP) -> PluginRegistry:
        registry = cls()
        for entry in entry_points(group=group):
            try:
                rule = entry.load()
            except Exception:
                logger.exception("failed to load scan plugin %s", entry.name)
                continue
            registry.register(entry.name, rule)
        return registry


class PluginScanner:
    def __init__(self, registry: PluginRegistry | None = None) -> None:
        self.registry = registry if registry is not None else PluginRegistry.from_entry_points()
        self._config: ScanConfig | None = None
        self._missing: set[str] = set()

    def configure(self, config: ScanConfig) -> None:
        self._config = config

    def run(self) -> None:
        config = self._config
        if config is None:
            raise ScannerNotConfigured("scanner has no configuration")
        for binding in config.plugins:
            rule = self.registry.get(binding.name)
            if rule is None:
                if binding.name not in self._missing:
                    self._missing.add(binding.name)
                    logger.warning("unknown scan plugin %r skipped", binding.name)
                continue
            rule(
                ScanContext(
                    plugin=binding.name,
                    code=config.code,
                    file_path=config.file_path,
                    dialects=config.dialects,
                    options=binding.options,
                    collector=binding.collector,
                )
            )
