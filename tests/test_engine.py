from __future__ import annotations

import pytest

from scanner_server.collectors import ErrorCollector, ErrorLevel
from scanner_server.dialects import Dialect
from scanner_server.engine import (
    PluginRegistry,
    PluginScanner,
    ScanConfig,
    ScanContext,
    bind_plugins,
)
from scanner_server.exceptions import ScannerNotConfigured
from scanner_server.schema import DEFAULT_PLUGINS, PluginSpec


def test_bind_plugins_shares_collector_in_order() -> None:
    collector = ErrorCollector()
    bindings = bind_plugins(DEFAULT_PLUGINS, collector)
    assert [binding.name for binding in bindings] == [spec.name for spec in DEFAULT_PLUGINS]
    assert all(binding.collector is collector for binding in bindings)
    assert bindings[0].options == {"level": 2}


def test_plugins_run_in_order_and_see_earlier_findings_through_collector() -> None:
    seen: list[tuple[str, int]] = []

    def first(context: ScanContext) -> None:
        context.report((0, 1), "first")
        seen.append((context.plugin, len(context.collector)))

    def second(context: ScanContext) -> None:
        seen.append((context.plugin, len(context.collector)))
        assert context.dialects == {Dialect.JSX}

    registry = PluginRegistry()
    registry.register("first", first)
    registry.register("second", second)
    collector = ErrorCollector()
    scanner = PluginScanner(registry)
    scanner.configure(
        ScanConfig(
            plugins=bind_plugins([PluginSpec(name="first"), PluginSpec(name="second")], collector),
            code="x",
            file_path="file:///a.jsx",
            dialects=frozenset({Dialect.JSX}),
        )
    )
    scanner.run()
    assert seen == [("first", 1), ("second", 1)]
    assert registry.names() == ["first", "second"]


def test_unknown_plugins_are_skipped() -> None:
    collector = ErrorCollector()
    scanner = PluginScanner(PluginRegistry())
    scanner.configure(
        ScanConfig(plugins=bind_plugins(DEFAULT_PLUGINS, collector), code="", file_path="f")
    )
    scanner.run()
    assert len(collector) == 0


def test_run_without_configuration_raises() -> None:
    with pytest.raises(ScannerNotConfigured):
        PluginScanner(PluginRegistry()).run()


def test_report_level_defaults_to_plugin_option() -> None:
    collector = ErrorCollector()
    context = ScanContext(
        plugin="needTryCatch",
        code="",
        file_path="f",
        dialects=frozenset(),
        options={"level": 2},
        collector=collector,
    )
    assert context.report((0, 0), "t").error_level is ErrorLevel.Warning
    assert context.report((1, 1), "t", level=4).error_level is ErrorLevel.Hint
    bare = ScanContext(
        plugin="p", code="", file_path="f", dialects=frozenset(), options={}, collector=collector
    )
    assert bare.report((2, 2), "t").error_level is ErrorLevel.Error


def test_registry_from_unknown_entry_point_group_is_empty() -> None:
    assert PluginRegistry.from_entry_points("scanner_server.tests.no_such_group").names() == []
