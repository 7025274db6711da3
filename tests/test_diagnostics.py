from __future__ import annotations

from scanner_server.collectors import ErrorLevel, ScanError
from scanner_server.diagnostics import to_diagnostic, to_diagnostics
from scanner_server.documents import DocumentSnapshot
from scanner_server.session import SessionCapabilities

_DOC = DocumentSnapshot(uri="file:///w/a.js", language_id="javascript", version=3, text="12345\nabc")


def test_offsets_map_to_positions() -> None:
    error = ScanError(range=(0, 5), error_level=ErrorLevel.Error, plugin_tips="bad")
    diagnostic = to_diagnostic(error, _DOC, SessionCapabilities())
    assert (diagnostic.range.start.line, diagnostic.range.start.character) == (0, 0)
    assert (diagnostic.range.end.line, diagnostic.range.end.character) == (0, 5)
    assert diagnostic.severity == 1
    assert diagnostic.message == "Error: bad"
    assert diagnostic.source == "code-scanner"


def test_related_information_requires_capability_and_extra_msg() -> None:
    error = ScanError(
        range=(6, 9),
        error_level=ErrorLevel.Information,
        plugin_tips="look here",
        extra_msg="more detail",
        plugin="needTryCatch",
    )
    without = to_diagnostic(error, _DOC, SessionCapabilities(related_information=False))
    assert without.related_information is None
    assert "relatedInformation" not in without.to_payload()

    with_info = to_diagnostic(error, _DOC, SessionCapabilities(related_information=True))
    assert with_info.message == "Information: look here"
    assert with_info.code == "needTryCatch"
    assert len(with_info.related_information) == 1
    related = with_info.related_information[0]
    assert related.message == "more detail"
    assert related.location.uri == _DOC.uri
    assert related.location.range == with_info.range

    no_extra = ScanError(range=(6, 9), error_level=ErrorLevel.Hint, plugin_tips="x")
    assert to_diagnostic(no_extra, _DOC, SessionCapabilities(related_information=True)).related_information is None


def test_payload_uses_protocol_field_names() -> None:
    error = ScanError(range=(6, 8), error_level=ErrorLevel.Warning, plugin_tips="w", extra_msg="m")
    payload = to_diagnostics([error], _DOC, SessionCapabilities(related_information=True))[0].to_payload()
    assert payload["range"] == {"start": {"line": 1, "character": 0}, "end": {"line": 1, "character": 2}}
    assert payload["severity"] == 2
    assert payload["relatedInformation"][0]["location"]["uri"] == _DOC.uri
    assert "code" not in payload
