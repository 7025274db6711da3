from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from scanner_server.collectors import ErrorLevel, ScanError
from scanner_server.documents import DocumentSnapshot
from scanner_server.schema import (
    DiagnosticDTO,
    LocationDTO,
    PositionDTO,
    RangeDTO,
    RelatedInformationDTO,
)
from scanner_server.text import Position, line_starts, position_at

if TYPE_CHECKING:
    from scanner_server.session import SessionCapabilities

DIAGNOSTIC_SOURCE = "code-scanner"


def _position_dto(position: Position) -> PositionDTO:
    return PositionDTO(line=position.line, character=position.character)


def format_message(error: ScanError) -> str:
    return f"{ErrorLevel(error.error_level).name}: {error.plugin_tips}"


def to_diagnostic(
    error: ScanError,
    document: DocumentSnapshot,
    capabilities: SessionCapabilities,
    *,
    starts: list[int] | None = None,
) -> DiagnosticDTO:
    """Position a raw finding against the exact text of ``document``."""
    starts = starts if starts is not None else line_starts(document.text)
    start, end = error.range
    span = RangeDTO(
        start=_position_dto(position_at(document.text, start, starts)),
        end=_position_dto(position_at(document.text, end, starts)),
    )
    related = None
    if error.extra_msg and capabilities.related_information:
        related = [
            RelatedInformationDTO(
                location=LocationDTO(uri=document.uri, range=span.model_copy(deep=True)),
                message=error.extra_msg,
            )
        ]
    return DiagnosticDTO(
        range=span,
        severity=int(error.error_level),
        message=format_message(error),
        source=DIAGNOSTIC_SOURCE,
        code=error.plugin,
        related_information=related,
    )


def to_diagnostics(
    errors: Iterable[ScanError],
    document: DocumentSnapshot,
    capabilities: SessionCapabilities,
) -> list[DiagnosticDTO]:
    starts = line_starts(document.text)
    return [to_diagnostic(error, document, capabilities, starts=starts) for error in errors]
