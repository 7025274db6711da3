from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

DEFAULT_MAX_NUMBER_OF_PROBLEMS = 1000


class PluginSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(validation_alias=AliasChoices("name", "plugin"))
    options: Dict[str, Any] = {}


DEFAULT_PLUGINS: tuple[PluginSpec, ...] = (
    PluginSpec(name="needTryCatch", options={"level": 2}),
    PluginSpec(name="needHandlerInCatch"),
    PluginSpec(name="dangerousAndOperator"),
    PluginSpec(name="dangerousInitState"),
    PluginSpec(name="dangerousDefaultValue"),
)


class TraceSettings(BaseModel):
    server: Literal["off", "messages", "verbose"] = "off"


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_number_of_problems: int = Field(
        DEFAULT_MAX_NUMBER_OF_PROBLEMS, alias="maxNumberOfProblems", ge=0
    )
    scan_plugins_conf: Optional[List[PluginSpec]] = Field(None, alias="scanPluginsConf")
    trace: TraceSettings = TraceSettings()


DEFAULT_SETTINGS = Settings(scanPluginsConf=list(DEFAULT_PLUGINS))


class PositionDTO(BaseModel):
    line: int
    character: int


class RangeDTO(BaseModel):
    start: PositionDTO
    end: PositionDTO


class LocationDTO(BaseModel):
    uri: str
    range: RangeDTO


class RelatedInformationDTO(BaseModel):
    location: LocationDTO
    message: str


class DiagnosticDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    range: RangeDTO
    severity: int
    message: str
    source: str = "code-scanner"
    code: Optional[str] = None
    related_information: Optional[List[RelatedInformationDTO]] = Field(
        None, alias="relatedInformation"
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
