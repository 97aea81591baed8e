"""Persisted template mapping models."""

# Module responsibilities:
# - Model the TemplateMetadata JSON persisted next to each template (scalar + array mappings).
# - Tell scalar from array mappings by value shape inside the single ``mappings`` dict.
# - Offer helpers to split, merge, build and sanity-check mapping payloads.

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .schema import TemplateAnalysis, is_valid_cell_address, is_valid_column, is_valid_row, split_address


class MappingError(ValueError):
    """Raised when mapping configuration is invalid or cannot be parsed."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ArrayMapping(_CamelModel):
    """Table fill instruction: one row per item of ``source``."""

    type: Literal["array"]
    source: str
    start_row: int = Field(alias="startRow")
    fields: Dict[str, int] = Field(default_factory=dict)


class HeaderSnapshot(_CamelModel):
    column: int
    value: str
    suggested_field: Optional[str] = Field(default=None, alias="suggestedField")


class StaticCellSnapshot(_CamelModel):
    address: str
    row: Optional[int] = None
    column: Optional[int] = None
    label: str = ""
    value: Any = None
    suggested_field: Optional[str] = Field(default=None, alias="suggestedField")


class TemplateMetadataAnalysis(_CamelModel):
    """Analysis snapshot kept so a mapping can be re-edited later."""

    sheet_name: Optional[str] = Field(default=None, alias="sheetName")
    data_start_row: Optional[int] = Field(default=None, alias="dataStartRow")
    total_columns: Optional[int] = Field(default=None, alias="totalColumns")
    headers: List[HeaderSnapshot] = Field(default_factory=list)
    static_cells: List[StaticCellSnapshot] = Field(default_factory=list, alias="staticCells")
    available_sheets: List[str] = Field(default_factory=list, alias="availableSheets")
    version: Optional[int] = None


MappingValue = Union[str, ArrayMapping]


class TemplateMetadata(_CamelModel):
    """Complete metadata record persisted with a template."""

    mappings: Dict[str, MappingValue] = Field(default_factory=dict)
    analysis: Optional[TemplateMetadataAnalysis] = None

    @classmethod
    def parse(cls, payload: Union["TemplateMetadata", Mapping[str, Any], str, None]) -> "TemplateMetadata":
        """Build metadata from a model, a mapping or a JSON document."""

        if payload is None:
            return cls()
        if isinstance(payload, TemplateMetadata):
            return payload
        if isinstance(payload, str):
            try:
                payload = json.loads(payload) if payload.strip() else {}
            except json.JSONDecodeError as exc:
                raise MappingError(f"Metadata is not valid JSON: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise MappingError("Invalid metadata structure (expected mapping)")
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            raise MappingError(f"Invalid metadata: {exc}") from exc

    @classmethod
    def from_file(cls, path: Path) -> "TemplateMetadata":
        """Load metadata from a JSON or YAML file."""

        with path.open("r", encoding="utf-8") as fh:
            if path.suffix.lower() in {".yaml", ".yml"}:
                payload = yaml.safe_load(fh)
            else:
                try:
                    payload = json.load(fh)
                except json.JSONDecodeError as exc:
                    raise MappingError(f"Metadata file is not valid JSON: {exc}") from exc
        return cls.parse(payload or {})

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    @property
    def sheet_name(self) -> Optional[str]:
        return self.analysis.sheet_name if self.analysis else None


def split_mappings(
    mappings: Mapping[str, MappingValue],
) -> Tuple[Dict[str, str], Dict[str, ArrayMapping]]:
    """Separate scalar (cell -> path) mappings from array mappings."""

    static: Dict[str, str] = {}
    arrays: Dict[str, ArrayMapping] = {}
    for key, value in mappings.items():
        if isinstance(value, str):
            static[key] = value
        elif isinstance(value, ArrayMapping):
            arrays[key] = value
    return static, arrays


def coerce_mappings(raw: Optional[Mapping[str, Any]]) -> Dict[str, MappingValue]:
    """Validate a caller-supplied ``mappings`` dict (e.g. per-request overrides)."""

    if not raw:
        return {}
    return TemplateMetadata.parse({"mappings": dict(raw)}).mappings


def merge_mappings(
    base: Mapping[str, MappingValue],
    override: Optional[Mapping[str, MappingValue]] = None,
) -> Dict[str, MappingValue]:
    """Return ``base`` updated with ``override``; the override wins on key collision."""

    merged: Dict[str, MappingValue] = dict(base)
    if override:
        merged.update(override)
    return merged


def extract_array_mapping(metadata: Optional[TemplateMetadata]) -> Optional[ArrayMapping]:
    if metadata is None:
        return None
    _, arrays = split_mappings(metadata.mappings)
    return next(iter(arrays.values()), None)


def extract_static_mappings(metadata: Optional[TemplateMetadata]) -> Dict[str, str]:
    if metadata is None:
        return {}
    static, _ = split_mappings(metadata.mappings)
    return static


def build_metadata(
    analysis: Optional[TemplateAnalysis],
    array_mapping: Optional[ArrayMapping],
    static_mappings: Optional[Mapping[str, str]] = None,
) -> TemplateMetadata:
    """Assemble the metadata record persisted for a template.

    The array mapping is stored under its own ``source`` key.
    """

    mappings: Dict[str, MappingValue] = dict(static_mappings or {})
    if array_mapping is not None:
        mappings[array_mapping.source] = array_mapping
    snapshot = None
    if analysis is not None:
        snapshot = TemplateMetadataAnalysis.model_validate(analysis.to_dict())
    return TemplateMetadata(mappings=mappings, analysis=snapshot)


@dataclass(slots=True)
class MetadataValidation:
    """Outcome of :func:`validate_template_metadata`."""

    success: bool
    data: Optional[TemplateMetadata] = None
    errors: List[str] = field(default_factory=list)


def validate_template_metadata(payload: Any) -> MetadataValidation:
    """Strictly validate a metadata payload before it is persisted."""

    try:
        metadata = TemplateMetadata.parse(payload)
    except MappingError as exc:
        return MetadataValidation(success=False, errors=[str(exc)])

    errors: List[str] = []
    for key, value in metadata.mappings.items():
        if isinstance(value, str):
            if not is_valid_cell_address(key):
                errors.append(f"Invalid cell address '{key}' (expected e.g. B3, D5)")
            if not value.strip():
                errors.append(f"Mapping for '{key}' has an empty field path")
            continue
        if not value.source.strip():
            errors.append(f"Array mapping '{key}' requires a source")
        if not is_valid_row(value.start_row):
            errors.append(f"Array mapping '{key}' has invalid startRow {value.start_row}")
        for field_name, column in value.fields.items():
            if not is_valid_column(column):
                errors.append(f"Array mapping '{key}' maps '{field_name}' to invalid column {column}")
    return MetadataValidation(success=not errors, data=metadata if not errors else None, errors=errors)


def detect_mapping_conflicts(mappings: Mapping[str, MappingValue]) -> Tuple[List[str], List[str]]:
    """Return ``(conflicts, warnings)`` found across scalar and array mappings."""

    conflicts: List[str] = []
    warnings: List[str] = []
    static, arrays = split_mappings(mappings)

    for address, field_name in static.items():
        for source, array_mapping in arrays.items():
            if field_name in array_mapping.fields:
                conflicts.append(
                    f"Field '{field_name}' is mapped both to cell {address} and to table '{source}'"
                )

    for source, array_mapping in arrays.items():
        seen: Dict[int, int] = {}
        for column in array_mapping.fields.values():
            seen[column] = seen.get(column, 0) + 1
        for column, count in seen.items():
            if count > 1:
                warnings.append(f"Table '{source}' maps column {column} to {count} fields")

    for source, array_mapping in arrays.items():
        for address in static:
            position = split_address(address)
            if position and position[0] >= array_mapping.start_row:
                warnings.append(
                    f"Cell {address} may overlap table '{source}' starting at row {array_mapping.start_row}"
                )

    return conflicts, warnings


__all__ = [
    "ArrayMapping",
    "HeaderSnapshot",
    "MappingError",
    "MappingValue",
    "MetadataValidation",
    "StaticCellSnapshot",
    "TemplateMetadata",
    "TemplateMetadataAnalysis",
    "build_metadata",
    "coerce_mappings",
    "detect_mapping_conflicts",
    "extract_array_mapping",
    "extract_static_mappings",
    "merge_mappings",
    "split_mappings",
    "validate_template_metadata",
]
