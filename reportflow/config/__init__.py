"""Report category registry.

Loads ``categories.yaml`` (one entry per report category with its data-source
name and field definitions) and exposes read-only lookups used by the mapping
builder and validator. Adding a category only requires a new YAML entry.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from reportflow.core.errors import ConfigError


CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_CATEGORIES_PATH = CONFIG_DIR / "categories.yaml"


class FieldDefinition(BaseModel):
    """A field a report category can fill."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str = Field(min_length=1)
    label: str
    required: bool = False
    description: Optional[str] = None
    type: Optional[Literal["static", "table"]] = None


class CategorySchema(BaseModel):
    """Data-source name plus field definitions for one category."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    source: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)


class CategoryRegistry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    categories: Dict[str, CategorySchema] = Field(default_factory=dict)


def load_category_registry(path: str | Path | None = None) -> CategoryRegistry:
    """Load and validate a category registry YAML file."""

    registry_path = Path(path) if path else DEFAULT_CATEGORIES_PATH
    if not registry_path.exists():
        raise ConfigError(f"Category registry not found: {registry_path}")
    yaml = YAML(typ="safe")
    try:
        with registry_path.open("r", encoding="utf-8") as fh:
            data = yaml.load(fh) or {}
    except YAMLError as exc:
        raise ConfigError(f"Category registry is not valid YAML: {exc}") from exc
    try:
        return CategoryRegistry.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid category registry {registry_path}: {exc}") from exc


@lru_cache(maxsize=1)
def default_registry() -> CategoryRegistry:
    return load_category_registry()


def list_categories() -> List[str]:
    return list(default_registry().categories)


def get_fields_for_category(category: str) -> List[FieldDefinition]:
    schema = default_registry().categories.get(category)
    return list(schema.fields) if schema else []


def get_required_fields(category: str) -> List[str]:
    return [f.key for f in get_fields_for_category(category) if f.required]


def get_field_label(category: str, field_key: str) -> str:
    for definition in get_fields_for_category(category):
        if definition.key == field_key:
            return definition.label
    return field_key


def is_field_required(category: str, field_key: str) -> bool:
    return any(f.key == field_key and f.required for f in get_fields_for_category(category))


def get_category_source(category: str) -> str:
    """Return the data-source name for ``category``, defaulting to the category itself."""

    schema = default_registry().categories.get(category)
    if schema and schema.source:
        return schema.source
    return category


__all__ = [
    "CategoryRegistry",
    "CategorySchema",
    "FieldDefinition",
    "default_registry",
    "get_category_source",
    "get_field_label",
    "get_fields_for_category",
    "get_required_fields",
    "is_field_required",
    "list_categories",
    "load_category_registry",
]
