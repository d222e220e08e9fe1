"""
Field schema of record types.

Record types are Pydantic models. A field takes part in reading and writing
sheets if its annotation carries a ``CellMapping``::

    class Person(BaseModel):
        name: Annotated[str, CellMapping("Name", order=1)] = ""
        age: Annotated[int, CellMapping("Age", order=2)] = 0
        code: Annotated[int, CellMapping("Code", type_tag=TypeTag.SHORT)] = 0

The schema is an ordered list of ``FieldDescriptor`` objects in declaration
order. It is derived again on every call and never cached.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Union, get_args, get_origin

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TypeTag(Enum):
    """Target representations a cell value can be converted to."""

    BOOL = "bool"
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    DATE = "date"
    UNKNOWN = "unknown"


# Checked in this order because bool is a subclass of int and datetime of date.
_NATIVE_TYPE_TAGS = (
    (bool, TypeTag.BOOL),
    (int, TypeTag.INT),
    (float, TypeTag.DOUBLE),
    (Decimal, TypeTag.DOUBLE),
    (str, TypeTag.STRING),
    (datetime, TypeTag.DATE),
    (date, TypeTag.DATE),
)


@dataclass(frozen=True)
class CellMapping:
    """Marks a model field as mapped to the column with header ``name``."""

    name: str
    order: int = 0
    type_tag: TypeTag | None = None


@dataclass(frozen=True)
class FieldDescriptor:
    """Binds one model attribute to a column header and output position."""

    name: str
    display_name: str
    type_tag: TypeTag
    order: int = 0
    annotation: Any = field(default=None, compare=False)

    def get(self, record: BaseModel) -> Any:
        return getattr(record, self.name)

    def set(self, record: BaseModel, value: Any) -> None:
        setattr(record, self.name, value)

    @property
    def wants_date_only(self) -> bool:
        """True if the field holds a ``date`` rather than a ``datetime``."""
        target = unwrap_optional(self.annotation)
        return target is date


def unwrap_optional(annotation: Any) -> Any:
    """Return X for ``Optional[X]`` / ``X | None``, else the annotation itself."""
    origin = get_origin(annotation)
    if origin is Annotated:
        return unwrap_optional(get_args(annotation)[0])
    if origin is Union or (
        origin is not None and type(None) in (get_args(annotation) or ())
    ):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return unwrap_optional(args[0])
    return annotation


def type_tag_for(annotation: Any) -> TypeTag:
    """Infer the type tag of a field from its annotation."""
    target = unwrap_optional(annotation)
    if get_origin(target) is not None or not isinstance(target, type):
        return TypeTag.UNKNOWN
    for native_type, tag in _NATIVE_TYPE_TAGS:
        if issubclass(target, native_type):
            return tag
    return TypeTag.UNKNOWN


def extract_cell_mapping(field_info: Any) -> CellMapping | None:
    """Extract the cell mapping marker from a Pydantic field info."""
    # Pydantic v2 moves Annotated extras into field_info.metadata
    for metadata_item in getattr(field_info, "metadata", None) or []:
        if isinstance(metadata_item, CellMapping):
            return metadata_item

    annotation = getattr(field_info, "annotation", None)
    if get_origin(annotation) is Annotated:
        for metadata_item in get_args(annotation)[1:]:
            if isinstance(metadata_item, CellMapping):
                return metadata_item

    return None


def derive_schema(model_class: type[BaseModel]) -> list[FieldDescriptor]:
    """Build the field descriptors of all mapped fields of a model class."""
    if not (isinstance(model_class, type) and issubclass(model_class, BaseModel)):
        msg = f"Expected Pydantic BaseModel, got {model_class!r}"
        raise TypeError(msg)

    descriptors = []
    for field_name, field_info in model_class.model_fields.items():
        mapping = extract_cell_mapping(field_info)
        if mapping is None:
            continue
        type_tag = mapping.type_tag or type_tag_for(field_info.annotation)
        descriptors.append(
            FieldDescriptor(
                name=field_name,
                display_name=mapping.name,
                type_tag=type_tag,
                order=mapping.order,
                annotation=field_info.annotation,
            )
        )

    logger.debug(
        "Derived %d mapped field(s) from %s.", len(descriptors), model_class.__name__
    )
    return descriptors


def descriptors_by_name(
    schema: list[FieldDescriptor],
) -> dict[str, FieldDescriptor]:
    """Index descriptors by display name. The first descriptor of a name wins."""
    by_name: dict[str, FieldDescriptor] = {}
    for descriptor in schema:
        if descriptor.display_name in by_name:
            logger.warning(
                'Duplicate column name "%s" (fields "%s" and "%s"); using "%s".',
                descriptor.display_name,
                by_name[descriptor.display_name].name,
                descriptor.name,
                by_name[descriptor.display_name].name,
            )
            continue
        by_name[descriptor.display_name] = descriptor
    return by_name


def output_order(schema: list[FieldDescriptor]) -> list[FieldDescriptor]:
    """Sort descriptors by order; equal orders keep declaration order."""
    return sorted(schema, key=lambda descriptor: descriptor.order)
