"""Entity kinds and record types of the metamodel application.

Each kind maps a collection exposed by the application (``manage<Collection>``
in the generated UI) to a SQL table and the ordered columns its INSERT
statements fill. ``KIND_ORDER`` is the emission order: every kind only
references kinds that come before it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

DEFAULT_APPLICATION = "metamodel"
DEFAULT_PROPERTY_TYPE = "String"
DEFAULT_RELATIONSHIP_TYPE = "OneToMany"
DEFAULT_RETURN_TYPE = "void"


@dataclass(frozen=True)
class Application:
    name: str


@dataclass(frozen=True)
class DomainEntity:
    name: str
    application: Optional[str]


@dataclass(frozen=True)
class EntityProperty:
    name: str
    property_type: str
    entity: str


@dataclass(frozen=True)
class Relationship:
    name: str
    target_entity: Optional[str]
    relationship_type: str
    inverse_name: Optional[str]
    source_entity: str


@dataclass(frozen=True)
class ValidationRule:
    name: str
    expression: Optional[str]
    error_message: Optional[str]
    entity: str


@dataclass(frozen=True)
class DerivedProperty:
    name: str
    property_type: str
    expression: Optional[str]
    entity: str


@dataclass(frozen=True)
class EntityFunction:
    name: str
    return_type: str
    body: Optional[str]
    entity: str


@dataclass(frozen=True)
class Page:
    name: str
    application: str


@dataclass(frozen=True)
class PageElement:
    element_type: str
    content: Optional[str]
    order_index: int
    page: str


@dataclass(frozen=True)
class Column:
    """One column of an INSERT statement and the record attribute behind it."""

    name: str
    attribute: str
    references: Optional[str] = None
    numeric: bool = False


@dataclass(frozen=True)
class EntityKind:
    name: str
    collection: str
    table: str
    record_type: Type
    columns: Tuple[Column, ...]

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def label_for(self, record: object) -> str:
        """Human-readable identity of a record, used in warnings."""

        value = getattr(record, "name", None)
        if value is None:
            value = getattr(record, "element_type", "")
        return f"{self.name} '{value}'"


APPLICATION = EntityKind(
    name="Application",
    collection="DomainApp",
    table="DomainApp",
    record_type=Application,
    columns=(Column("name", "name"),),
)

DOMAIN_ENTITY = EntityKind(
    name="DomainEntity",
    collection="DomainEntity",
    table="DomainEntity",
    record_type=DomainEntity,
    columns=(
        Column("name", "name"),
        Column("application_id", "application", references="DomainApp"),
    ),
)

ENTITY_PROPERTY = EntityKind(
    name="EntityProperty",
    collection="EntityProperty",
    table="EntityProperty",
    record_type=EntityProperty,
    columns=(
        Column("name", "name"),
        Column("propertyType", "property_type"),
        Column("entity_id", "entity", references="DomainEntity"),
    ),
)

RELATIONSHIP = EntityKind(
    name="Relationship",
    collection="Relationship",
    table="Relationship",
    record_type=Relationship,
    columns=(
        Column("name", "name"),
        Column("targetEntity", "target_entity"),
        Column("relationshipType", "relationship_type"),
        Column("inverseName", "inverse_name"),
        Column("sourceEntity_id", "source_entity", references="DomainEntity"),
    ),
)

VALIDATION_RULE = EntityKind(
    name="ValidationRule",
    collection="ValidationRule",
    table="ValidationRule",
    record_type=ValidationRule,
    columns=(
        Column("name", "name"),
        Column("expression", "expression"),
        Column("errorMessage", "error_message"),
        Column("entity_id", "entity", references="DomainEntity"),
    ),
)

DERIVED_PROPERTY = EntityKind(
    name="DerivedProperty",
    collection="DerivedProperty",
    table="DerivedProperty",
    record_type=DerivedProperty,
    columns=(
        Column("name", "name"),
        Column("propertyType", "property_type"),
        Column("expression", "expression"),
        Column("entity_id", "entity", references="DomainEntity"),
    ),
)

ENTITY_FUNCTION = EntityKind(
    name="EntityFunction",
    collection="EntityFunction",
    table="EntityFunction",
    record_type=EntityFunction,
    columns=(
        Column("name", "name"),
        Column("returnType", "return_type"),
        Column("body", "body"),
        Column("entity_id", "entity", references="DomainEntity"),
    ),
)

PAGE = EntityKind(
    name="Page",
    collection="Page",
    table="Page",
    record_type=Page,
    columns=(
        Column("name", "name"),
        Column("application_id", "application", references="DomainApp"),
    ),
)

PAGE_ELEMENT = EntityKind(
    name="PageElement",
    collection="PageElement",
    table="PageElement",
    record_type=PageElement,
    columns=(
        Column("elementType", "element_type"),
        Column("content", "content"),
        Column("orderIndex", "order_index", numeric=True),
        Column("page_id", "page", references="Page"),
    ),
)

KIND_ORDER: Tuple[EntityKind, ...] = (
    APPLICATION,
    DOMAIN_ENTITY,
    ENTITY_PROPERTY,
    RELATIONSHIP,
    VALIDATION_RULE,
    DERIVED_PROPERTY,
    ENTITY_FUNCTION,
    PAGE,
    PAGE_ELEMENT,
)

KINDS_BY_NAME: Dict[str, EntityKind] = {kind.name: kind for kind in KIND_ORDER}
KINDS_BY_TABLE: Dict[str, EntityKind] = {kind.table: kind for kind in KIND_ORDER}


def referenced_tables() -> Tuple[str, ...]:
    """Tables that at least one foreign-key column points at, in kind order."""

    targets = {
        column.references
        for kind in KIND_ORDER
        for column in kind.columns
        if column.references
    }
    return tuple(kind.table for kind in KIND_ORDER if kind.table in targets)
