"""Pull every record of each entity kind out of a record source.

Extraction runs one kind at a time in ``KIND_ORDER``. A record missing one
of its kind's required fields is dropped and shows up only in the
``dropped`` count of its kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from metamodel_schema import (
    APPLICATION,
    DEFAULT_APPLICATION,
    DEFAULT_PROPERTY_TYPE,
    DEFAULT_RELATIONSHIP_TYPE,
    DEFAULT_RETURN_TYPE,
    DERIVED_PROPERTY,
    DOMAIN_ENTITY,
    ENTITY_FUNCTION,
    ENTITY_PROPERTY,
    KIND_ORDER,
    PAGE,
    PAGE_ELEMENT,
    RELATIONSHIP,
    VALIDATION_RULE,
    Application,
    DerivedProperty,
    DomainEntity,
    EntityFunction,
    EntityKind,
    EntityProperty,
    Page,
    PageElement,
    Relationship,
    ValidationRule,
)
from record_source import RecordSource


@dataclass
class KindExtraction:
    """Records of one kind plus how many the source listed."""

    kind: EntityKind
    listed: int = 0
    records: List[Any] = field(default_factory=list)

    @property
    def extracted(self) -> int:
        return len(self.records)

    @property
    def dropped(self) -> int:
        return self.listed - len(self.records)


def read_text(source: RecordSource, record_id: str, label: str) -> Optional[str]:
    """Read a field and collapse blank values to ``None``."""

    value = source.get_field(record_id, label)
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_order_index(value: Optional[str]) -> int:
    if value is None:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        return 0


def extract_application(source: RecordSource, record_id: str, **_: Any) -> Optional[Application]:
    name = read_text(source, record_id, "Name:")
    if not name:
        return None
    return Application(name=name)


def extract_domain_entity(
    source: RecordSource,
    record_id: str,
    default_application: Optional[str] = DEFAULT_APPLICATION,
    **_: Any,
) -> Optional[DomainEntity]:
    name = read_text(source, record_id, "Name:")
    if not name:
        return None
    application = read_text(source, record_id, "Application:") or default_application or None
    return DomainEntity(name=name, application=application)


def extract_entity_property(
    source: RecordSource, record_id: str, **_: Any
) -> Optional[EntityProperty]:
    name = read_text(source, record_id, "Name:")
    entity = read_text(source, record_id, "Entity:")
    if not name or not entity:
        return None
    return EntityProperty(
        name=name,
        property_type=read_text(source, record_id, "Property Type:") or DEFAULT_PROPERTY_TYPE,
        entity=entity,
    )


def extract_relationship(source: RecordSource, record_id: str, **_: Any) -> Optional[Relationship]:
    name = read_text(source, record_id, "Name:")
    source_entity = read_text(source, record_id, "Source Entity:")
    if not name or not source_entity:
        return None
    return Relationship(
        name=name,
        target_entity=read_text(source, record_id, "Target Entity:"),
        relationship_type=(
            read_text(source, record_id, "Relationship Type:") or DEFAULT_RELATIONSHIP_TYPE
        ),
        inverse_name=read_text(source, record_id, "Inverse Name:"),
        source_entity=source_entity,
    )


def extract_validation_rule(
    source: RecordSource, record_id: str, **_: Any
) -> Optional[ValidationRule]:
    name = read_text(source, record_id, "Name:")
    entity = read_text(source, record_id, "Entity:")
    if not name or not entity:
        return None
    return ValidationRule(
        name=name,
        expression=read_text(source, record_id, "Expression:"),
        error_message=read_text(source, record_id, "Error Message:"),
        entity=entity,
    )


def extract_derived_property(
    source: RecordSource, record_id: str, **_: Any
) -> Optional[DerivedProperty]:
    name = read_text(source, record_id, "Name:")
    entity = read_text(source, record_id, "Entity:")
    if not name or not entity:
        return None
    return DerivedProperty(
        name=name,
        property_type=read_text(source, record_id, "Property Type:") or DEFAULT_PROPERTY_TYPE,
        expression=read_text(source, record_id, "Expression:"),
        entity=entity,
    )


def extract_entity_function(
    source: RecordSource, record_id: str, **_: Any
) -> Optional[EntityFunction]:
    name = read_text(source, record_id, "Name:")
    entity = read_text(source, record_id, "Entity:")
    if not name or not entity:
        return None
    return EntityFunction(
        name=name,
        return_type=read_text(source, record_id, "Return Type:") or DEFAULT_RETURN_TYPE,
        body=read_text(source, record_id, "Body:"),
        entity=entity,
    )


def extract_page(source: RecordSource, record_id: str, **_: Any) -> Optional[Page]:
    name = read_text(source, record_id, "Name:")
    application = read_text(source, record_id, "Application:")
    if not name or not application:
        return None
    return Page(name=name, application=application)


def extract_page_element(source: RecordSource, record_id: str, **_: Any) -> Optional[PageElement]:
    element_type = read_text(source, record_id, "Element Type:")
    page = read_text(source, record_id, "Page:")
    if not element_type or not page:
        return None
    return PageElement(
        element_type=element_type,
        content=read_text(source, record_id, "Content:"),
        order_index=parse_order_index(read_text(source, record_id, "Order Index:")),
        page=page,
    )


EXTRACTORS: Dict[str, Callable[..., Any]] = {
    APPLICATION.name: extract_application,
    DOMAIN_ENTITY.name: extract_domain_entity,
    ENTITY_PROPERTY.name: extract_entity_property,
    RELATIONSHIP.name: extract_relationship,
    VALIDATION_RULE.name: extract_validation_rule,
    DERIVED_PROPERTY.name: extract_derived_property,
    ENTITY_FUNCTION.name: extract_entity_function,
    PAGE.name: extract_page,
    PAGE_ELEMENT.name: extract_page_element,
}


def extract_kind(
    source: RecordSource,
    kind: EntityKind,
    default_application: Optional[str] = DEFAULT_APPLICATION,
) -> KindExtraction:
    extractor = EXTRACTORS[kind.name]
    record_ids = source.list_records(kind.collection)
    result = KindExtraction(kind=kind, listed=len(record_ids))
    for record_id in record_ids:
        record = extractor(source, record_id, default_application=default_application)
        if record is not None:
            result.records.append(record)
    return result


def extract_all(
    source: RecordSource,
    default_application: Optional[str] = DEFAULT_APPLICATION,
    progress: Optional[Callable[[str], None]] = None,
) -> Dict[str, KindExtraction]:
    """Extract every kind in dependency order.

    Any ``SourceUnreachableError`` from the source propagates; no partial
    result is returned.
    """

    results: Dict[str, KindExtraction] = {}
    for kind in KIND_ORDER:
        if progress:
            progress(f"Extracting {kind.name}...")
        extraction = extract_kind(source, kind, default_application=default_application)
        results[kind.name] = extraction
        if progress:
            progress(f"  Found {extraction.extracted} {kind.name} records")
    return results


def records_by_kind(extractions: Dict[str, KindExtraction]) -> Dict[str, List[Any]]:
    return {name: list(extraction.records) for name, extraction in extractions.items()}
