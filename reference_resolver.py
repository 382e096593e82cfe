"""Name-based references between extracted records.

The source only ever shows display names, never primary keys, so a reference
is kept as "the id of the row in TABLE whose name is NAME" and left for the
database to resolve at insert time. That is only sound when names are unique
within each referenced table; ``validate_unique_names`` checks this before
any SQL is written.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from metamodel_schema import KIND_ORDER, referenced_tables


class NameCollisionError(RuntimeError):
    """Raised when a referenced table holds the same name more than once."""


@dataclass(frozen=True)
class DeferredLookup:
    table: str
    name: str
    key_column: str = "id"
    name_column: str = "name"


@dataclass(frozen=True)
class DanglingReference:
    record: str
    table: str
    name: str


def resolve_reference(table: str, name: Optional[str]) -> Optional[DeferredLookup]:
    if not name:
        return None
    return DeferredLookup(table=table, name=name)


def names_by_table(records_by_kind: Mapping[str, Sequence[Any]]) -> Dict[str, List[str]]:
    names: Dict[str, List[str]] = {}
    for kind in KIND_ORDER:
        names[kind.table] = [
            record.name
            for record in records_by_kind.get(kind.name, ())
            if getattr(record, "name", None)
        ]
    return names


def find_name_collisions(records_by_kind: Mapping[str, Sequence[Any]]) -> Dict[str, List[str]]:
    """Duplicated names per referenced table, in first-seen order.

    Tables nothing points at (property names repeat across entities, for
    example) are not checked.
    """

    names = names_by_table(records_by_kind)
    collisions: Dict[str, List[str]] = {}
    for table in referenced_tables():
        counts = Counter(names.get(table, []))
        duplicated = [name for name in dict.fromkeys(names.get(table, [])) if counts[name] > 1]
        if duplicated:
            collisions[table] = duplicated
    return collisions


def validate_unique_names(records_by_kind: Mapping[str, Sequence[Any]]) -> None:
    collisions = find_name_collisions(records_by_kind)
    if not collisions:
        return
    details = "; ".join(
        f"{table}: {', '.join(repr(name) for name in duplicated)}"
        for table, duplicated in collisions.items()
    )
    raise NameCollisionError(
        f"Names must be unique within referenced tables to resolve references ({details})"
    )


def find_dangling_references(
    records_by_kind: Mapping[str, Sequence[Any]]
) -> List[DanglingReference]:
    """References whose name matches no extracted record of the target table."""

    known = {table: set(names) for table, names in names_by_table(records_by_kind).items()}
    dangling: List[DanglingReference] = []
    for kind in KIND_ORDER:
        reference_columns = [column for column in kind.columns if column.references]
        for record in records_by_kind.get(kind.name, ()):
            for column in reference_columns:
                name = getattr(record, column.attribute)
                if name and name not in known.get(column.references, set()):
                    dangling.append(
                        DanglingReference(
                            record=kind.label_for(record),
                            table=column.references,
                            name=name,
                        )
                    )
    return dangling
