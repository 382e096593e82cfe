"""Tests for name-based reference handling."""

import pytest

from metamodel_schema import (
    Application,
    DomainEntity,
    EntityProperty,
    Page,
    PageElement,
    referenced_tables,
)
from reference_resolver import (
    DanglingReference,
    DeferredLookup,
    NameCollisionError,
    find_dangling_references,
    find_name_collisions,
    resolve_reference,
    validate_unique_names,
)


def test_resolve_reference_builds_deferred_lookup():
    assert resolve_reference("DomainEntity", "Book") == DeferredLookup("DomainEntity", "Book")


@pytest.mark.parametrize("name", [None, ""])
def test_resolve_reference_without_name(name):
    assert resolve_reference("DomainEntity", name) is None


def test_referenced_tables():
    assert referenced_tables() == ("DomainApp", "DomainEntity", "Page")


class TestNameCollisions:
    """Duplicated names only matter in tables something points at."""

    def test_unique_names_pass(self):
        records = {
            "Application": [Application("library")],
            "DomainEntity": [DomainEntity("Book", "library"), DomainEntity("Author", "library")],
        }
        assert find_name_collisions(records) == {}
        validate_unique_names(records)

    def test_duplicate_entity_names_are_reported(self):
        records = {
            "DomainEntity": [
                DomainEntity("Book", "library"),
                DomainEntity("Book", "store"),
                DomainEntity("Author", "library"),
            ]
        }
        assert find_name_collisions(records) == {"DomainEntity": ["Book"]}
        with pytest.raises(NameCollisionError, match="DomainEntity: 'Book'"):
            validate_unique_names(records)

    def test_unreferenced_tables_may_repeat_names(self):
        records = {
            "EntityProperty": [
                EntityProperty("name", "String", "Book"),
                EntityProperty("name", "String", "Author"),
            ]
        }
        assert find_name_collisions(records) == {}


class TestDanglingReferences:
    """References to names that were never extracted."""

    def test_no_dangling_references_in_consistent_data(self):
        records = {
            "Application": [Application("library")],
            "DomainEntity": [DomainEntity("Book", "library")],
            "EntityProperty": [EntityProperty("title", "String", "Book")],
        }
        assert find_dangling_references(records) == []

    def test_missing_targets_are_listed(self):
        records = {
            "Application": [Application("library")],
            "DomainEntity": [DomainEntity("Book", "metamodel")],
            "Page": [Page("home", "library")],
            "PageElement": [PageElement("header", None, 0, "about")],
        }
        assert find_dangling_references(records) == [
            DanglingReference(record="DomainEntity 'Book'", table="DomainApp", name="metamodel"),
            DanglingReference(record="PageElement 'header'", table="Page", name="about"),
        ]

    def test_missing_reference_name_is_not_dangling(self):
        records = {"DomainEntity": [DomainEntity("Book", None)]}
        assert find_dangling_references(records) == []
