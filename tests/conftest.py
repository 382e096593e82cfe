"""Shared fixtures: an in-memory record source standing in for the web UI."""

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from record_source import RecordSource, SourceUnreachableError


class FakeRecordSource(RecordSource):
    """Serve records from plain dicts of ``label -> value``."""

    def __init__(
        self,
        collections: Dict[str, Sequence[Dict[str, Optional[str]]]],
        unreachable: Sequence[str] = (),
    ) -> None:
        self.collections: Dict[str, List[str]] = {}
        self.records: Dict[str, List[Tuple[str, str]]] = {}
        self.unreachable = set(unreachable)
        self.calls: List[Tuple[str, str]] = []
        for collection_id, entries in collections.items():
            ids = []
            for index, fields in enumerate(entries):
                record_id = f"{collection_id}/{index}"
                ids.append(record_id)
                self.records[record_id] = [
                    (label, value) for label, value in fields.items() if value is not None
                ]
            self.collections[collection_id] = ids

    def list_records(self, collection_id: str) -> List[str]:
        self.calls.append(("list", collection_id))
        if collection_id in self.unreachable:
            raise SourceUnreachableError(f"{collection_id} is down")
        return list(self.collections.get(collection_id, []))

    def read_record(self, record_id: str) -> List[Tuple[str, str]]:
        self.calls.append(("read", record_id))
        return list(self.records[record_id])


@pytest.fixture
def make_source():
    return FakeRecordSource


@pytest.fixture
def library_source():
    """One application, one entity and one property, as the UI labels them."""

    return FakeRecordSource(
        {
            "DomainApp": [{"Name:": "library"}],
            "DomainEntity": [{"Name:": "Book", "Application:": "library"}],
            "EntityProperty": [
                {"Name:": "title", "Property Type:": "String", "Entity:": "Book"}
            ],
        }
    )
