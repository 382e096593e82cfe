"""Tests for link classification, label matching and snapshot sources."""

import json

import pytest

from record_source import (
    JsonRecordSource,
    SnapshotError,
    SnapshotRecorder,
    SourceUnreachableError,
    is_detail_href,
    match_field_label,
    page_segment,
)


class TestDetailLinks:
    """Separate record links from action links in list views."""

    @pytest.mark.parametrize(
        "href",
        [
            "/metamodel/domainEntity/Book",
            "http://localhost:8080/metamodel/page/informationPage",
            "/metamodel/entityProperty/42",
            "/metamodel/domainEntity/Editor",
        ],
    )
    def test_record_links_are_kept(self, href):
        assert is_detail_href(href, "/metamodel")

    @pytest.mark.parametrize(
        "href",
        [
            "/metamodel/createDomainEntity",
            "/metamodel/editDomainEntity/Book",
            "/metamodel/removeDomainEntity/Book",
            "/metamodel/domainEntityForm",
            "#",
            "javascript:void(0)",
            "",
            None,
        ],
    )
    def test_action_links_are_excluded(self, href):
        assert not is_detail_href(href, "/metamodel")

    def test_page_segment_strips_base_path(self):
        assert page_segment("http://host/metamodel/editPage/x", "/metamodel") == "editPage"
        assert page_segment("/domainApp/library") == "domainApp"


class TestMatchFieldLabel:
    """Look up detail fields by label prefix."""

    def test_prefix_match_ignores_case_and_whitespace(self):
        fields = [("  NAME:  ", "Book"), ("Application:", "library")]
        assert match_field_label(fields, "name:") == "Book"
        assert match_field_label(fields, "Application") == "library"

    def test_first_match_wins(self):
        fields = [("Entity:", "Book"), ("Entity Type:", "table")]
        assert match_field_label(fields, "Entity") == "Book"

    def test_absent_label_returns_none(self):
        assert match_field_label([("Name:", "Book")], "Body:") is None

    def test_blank_value_is_returned_as_is(self):
        assert match_field_label([("Body:", "")], "Body:") == ""


def write_snapshot(path, collections):
    path.write_text(json.dumps({"collections": collections}), encoding="utf-8")
    return path


class TestJsonRecordSource:
    """Replay records from snapshot files."""

    def test_lists_and_reads_records(self, tmp_path):
        path = write_snapshot(
            tmp_path / "snap.json",
            {"DomainApp": [{"id": "app-1", "fields": [["Name:", "library"]]}]},
        )
        source = JsonRecordSource(path)
        assert source.list_records("DomainApp") == ["app-1"]
        assert source.get_field("app-1", "Name:") == "library"

    def test_records_without_id_get_positional_ids(self, tmp_path):
        path = write_snapshot(tmp_path / "snap.json", {"Page": [{"fields": [["Name:", "home"]]}]})
        source = JsonRecordSource(path)
        assert source.list_records("Page") == ["Page/0"]

    def test_empty_collection_is_not_an_error(self, tmp_path):
        path = write_snapshot(tmp_path / "snap.json", {"DomainApp": []})
        assert JsonRecordSource(path).list_records("DomainApp") == []

    def test_missing_collection_is_unreachable(self, tmp_path):
        path = write_snapshot(tmp_path / "snap.json", {"DomainApp": []})
        source = JsonRecordSource(path)
        with pytest.raises(SourceUnreachableError):
            source.list_records("DomainEntity")

    def test_missing_file(self, tmp_path):
        with pytest.raises(SnapshotError, match="Missing snapshot file"):
            JsonRecordSource(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SnapshotError, match="Invalid JSON"):
            JsonRecordSource(path)

    def test_record_id_reused_across_collections(self, tmp_path):
        path = write_snapshot(
            tmp_path / "snap.json",
            {
                "DomainApp": [{"id": "1", "fields": [["Name:", "library"]]}],
                "DomainEntity": [{"id": "1", "fields": [["Name:", "Book"]]}],
            },
        )
        with pytest.raises(SnapshotError, match="reuses record id '1'"):
            JsonRecordSource(path)

    @pytest.mark.parametrize("raw_fields", [None, {"Name:": "library"}, "Name: library"])
    def test_fields_must_be_a_list(self, tmp_path, raw_fields):
        path = write_snapshot(tmp_path / "snap.json", {"DomainApp": [{"id": "1", "fields": raw_fields}]})
        with pytest.raises(SnapshotError, match="not a list"):
            JsonRecordSource(path)

    @pytest.mark.parametrize(
        "pair",
        [["Name:"], ["Name:", "library", "extra"], "Name:", [None, "library"], ["Name:", 3]],
    )
    def test_malformed_field_pairs_are_rejected(self, tmp_path, pair):
        path = write_snapshot(
            tmp_path / "snap.json", {"DomainApp": [{"id": "1", "fields": [["Body:", None], pair]}]}
        )
        with pytest.raises(SnapshotError, match="malformed field at position 1"):
            JsonRecordSource(path)

    def test_null_value_reads_as_blank(self, tmp_path):
        path = write_snapshot(tmp_path / "snap.json", {"DomainApp": [{"id": "1", "fields": [["Body:", None]]}]})
        assert JsonRecordSource(path).get_field("1", "Body:") == ""

    def test_missing_collections_object(self, tmp_path):
        path = tmp_path / "wrong.json"
        path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
        with pytest.raises(SnapshotError, match="collections"):
            JsonRecordSource(path)


class TestSnapshotRecorder:
    """Capture what a live source returned so it can be replayed."""

    def test_recorded_snapshot_replays_identically(self, tmp_path, library_source):
        recorder = SnapshotRecorder(library_source)
        ids = recorder.list_records("DomainEntity")
        assert recorder.get_field(ids[0], "Application:") == "library"
        recorder.list_records("DomainApp")

        path = tmp_path / "out" / "snapshot.json"
        recorder.write(path)

        replay = JsonRecordSource(path)
        assert replay.list_records("DomainEntity") == ids
        assert replay.read_record(ids[0]) == library_source.read_record(ids[0])

    def test_reads_are_cached(self, library_source):
        recorder = SnapshotRecorder(library_source)
        record_id = recorder.list_records("DomainApp")[0]
        recorder.get_field(record_id, "Name:")
        recorder.get_field(record_id, "Name:")
        reads = [call for call in library_source.calls if call[0] == "read"]
        assert reads == [("read", record_id)]
