"""Read interfaces over the records exposed by the metamodel application.

A record source answers two questions: which records belong to a collection,
and what does a record's detail view show. ``PlaywrightRecordSource`` scrapes
the generated web UI for both; ``JsonRecordSource`` replays a snapshot file
written by ``SnapshotRecorder`` so an export can be rerun without a browser.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from playwright.sync_api import (  # type: ignore[import-not-found]
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    Page,
)

Field = Tuple[str, str]

ACTION_PREFIXES = ("create", "edit", "remove", "delete")
LIST_ITEM_SELECTOR = "list li a"
SNAPSHOT_VERSION = 1


class SourceUnreachableError(RuntimeError):
    """Raised when a collection or record cannot be read from the source."""


class SnapshotError(SourceUnreachableError):
    """Raised when a snapshot file is missing, malformed or incomplete."""


def page_segment(href: str, base_path: str = "") -> str:
    """Return the page name of ``href``: its first path segment below ``base_path``."""

    path = urlparse(href).path
    prefix = base_path.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        path = path[len(prefix):]
    segments = [segment for segment in path.split("/") if segment]
    return segments[0] if segments else ""


def is_detail_href(href: Optional[str], base_path: str = "") -> bool:
    """Decide whether a list link opens a record rather than an action.

    Generated list views mix links to record detail pages with links to
    create/edit/remove pages and their forms. Only the page name is
    inspected so a record whose own name starts with "edit" still counts.
    """

    if not href:
        return False
    lowered = href.strip().lower()
    if not lowered or lowered.startswith("#") or lowered.startswith("javascript"):
        return False
    segment = page_segment(lowered, base_path.lower())
    if not segment:
        return False
    if segment.startswith(ACTION_PREFIXES) or segment.endswith("form"):
        return False
    return True


def match_field_label(fields: Iterable[Field], label: str) -> Optional[str]:
    """Return the value of the first field whose label starts with ``label``.

    The comparison ignores case and surrounding whitespace. ``None`` means no
    such field is shown; an empty string means the field is shown but blank.
    """

    prefix = label.strip().lower()
    for field_label, value in fields:
        if field_label.strip().lower().startswith(prefix):
            return value
    return None


def sanitize_filename(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip())
    return cleaned.strip("._-") or "page"


class RecordSource:
    """Collection-of-records read interface.

    Subclasses implement ``list_records`` and ``read_record``; ``get_field``
    is defined on top of ``read_record`` and needs no navigation state from
    the caller.
    """

    def list_records(self, collection_id: str) -> List[str]:
        raise NotImplementedError

    def read_record(self, record_id: str) -> List[Field]:
        raise NotImplementedError

    def get_field(self, record_id: str, label: str) -> Optional[str]:
        return match_field_label(self.read_record(record_id), label)

    def describe(self) -> str:
        return type(self).__name__


class PlaywrightRecordSource(RecordSource):
    """Scrape the list and detail views of a generated web application.

    Collection ``X`` is listed at ``{base_url}/manageX``. Detail views render
    each field as a table row with a ``<label>`` in its first cell and the
    value in its last cell.
    """

    def __init__(
        self,
        page: Page,
        base_url: str,
        timeout: float = 15.0,
        page_wait: float = 0.0,
        debug_dir: Optional[Path] = None,
    ) -> None:
        self.page = page
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_wait = page_wait
        self.debug_dir = debug_dir
        self._base_path = urlparse(self.base_url).path
        self._current_record: Optional[str] = None
        self._current_fields: List[Field] = []

    def describe(self) -> str:
        return self.base_url

    def collection_url(self, collection_id: str) -> str:
        return f"{self.base_url}/manage{collection_id}"

    def list_records(self, collection_id: str) -> List[str]:
        url = self.collection_url(collection_id)
        self._open(url, f"collection {collection_id}")

        anchors = self.page.locator(LIST_ITEM_SELECTOR)
        record_ids: List[str] = []
        seen: set[str] = set()
        for idx in range(anchors.count()):
            href = anchors.nth(idx).get_attribute("href")
            if not is_detail_href(href, self._base_path):
                continue
            absolute = urljoin(url, href.strip())
            if absolute in seen:
                continue
            seen.add(absolute)
            record_ids.append(absolute)
        return record_ids

    def read_record(self, record_id: str) -> List[Field]:
        if record_id == self._current_record:
            return list(self._current_fields)

        self._open(record_id, f"record {record_id}")
        raw_rows = self.page.evaluate(
            """
            () => {
                const rows = [];
                document.querySelectorAll('table tr').forEach((row) => {
                    const label = row.querySelector('td label');
                    if (!label) {
                        return;
                    }
                    const cells = row.querySelectorAll('td');
                    const valueCell = cells[cells.length - 1];
                    rows.push([
                        (label.textContent || '').trim(),
                        (valueCell.textContent || '').trim(),
                    ]);
                });
                return rows;
            }
            """
        )

        fields: List[Field] = []
        for entry in raw_rows or []:
            if not isinstance(entry, list) or len(entry) != 2:
                continue
            fields.append((str(entry[0] or ""), str(entry[1] or "")))

        self._current_record = record_id
        self._current_fields = fields
        return list(fields)

    def _open(self, url: str, what: str) -> None:
        # Any navigation invalidates the cached detail view.
        self._current_record = None
        self._current_fields = []
        try:
            response = self.page.goto(url, timeout=self.timeout * 1000)
        except PlaywrightError as exc:
            self._save_debug(url, "navigation_failed")
            raise SourceUnreachableError(f"Could not open {what} at {url}: {exc}") from exc

        if response is None:
            raise SourceUnreachableError(f"No response while opening {what} at {url}")
        if not response.ok:
            self._save_debug(url, f"http_{response.status}")
            raise SourceUnreachableError(
                f"Opening {what} at {url} returned HTTP {response.status}"
            )

        try:
            self.page.wait_for_load_state("networkidle", timeout=self.timeout * 1000)
        except PlaywrightTimeoutError:
            pass
        if self.page_wait > 0:
            self.page.wait_for_timeout(int(self.page_wait * 1000))

    def _save_debug(self, url: str, reason: str) -> None:
        if self.debug_dir is None:
            return
        slug = sanitize_filename(urlparse(url).path)
        screenshot = self.debug_dir / f"{slug}_{sanitize_filename(reason)}.png"
        html_path = self.debug_dir / f"{slug}_{sanitize_filename(reason)}.html"
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(screenshot), full_page=True)
            html_path.write_text(self.page.content(), encoding="utf-8")
        except (PlaywrightError, OSError):
            # Debug capture is best effort; the navigation failure is what gets raised.
            return


class JsonRecordSource(RecordSource):
    """Replay records from a snapshot file.

    Snapshot layout::

        {"collections": {"DomainApp": [{"id": "...", "fields": [["Name:", "library"]]}]}}

    A collection listed with no records is empty; a collection missing from
    the file is unreachable.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._collections: Dict[str, List[str]] = {}
        self._records: Dict[str, List[Field]] = {}
        self._load()

    def describe(self) -> str:
        return str(self.path)

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise SnapshotError(f"Missing snapshot file: {self.path}") from exc
        except json.JSONDecodeError as exc:
            raise SnapshotError(f"Invalid JSON in {self.path}: {exc}") from exc

        collections = data.get("collections") if isinstance(data, dict) else None
        if not isinstance(collections, dict):
            raise SnapshotError(f"{self.path} has no 'collections' object")

        for collection_id, entries in collections.items():
            if not isinstance(entries, list):
                raise SnapshotError(
                    f"Collection '{collection_id}' in {self.path} is not a list"
                )
            record_ids: List[str] = []
            for index, entry in enumerate(entries):
                where = f"Collection '{collection_id}' entry at index {index}"
                if not isinstance(entry, dict):
                    raise SnapshotError(f"{where} is not an object")
                record_id = str(entry.get("id") or f"{collection_id}/{index}")
                if record_id in self._records:
                    raise SnapshotError(
                        f"{where} reuses record id '{record_id}' in {self.path}"
                    )
                self._records[record_id] = self._parse_fields(entry.get("fields", []), where)
                record_ids.append(record_id)
            self._collections[collection_id] = record_ids

    def _parse_fields(self, raw_fields: object, where: str) -> List[Field]:
        if not isinstance(raw_fields, list):
            raise SnapshotError(f"{where} has 'fields' that is not a list in {self.path}")
        fields: List[Field] = []
        for position, pair in enumerate(raw_fields):
            if (
                not isinstance(pair, list)
                or len(pair) != 2
                or not isinstance(pair[0], str)
                or not (pair[1] is None or isinstance(pair[1], str))
            ):
                raise SnapshotError(
                    f"{where} has a malformed field at position {position}: {pair!r}"
                )
            fields.append((pair[0], pair[1] or ""))
        return fields

    def list_records(self, collection_id: str) -> List[str]:
        try:
            return list(self._collections[collection_id])
        except KeyError as exc:
            raise SnapshotError(
                f"Collection '{collection_id}' is not present in {self.path}"
            ) from exc

    def read_record(self, record_id: str) -> List[Field]:
        try:
            return list(self._records[record_id])
        except KeyError as exc:
            raise SnapshotError(f"Record '{record_id}' is not present in {self.path}") from exc


class SnapshotRecorder(RecordSource):
    """Pass reads through to another source and remember what they returned."""

    def __init__(self, source: RecordSource) -> None:
        self.source = source
        self._collections: Dict[str, List[str]] = {}
        self._records: Dict[str, List[Field]] = {}

    def describe(self) -> str:
        return self.source.describe()

    def list_records(self, collection_id: str) -> List[str]:
        record_ids = self.source.list_records(collection_id)
        self._collections[collection_id] = list(record_ids)
        return record_ids

    def read_record(self, record_id: str) -> List[Field]:
        if record_id not in self._records:
            self._records[record_id] = self.source.read_record(record_id)
        return list(self._records[record_id])

    def to_snapshot(self) -> dict:
        collections = {}
        for collection_id, record_ids in self._collections.items():
            collections[collection_id] = [
                {
                    "id": record_id,
                    "fields": [list(pair) for pair in self._records.get(record_id, [])],
                }
                for record_id in record_ids
            ]
        return {
            "version": SNAPSHOT_VERSION,
            "source": self.describe(),
            "captured_at": datetime.now(timezone.utc).isoformat(),
            "collections": collections,
        }

    def write(self, path: Path) -> None:
        destination = Path(path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(
            json.dumps(self.to_snapshot(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
