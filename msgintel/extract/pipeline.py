"""
Extraction session orchestration.

An ExtractionSession wires the query catalogue, the executor and the
assembler together for one run:

    1. Build the HandleDirectory (first time a store-backed kind needs it)
    2. For each requested kind, fetch raw rows and assemble records
    3. Wrap the sections in a RunMetadata envelope -> ExtractionResult

Store-backed kinds (messages, attachments, contacts, threads, hidden, search,
date range) yield empty sections when there is no executor or the store is
not readable. Drafts come from the filesystem and are never gated on store
access.
"""

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from msgintel import __version__, queries
from msgintel.database import QueryExecutor
from msgintel.extract.assembler import (
    assemble_attachments,
    assemble_contacts,
    assemble_hidden_messages,
    assemble_messages,
    assemble_threads,
    sort_hidden_messages,
)
from msgintel.extract.drafts import DraftArtifactReader, extract_drafts
from msgintel.extract.handles import HandleDirectory
from msgintel.extract.records import (
    AttachmentRecord,
    ContactAggregate,
    DraftRecord,
    ExtractionResult,
    HiddenMessageRecord,
    MessageRecord,
    QueryInfo,
    RunMetadata,
    ThreadRecord,
)
from msgintel.extract.timestamps import format_utc, to_apple_nanoseconds
from msgintel.utils import current_username, new_job_id

logger = logging.getLogger(__name__)

MESSAGES = "messages"
ATTACHMENTS = "attachments"
CONTACTS = "contacts"
THREADS = "threads"
HIDDEN = "hidden"
DRAFTS = "drafts"
SEARCH = "search"
DATE_RANGE = "date_range"

# Output order of the plain record kinds
RECORD_KINDS: Tuple[str, ...] = (MESSAGES, ATTACHMENTS, CONTACTS, THREADS, HIDDEN, DRAFTS)

EXECUTOR_NAME = "python"


def _as_datetime(value: Any, *, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        if end_of_day:
            return datetime.combine(value, time.max)
        return datetime.combine(value, time.min)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def parse_date_bound(value: str, *, end_of_day: bool = False) -> datetime:
    """
    Parse an ISO date or datetime given on the command line or in a query string.

    A bare date used as the end of a range covers that whole day. Naive
    values are treated as UTC.

    Raises:
        ValueError: If the value is not ISO-8601.
    """
    text = value.strip()
    if "T" not in text and " " not in text:
        return _as_datetime(date.fromisoformat(text), end_of_day=end_of_day)
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class ExtractionRequest:
    """What one run should extract."""

    kinds: Tuple[str, ...] = ()
    search_term: Optional[str] = None
    date_range: Optional[Tuple[datetime, datetime]] = None

    def __post_init__(self):
        unknown = [kind for kind in self.kinds if kind not in RECORD_KINDS]
        if unknown:
            raise ValueError(f"Unknown record kinds: {', '.join(unknown)}")
        if self.date_range is not None:
            start, end = self.date_range
            if _utc(start) > _utc(end):
                raise ValueError("Date range start is after its end")

    @classmethod
    def everything(cls) -> "ExtractionRequest":
        return cls(kinds=RECORD_KINDS)

    @property
    def is_empty(self) -> bool:
        return not self.kinds and self.search_term is None and self.date_range is None

    @property
    def query_type(self) -> str:
        parts: List[str] = []
        if self.search_term is not None:
            parts.append(SEARCH)
        if self.date_range is not None:
            parts.append(DATE_RANGE)
        parts.extend(self.kinds)
        return ",".join(parts) if parts else "none"


class ExtractionSession:
    """
    One extraction run against a store and a drafts directory.

    The handle directory is built once, on first use, and shared by every
    record kind assembled in this session.
    """

    def __init__(
        self,
        executor: Optional[QueryExecutor],
        drafts_reader: Optional[DraftArtifactReader] = None,
        *,
        store_available: bool = True,
        source_db: Optional[str] = None,
        job_id: Optional[str] = None,
    ):
        self.executor = executor
        self.drafts_reader = drafts_reader
        self.store_available = store_available and executor is not None
        self.source_db = source_db
        self.job_id = job_id or new_job_id()
        self._directory: Optional[HandleDirectory] = None

    def _fetch(self, query: Tuple[str, Sequence[Any]]) -> List[Dict[str, Any]]:
        if not self.store_available or self.executor is None:
            return []
        sql, params = query
        return self.executor.fetch(sql, params)

    @property
    def directory(self) -> HandleDirectory:
        if self._directory is None:
            self._directory = HandleDirectory.build(self._fetch(queries.get_handles()))
        return self._directory

    def messages(self) -> List[MessageRecord]:
        rows = self._fetch(queries.get_messages())
        return assemble_messages(rows, self.directory)

    def attachments(self) -> List[AttachmentRecord]:
        rows = self._fetch(queries.get_attachments())
        return assemble_attachments(rows, self.directory)

    def contacts(self) -> List[ContactAggregate]:
        return assemble_contacts(self._fetch(queries.get_contacts()))

    def threads(self) -> List[ThreadRecord]:
        return assemble_threads(self._fetch(queries.get_threads()))

    def hidden(self) -> List[HiddenMessageRecord]:
        rows = self._fetch(queries.get_hidden_messages())
        return sort_hidden_messages(assemble_hidden_messages(rows, self.directory))

    def drafts(self) -> List[DraftRecord]:
        if self.drafts_reader is None:
            return []
        return extract_drafts(self.drafts_reader, job_id=self.job_id)

    def search(self, term: str) -> List[MessageRecord]:
        """Messages whose text, guid, handle or caller id contain ``term``."""
        if not term:
            return []
        rows = self._fetch(queries.search_messages(term))
        return assemble_messages(rows, self.directory)

    def date_range(self, start: datetime, end: datetime) -> List[MessageRecord]:
        """Messages dated between ``start`` and ``end`` inclusive."""
        query = queries.get_messages_between(to_apple_nanoseconds(start), to_apple_nanoseconds(end))
        return assemble_messages(self._fetch(query), self.directory)

    def _metadata(self, request: ExtractionRequest) -> RunMetadata:
        date_range = None
        if request.date_range is not None:
            start, end = request.date_range
            date_range = {"start": format_utc(start), "end": format_utc(end)}

        return RunMetadata(
            job_id=self.job_id,
            user=current_username(),
            executor=EXECUTOR_NAME,
            pid=os.getpid(),
            version=__version__,
            query=QueryInfo(
                timestamp=format_utc(datetime.now(timezone.utc)),
                source_db=self.source_db,
                type=request.query_type,
                search_term=request.search_term,
                date_range=date_range,
            ),
        )

    def run(self, request: ExtractionRequest) -> ExtractionResult:
        """
        Execute a request and collect its sections.

        Args:
            request: Record kinds plus optional search term and date range.

        Returns:
            ExtractionResult whose sections follow the request: search,
            date_range, then record kinds in RECORD_KINDS order.
        """
        if not self.store_available:
            logger.warning("Store not available; store-backed sections will be empty")

        sections: Dict[str, List[Any]] = {}

        if request.search_term is not None:
            sections[SEARCH] = self.search(request.search_term)
        if request.date_range is not None:
            sections[DATE_RANGE] = self.date_range(*request.date_range)

        extractors = {
            MESSAGES: self.messages,
            ATTACHMENTS: self.attachments,
            CONTACTS: self.contacts,
            THREADS: self.threads,
            HIDDEN: self.hidden,
            DRAFTS: self.drafts,
        }
        for kind in RECORD_KINDS:
            if kind in request.kinds:
                sections[kind] = extractors[kind]()
                logger.info(f"Extracted {len(sections[kind])} {kind}")

        result = ExtractionResult(job=self._metadata(request), sections=sections)
        logger.info(f"Job {self.job_id} finished with {result.record_count} records")
        return result


def date_range_from_strings(start: str, end: str) -> Tuple[datetime, datetime]:
    """Parse a (start, end) pair of ISO strings; a bare end date covers the whole day."""
    return parse_date_bound(start), parse_date_bound(end, end_of_day=True)
