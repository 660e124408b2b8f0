"""
Tests for the extraction session (end-to-end against the sample chat.db).
"""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from msgintel.config import Config
from msgintel.database import SQLiteQueryExecutor
from msgintel.extract.drafts import DraftArtifactReader
from msgintel.extract.pipeline import (
    RECORD_KINDS,
    ExtractionRequest,
    ExtractionSession,
    date_range_from_strings,
    parse_date_bound,
)
from msgintel.extract.renderer import RenderFormat, render


@pytest.fixture
def session(sample_chat_db: Path, drafts_dir: Path):
    config = Config(db_path=str(sample_chat_db), drafts_path=str(drafts_dir))
    with SQLiteQueryExecutor(config) as executor:
        yield ExtractionSession(
            executor,
            DraftArtifactReader(config.drafts_path),
            source_db=config.db_path_str,
            job_id="JOB-TEST",
        )


class TestExtractionRequest:
    """Tests for ExtractionRequest."""

    def test_empty(self):
        assert ExtractionRequest().is_empty
        assert not ExtractionRequest(kinds=("messages",)).is_empty
        assert not ExtractionRequest(search_term="x").is_empty

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown record kinds"):
            ExtractionRequest(kinds=("emails",))

    def test_reversed_range(self):
        with pytest.raises(ValueError):
            ExtractionRequest(date_range=(datetime(2024, 2, 1), datetime(2024, 1, 1)))

    def test_query_type(self):
        request = ExtractionRequest(kinds=("messages", "drafts"), search_term="hi")
        assert request.query_type == "search,messages,drafts"
        assert ExtractionRequest().query_type == "none"

    def test_everything(self):
        assert ExtractionRequest.everything().kinds == RECORD_KINDS


class TestDateParsing:
    """Tests for parse_date_bound / date_range_from_strings."""

    def test_bare_end_date_covers_day(self):
        start, end = date_range_from_strings("2024-01-15", "2024-01-15")
        assert start == datetime(2024, 1, 15, 0, 0, 0)
        assert end.date() == start.date()
        assert end.hour == 23 and end.minute == 59

    def test_datetime_with_z(self):
        dt = parse_date_bound("2024-01-15T10:00:00Z")
        assert dt == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_date_bound("yesterday")


class TestSessionSections:
    """Tests for the per-kind session methods."""

    def test_directory_built_once(self):
        executor = MagicMock()
        executor.fetch.return_value = []
        session = ExtractionSession(executor)
        session.messages()
        session.attachments()
        session.hidden()
        handle_fetches = [c for c in executor.fetch.call_args_list if "FROM handle" in c.args[0]]
        assert len(handle_fetches) == 1

    def test_messages(self, session):
        messages = session.messages()
        assert len(messages) == 8
        first = messages[0]
        assert first.guid == "MSG-1"
        assert first.timestamps.date == "2024-01-15T10:00:00.000Z"
        assert first.timestamps.date_read == "2024-01-15T10:01:00.000Z"
        assert first.state.is_read is True
        assert first.communication.sender.phone_number == "+14155551234"
        assert first.communication.receiver.email == "me@icloud.com"

    def test_outgoing_message_direction(self, session):
        outgoing = {m.guid: m for m in session.messages()}["MSG-2"]
        assert outgoing.communication.sender.email == "me@icloud.com"
        assert outgoing.communication.receiver.handle_id == 1

    def test_unknown_handle(self, session):
        unknown = {m.guid: m for m in session.messages()}["MSG-9"]
        sender = unknown.communication.sender
        assert sender.handle_id == 99
        assert sender.phone_number is None and sender.email is None and sender.country is None

    def test_attachments(self, session):
        attachments = session.attachments()
        assert [a.message.guid for a in attachments] == ["MSG-4", None]
        assert attachments[0].created_date == "2023-03-08T20:26:40.000Z"
        assert attachments[0].message.communication.sender.email == "user@example.com"

    def test_hidden_sorted(self, session):
        hidden = session.hidden()
        assert [h.guid for h in hidden] == ["MSG-6", "MSG-7"]
        assert hidden[1].communication.sender.email == "me@icloud.com"

    def test_contacts(self, session):
        contacts = {c.contact_info.id: c for c in session.contacts()}
        assert contacts["+14155551234"].stats.message_count == 4
        assert sorted(contacts["+14155551234"].relationships.chat_styles) == [43, 45]
        assert contacts["user@example.com"].contact_info.email == "user@example.com"
        assert contacts["user@example.com"].stats.types.attachment == 1
        assert contacts["+442071234567"].relationships.shared_chats == []

    def test_threads(self, session):
        threads = session.threads()
        assert [t.chat_identifier for t in threads] == ["+14155551234", "+14155555678", "chat123"]
        assert threads[0].last_message_date == "2024-01-15T16:00:00.000Z"

    def test_search(self, session):
        assert [m.guid for m in session.search("secret")] == ["MSG-6"]
        assert session.search("") == []

    def test_date_range(self, session):
        start = datetime(2024, 1, 15, 11, 0, tzinfo=timezone.utc)
        end = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert [m.guid for m in session.date_range(start, end)] == ["MSG-3", "MSG-4"]

    def test_drafts_carry_job_id(self, session):
        drafts = session.drafts()
        assert len(drafts) == 3
        assert {d.job_id for d in drafts} == {"JOB-TEST"}


class TestRun:
    """Tests for ExtractionSession.run."""

    def test_everything(self, session):
        result = session.run(ExtractionRequest.everything())
        assert list(result.sections) == list(RECORD_KINDS)
        assert result.job.job_id == "JOB-TEST"
        assert result.job.executor == "python"
        assert result.job.query.type == ",".join(RECORD_KINDS)
        assert result.record_count == sum(len(v) for v in result.sections.values())

    def test_section_order(self, session):
        request = ExtractionRequest(
            kinds=("drafts", "messages"),
            search_term="Hello",
            date_range=(datetime(2024, 1, 15), datetime(2024, 1, 16)),
        )
        result = session.run(request)
        assert list(result.sections) == ["search", "date_range", "messages", "drafts"]
        assert result.job.query.search_term == "Hello"
        assert result.job.query.date_range == {
            "start": "2024-01-15T00:00:00.000Z",
            "end": "2024-01-16T00:00:00.000Z",
        }

    def test_store_unavailable(self, drafts_dir):
        """Without store access, store sections are empty but drafts still load."""
        session = ExtractionSession(None, DraftArtifactReader(drafts_dir), store_available=False)
        result = session.run(ExtractionRequest.everything())
        assert result.sections["messages"] == []
        assert result.sections["contacts"] == []
        assert len(result.sections["drafts"]) == 3

    def test_empty_store(self, empty_chat_db):
        with SQLiteQueryExecutor(Config(db_path=str(empty_chat_db))) as executor:
            result = ExtractionSession(executor).run(ExtractionRequest.everything())
        assert result.record_count == 0

    def test_failed_fetch_gives_empty_section(self, tmp_path):
        """A store missing a table yields an empty section, not an error."""
        db = tmp_path / "partial.db"
        conn = sqlite3.connect(db)
        conn.execute("CREATE TABLE handle (ROWID INTEGER PRIMARY KEY, id TEXT, country TEXT)")
        conn.commit()
        conn.close()

        with SQLiteQueryExecutor(Config(db_path=str(db))) as executor:
            result = ExtractionSession(executor).run(ExtractionRequest(kinds=("messages", "threads")))
        assert result.sections == {"messages": [], "threads": []}

    def test_json_document(self, session):
        doc = json.loads(render(session.run(ExtractionRequest(kinds=("messages",))), RenderFormat.JSON))
        assert set(doc) == {"job", "data"}
        assert len(doc["data"]["messages"]) == 8
        assert doc["job"]["query"]["source_db"].endswith("chat.db")
