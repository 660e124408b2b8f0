"""
Pytest fixtures for msgintel tests.

Fixture Categories:
    1. Database fixtures (sample chat.db, empty chat.db)
    2. Drafts fixtures (a Drafts directory with composition.plist artifacts)
    3. Real database fixtures (optional, for integration tests)

Sample chat.db contents (times relative to BASE_TIME, 2024-01-15 10:00 UTC):

    handles   1 +14155551234 (us)   2 +14155555678 (us, SMS)
              3 user@example.com    4 +442071234567 (gb, no messages)
    chats     1 +14155551234 style 45   2 +14155555678 style 45
              3 chat123 "Weekend Plans" style 43 (handles 1 and 3)
    messages  MSG-1..MSG-9, see _MESSAGES below; MSG-4 has no text and owns
              attachment at_0_MSG-4; MSG-6 and MSG-7 are recoverable.
"""

import logging
import plistlib
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

# Apple's epoch: 2001-01-01 00:00:00 UTC
APPLE_EPOCH_OFFSET = 978307200

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

ME = "me@icloud.com"


def _datetime_to_apple_ns(dt: datetime) -> int:
    """Convert datetime to Apple's nanosecond timestamp format."""
    unix_ts = int(dt.timestamp())
    return (unix_ts - APPLE_EPOCH_OFFSET) * 1_000_000_000


def at(**offset) -> int:
    """Apple-nanosecond timestamp BASE_TIME + offset."""
    return _datetime_to_apple_ns(BASE_TIME + timedelta(**offset))


def pytest_configure(config):
    config.addinivalue_line("markers", "property: Hypothesis property-based tests")
    config.addinivalue_line("markers", "integration: tests against the real chat.db")


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Keep setup_logging() calls from leaking handlers into other tests."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


CHAT_DB_SCHEMA = """
    CREATE TABLE handle (
        ROWID INTEGER PRIMARY KEY,
        id TEXT NOT NULL,
        service TEXT,
        country TEXT,
        uncanonicalized_id TEXT,
        person_centric_id TEXT
    );

    CREATE TABLE chat (
        ROWID INTEGER PRIMARY KEY,
        guid TEXT,
        style INTEGER,
        chat_identifier TEXT,
        display_name TEXT,
        service_name TEXT
    );

    CREATE TABLE message (
        ROWID INTEGER PRIMARY KEY,
        guid TEXT,
        text TEXT,
        service TEXT,
        handle_id INTEGER DEFAULT 0,
        is_from_me INTEGER DEFAULT 0,
        destination_caller_id TEXT,
        service_center TEXT,
        version INTEGER DEFAULT 10,
        account TEXT,
        account_guid TEXT,
        date INTEGER,
        date_read INTEGER DEFAULT 0,
        date_delivered INTEGER DEFAULT 0,
        date_played INTEGER DEFAULT 0,
        date_retracted INTEGER DEFAULT 0,
        date_edited INTEGER DEFAULT 0,
        subject TEXT,
        group_title TEXT,
        associated_message_guid TEXT,
        reply_to_guid TEXT,
        thread_originator_guid TEXT,
        is_delivered INTEGER DEFAULT 0,
        is_read INTEGER DEFAULT 0,
        is_sent INTEGER DEFAULT 0,
        is_played INTEGER DEFAULT 0,
        is_prepared INTEGER DEFAULT 0,
        is_finished INTEGER DEFAULT 1,
        is_empty INTEGER DEFAULT 0,
        is_archive INTEGER DEFAULT 0,
        is_spam INTEGER DEFAULT 0,
        is_corrupt INTEGER DEFAULT 0,
        is_expirable INTEGER DEFAULT 0,
        is_system_message INTEGER DEFAULT 0,
        is_service_message INTEGER DEFAULT 0,
        is_forward INTEGER DEFAULT 0,
        is_audio_message INTEGER DEFAULT 0,
        is_emote INTEGER DEFAULT 0,
        is_delayed INTEGER DEFAULT 0,
        is_auto_reply INTEGER DEFAULT 0,
        is_kt_verified INTEGER DEFAULT 0,
        was_data_detected INTEGER DEFAULT 0,
        was_delivered_quietly INTEGER DEFAULT 0,
        was_detonated INTEGER DEFAULT 0,
        was_downgraded INTEGER DEFAULT 0,
        ck_sync_state INTEGER DEFAULT 0,
        ck_record_id TEXT,
        ck_record_change_tag TEXT
    );

    CREATE TABLE chat_message_join (
        chat_id INTEGER,
        message_id INTEGER,
        message_date INTEGER DEFAULT 0,
        PRIMARY KEY (chat_id, message_id)
    );

    CREATE TABLE chat_handle_join (
        chat_id INTEGER,
        handle_id INTEGER,
        UNIQUE (chat_id, handle_id)
    );

    CREATE TABLE attachment (
        ROWID INTEGER PRIMARY KEY,
        guid TEXT UNIQUE NOT NULL,
        created_date INTEGER DEFAULT 0,
        filename TEXT,
        uti TEXT,
        mime_type TEXT,
        transfer_state INTEGER DEFAULT 0,
        is_outgoing INTEGER DEFAULT 0,
        transfer_name TEXT,
        total_bytes INTEGER DEFAULT 0,
        is_sticker INTEGER DEFAULT 0,
        hide_attachment INTEGER DEFAULT 0,
        is_commsafety_sensitive INTEGER DEFAULT 0,
        ck_sync_state INTEGER DEFAULT 0,
        original_guid TEXT,
        ck_record_id TEXT
    );

    CREATE TABLE message_attachment_join (
        message_id INTEGER,
        attachment_id INTEGER,
        UNIQUE (message_id, attachment_id)
    );

    CREATE TABLE chat_recoverable_message_join (
        chat_id INTEGER,
        message_id INTEGER,
        delete_date INTEGER,
        ck_sync_state INTEGER DEFAULT 0,
        PRIMARY KEY (chat_id, message_id)
    );
"""

_HANDLES = [
    (1, "+14155551234", "iMessage", "us", "(415) 555-1234"),
    (2, "+14155555678", "SMS", "us", None),
    (3, "user@example.com", "iMessage", None, None),
    (4, "+442071234567", "iMessage", "gb", None),
]

_CHATS = [
    (1, "iMessage;-;+14155551234", 45, "+14155551234", None, "iMessage"),
    (2, "SMS;-;+14155555678", 45, "+14155555678", None, "SMS"),
    (3, "iMessage;+;chat123", 43, "chat123", "Weekend Plans", "iMessage"),
]

_CHAT_HANDLES = [(1, 1), (2, 2), (3, 1), (3, 3)]

# (ROWID, guid, text, service, handle_id, is_from_me, destination_caller_id, date)
_MESSAGES = [
    (1, "MSG-1", "Hello!", "iMessage", 1, 0, ME, at()),
    (2, "MSG-2", "Hi there!", "iMessage", 1, 1, ME, at(minutes=2)),
    (3, "MSG-3", "Meeting tomorrow?", "SMS", 2, 0, "+14155550000", at(hours=1)),
    (4, "MSG-4", None, "iMessage", 3, 0, ME, at(hours=2)),
    (5, "MSG-5", "100% agree_ok", "iMessage", 3, 0, ME, at(hours=3)),
    (6, "MSG-6", "Deleted secret", "iMessage", 1, 0, ME, at(hours=4)),
    (7, "MSG-7", "Oops wrong chat", "iMessage", 0, 1, ME, at(hours=5)),
    (8, "MSG-8", "Voice note", "iMessage", 1, 0, ME, at(hours=6)),
    (9, "MSG-9", "Unknown sender", "iMessage", 99, 0, ME, at(hours=7)),
]

# Recoverable messages are no longer in chat_message_join
_CHAT_MESSAGES = [(1, 1), (1, 2), (2, 3), (3, 4), (3, 5), (1, 8)]

_RECOVERABLE = [(1, 6, at(hours=10)), (3, 7, at(hours=9))]


@pytest.fixture
def sample_chat_db(tmp_path: Path) -> Path:
    """
    Create a chat.db with the tables and columns the extractor reads.

    Returns:
        Path to the sample chat.db file.
    """
    db_path = tmp_path / "chat.db"
    conn = sqlite3.connect(str(db_path))

    try:
        conn.executescript(CHAT_DB_SCHEMA)

        conn.executemany(
            "INSERT INTO handle (ROWID, id, service, country, uncanonicalized_id) "
            "VALUES (?, ?, ?, ?, ?)",
            _HANDLES,
        )
        conn.executemany(
            "INSERT INTO chat (ROWID, guid, style, chat_identifier, display_name, service_name) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            _CHATS,
        )
        conn.executemany("INSERT INTO chat_handle_join (chat_id, handle_id) VALUES (?, ?)", _CHAT_HANDLES)
        conn.executemany(
            "INSERT INTO message (ROWID, guid, text, service, handle_id, is_from_me, "
            "destination_caller_id, date) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            _MESSAGES,
        )

        # Flags and secondary dates
        conn.execute(
            "UPDATE message SET is_read = 1, is_delivered = 1, date_read = ? WHERE ROWID = 1",
            (at(minutes=1),),
        )
        conn.execute("UPDATE message SET is_sent = 1, is_delivered = 1 WHERE ROWID = 2")
        conn.execute("UPDATE message SET reply_to_guid = 'MSG-1', subject = 'Re' WHERE ROWID = 5")
        conn.execute("UPDATE message SET is_audio_message = 1, is_played = 1 WHERE ROWID = 8")

        conn.executemany(
            "INSERT INTO chat_message_join (chat_id, message_id) VALUES (?, ?)", _CHAT_MESSAGES
        )

        conn.executemany(
            "INSERT INTO attachment (ROWID, guid, created_date, filename, uti, mime_type, "
            "transfer_state, transfer_name, total_bytes) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    1,
                    "at_0_MSG-4",
                    700000000,
                    "~/Library/Messages/Attachments/ab/photo.jpg",
                    "public.jpeg",
                    "image/jpeg",
                    5,
                    "photo.jpg",
                    2048,
                ),
                (2, "ORPHANGUID", None, None, None, None, 0, None, 0),
            ],
        )
        conn.execute("INSERT INTO message_attachment_join (message_id, attachment_id) VALUES (4, 1)")

        conn.executemany(
            "INSERT INTO chat_recoverable_message_join (chat_id, message_id, delete_date) "
            "VALUES (?, ?, ?)",
            _RECOVERABLE,
        )

        conn.commit()
    finally:
        conn.close()

    return db_path


@pytest.fixture
def empty_chat_db(tmp_path: Path) -> Path:
    """Create a chat.db with the schema but no rows."""
    db_path = tmp_path / "empty_chat.db"
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(CHAT_DB_SCHEMA)
        conn.commit()
    finally:
        conn.close()
    return db_path


# =============================================================================
# Drafts fixtures
# =============================================================================


def keyed_archive(*objects) -> bytes:
    """Binary NSKeyedArchiver-style plist whose $objects follow "$null"."""
    archive = {
        "$version": 100000,
        "$archiver": "NSKeyedArchiver",
        "$top": {"root": plistlib.UID(1)},
        "$objects": ["$null", *objects],
    }
    return plistlib.dumps(archive, fmt=plistlib.FMT_BINARY)


def composition(*objects) -> bytes:
    """A composition.plist wrapping a keyed archive in its "text" key."""
    return plistlib.dumps({"text": keyed_archive(*objects)}, fmt=plistlib.FMT_BINARY)


ATTACHMENT_URL = "file:///Users/me/Library/Messages/Drafts/user@example.com/Attachments/x.jpg"


@pytest.fixture
def drafts_dir(tmp_path: Path) -> Path:
    """
    Create a Drafts directory.

    Accounts (sorted): +14155551234 (plain text), Pending, broken@example.com
    (corrupt artifact), user@example.com (file attachment), plus a directory
    without composition.plist.
    """
    root = tmp_path / "Drafts"

    def write(account: str, data: bytes) -> Path:
        account_dir = root / account
        account_dir.mkdir(parents=True)
        (account_dir / "composition.plist").write_bytes(data)
        return account_dir

    write("+14155551234", composition({"NS.string": "See you at 7", "$class": plistlib.UID(2)}))
    write("Pending", composition({"NS.string": "Pending hello", "$class": plistlib.UID(2)}))
    write("broken@example.com", b"this is not a property list")

    with_attachment = write(
        "user@example.com",
        composition(
            {"NS.string": "Photo for you", "$class": plistlib.UID(4)},
            "CKCompositionFileURL",
            ATTACHMENT_URL,
        ),
    )
    (with_attachment / "Attachments").mkdir()

    (root / "no-artifact").mkdir()
    return root


# =============================================================================
# Real database fixtures (for integration tests)
# =============================================================================


@pytest.fixture
def real_chat_db() -> Optional[Path]:
    """
    Path to the real chat.db if available.

    Tests using this fixture are skipped when the database is absent or
    this process has no Full Disk Access.
    """
    real_path = Path.home() / "Library" / "Messages" / "chat.db"
    if not real_path.exists():
        pytest.skip("Real chat.db not available")
    try:
        with open(real_path, "rb"):
            pass
    except OSError:
        pytest.skip("No read access to real chat.db")
    return real_path
