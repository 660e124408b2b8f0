"""
Record assembly: raw chat.db rows -> canonical records.

Each function takes raw rows (dictionaries keyed by column name) plus the
session's HandleDirectory and returns records from
msgintel.extract.records.

Design Decisions:
    1. Assembly is best-effort. Missing or malformed columns become None or
       False; a bad row never aborts its batch.
    2. Boolean columns are read as "non-zero is true".
    3. Direction resolution is shared across every message-like record kind.
    4. Hidden messages are delivered newest-deleted first (stable sort).
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from msgintel.extract.direction import resolve_direction
from msgintel.extract.handles import HandleDirectory
from msgintel.extract.normalizers import as_flag, as_int, column, is_email, split_concat
from msgintel.extract.records import (
    AttachmentMessage,
    AttachmentMessageState,
    AttachmentMetadata,
    AttachmentRecord,
    AttachmentStatus,
    Channel,
    ContactAggregate,
    ContactInfo,
    ContactRelationships,
    ContactStats,
    ContactTypeCounts,
    Content,
    HiddenContext,
    HiddenMessageRecord,
    HiddenThread,
    HiddenTimeline,
    ICloudMeta,
    MessageCommunication,
    MessageRecord,
    MessageState,
    MessageTimestamps,
    MessageType,
    ThreadRecord,
    ThreadRefs,
)
from msgintel.extract.timestamps import normalize_timestamp

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]

# Contact counter name -> column carrying its per-handle sum
CONTACT_COUNTER_COLUMNS = {
    "audio": "audio_count",
    "attachment": "attachment_count",
    "emoji": "emoji_count",
    "downgraded": "downgraded_count",
    "delayed": "delayed_count",
    "auto_reply": "auto_reply_count",
    "spam": "spam_count",
    "system": "system_count",
    "forward": "forward_count",
    "archive": "archive_count",
    "expirable": "expirable_count",
}


def _content(row: Row) -> Content:
    return Content(
        text=column(row, "text"),
        subject=column(row, "subject"),
        group_title=column(row, "group_title"),
    )


# =============================================================================
# Messages
# =============================================================================


def assemble_message(row: Row, directory: HandleDirectory) -> MessageRecord:
    """Assemble one message row (message JOIN chat) into a MessageRecord."""
    communication = resolve_direction(row, directory)

    channel = Channel(
        service=column(row, "service"),
        version=as_int(column(row, "version")),
        is_from_me=as_int(column(row, "is_from_me")),
        chat_identifier=column(row, "chat_identifier"),
        thread=ThreadRefs(
            reply_to_guid=column(row, "reply_to_guid"),
            originator_guid=column(row, "thread_originator_guid"),
            associated_guid=column(row, "associated_message_guid"),
        ),
    )

    return MessageRecord(
        guid=column(row, "guid"),
        timestamps=MessageTimestamps(
            date=normalize_timestamp(column(row, "date")),
            date_read=normalize_timestamp(column(row, "date_read")),
            date_delivered=normalize_timestamp(column(row, "date_delivered")),
            date_played=normalize_timestamp(column(row, "date_played")),
            date_retracted=normalize_timestamp(column(row, "date_retracted")),
            date_edited=normalize_timestamp(column(row, "date_edited")),
        ),
        type=MessageType(
            is_empty=as_flag(column(row, "is_empty")),
            is_archive=as_flag(column(row, "is_archive")),
            is_spam=as_flag(column(row, "is_spam")),
            is_corrupt=as_flag(column(row, "is_corrupt")),
            is_expirable=as_flag(column(row, "is_expirable")),
            is_system=as_flag(column(row, "is_system_message")),
            is_service=as_flag(column(row, "is_service_message")),
            is_forward=as_flag(column(row, "is_forward")),
            is_audio=as_flag(column(row, "is_audio_message")),
            is_emote=as_flag(column(row, "is_emote")),
        ),
        state=MessageState(
            is_delivered=as_flag(column(row, "is_delivered")),
            is_read=as_flag(column(row, "is_read")),
            is_sent=as_flag(column(row, "is_sent")),
            is_played=as_flag(column(row, "is_played")),
            is_prepared=as_flag(column(row, "is_prepared")),
            is_finished=as_flag(column(row, "is_finished")),
            is_empty=as_flag(column(row, "is_empty")),
            was_data_detected=as_flag(column(row, "was_data_detected")),
            was_delivered_quietly=as_flag(column(row, "was_delivered_quietly")),
            was_detonated=as_flag(column(row, "was_detonated")),
        ),
        communication=MessageCommunication(
            channel=channel,
            sender=communication.sender,
            receiver=communication.receiver,
        ),
        content=_content(row),
        icloud=ICloudMeta(
            ck_sync_state=column(row, "ck_sync_state"),
            ck_record_id=column(row, "ck_record_id"),
            ck_record_change_tag=column(row, "ck_record_change_tag"),
        ),
    )


def assemble_messages(rows: Iterable[Row], directory: HandleDirectory) -> List[MessageRecord]:
    """Assemble a batch of message rows."""
    return [assemble_message(row, directory) for row in rows]


# =============================================================================
# Attachments
# =============================================================================


def message_guid_from_attachment_guid(guid: Optional[str]) -> Optional[str]:
    """
    Derive the parent message guid from an attachment guid.

    Attachment guids embed the parent message guid after their second "_".
    A guid without two underscores yields None (no association). This is
    neither the empty string nor the whole attachment guid, so such
    attachments never link to an unrelated message.

    Examples:
        >>> message_guid_from_attachment_guid("p:0/ABC123_DEF456_ghijk")
        'ghijk'
        >>> message_guid_from_attachment_guid("no-underscores") is None
        True
    """
    if not isinstance(guid, str):
        return None

    first = guid.find("_")
    if first < 0:
        return None
    second = guid.find("_", first + 1)
    if second < 0:
        return None
    return guid[second + 1 :]


def assemble_attachment(row: Row, directory: HandleDirectory) -> AttachmentRecord:
    """Assemble one attachment row (attachment JOIN message) into an AttachmentRecord."""
    guid = column(row, "guid")

    return AttachmentRecord(
        guid=guid,
        created_date=normalize_timestamp(column(row, "created_date")),
        metadata=AttachmentMetadata(
            filename=column(row, "filename"),
            mime_type=column(row, "mime_type"),
            uti=column(row, "uti"),
            transfer_name=column(row, "transfer_name"),
            total_bytes=as_int(column(row, "total_bytes")),
        ),
        status=AttachmentStatus(
            transfer_state=as_int(column(row, "transfer_state")),
            is_outgoing=as_int(column(row, "is_outgoing")),
            is_sticker=as_int(column(row, "is_sticker")),
            hide_attachment=as_int(column(row, "hide_attachment")),
            is_commsafety_sensitive=as_int(column(row, "is_commsafety_sensitive")),
            ck_sync_state=as_int(column(row, "ck_sync_state")),
        ),
        message=AttachmentMessage(
            guid=message_guid_from_attachment_guid(guid),
            is_from_me=as_int(column(row, "is_from_me")),
            communication=resolve_direction(row, directory),
            state=AttachmentMessageState(
                is_delivered=as_flag(column(row, "is_delivered")),
                is_read=as_flag(column(row, "is_read")),
                is_sent=as_flag(column(row, "is_sent")),
                is_spam=as_flag(column(row, "is_spam")),
                is_kt_verified=as_flag(column(row, "is_kt_verified")),
                is_empty=as_flag(column(row, "is_empty")),
                is_delayed=as_flag(column(row, "is_delayed")),
                is_auto_reply=as_flag(column(row, "is_auto_reply")),
                is_prepared=as_flag(column(row, "is_prepared")),
                is_finished=as_flag(column(row, "is_finished")),
            ),
        ),
    )


def assemble_attachments(
    rows: Iterable[Row], directory: HandleDirectory
) -> List[AttachmentRecord]:
    """Assemble a batch of attachment rows."""
    return [assemble_attachment(row, directory) for row in rows]


# =============================================================================
# Hidden messages
# =============================================================================


def assemble_hidden_message(row: Row, directory: HandleDirectory) -> HiddenMessageRecord:
    """Assemble one recoverable-message row into a HiddenMessageRecord."""
    return HiddenMessageRecord(
        guid=column(row, "guid"),
        is_from_me=as_int(column(row, "is_from_me")),
        timeline=HiddenTimeline(
            delete_date=normalize_timestamp(column(row, "delete_date")),
            date=normalize_timestamp(column(row, "message_date")),
            date_retracted=normalize_timestamp(column(row, "date_retracted")),
        ),
        communication=resolve_direction(row, directory),
        content=_content(row),
        thread=HiddenThread(
            associated_guid=column(row, "associated_message_guid"),
            reply_to_guid=column(row, "reply_to_guid"),
        ),
        context=HiddenContext(
            chat_identifier=column(row, "chat_identifier"),
            service=column(row, "service"),
            service_name=column(row, "service_name"),
        ),
    )


def sort_hidden_messages(records: Iterable[HiddenMessageRecord]) -> List[HiddenMessageRecord]:
    """Order assembled hidden messages by delete_date descending (stable, undated last)."""

    def sort_key(record: HiddenMessageRecord):
        delete_date = record.timeline.delete_date
        return (delete_date is not None, delete_date or "")

    return sorted(records, key=sort_key, reverse=True)


def assemble_hidden_messages(
    rows: Iterable[Row], directory: HandleDirectory
) -> List[HiddenMessageRecord]:
    """
    Assemble a batch of hidden-message rows.

    Input order is kept; callers that need delete-date ordering apply
    sort_hidden_messages to the result.
    """
    return [assemble_hidden_message(row, directory) for row in rows]


# =============================================================================
# Contacts
# =============================================================================


def _parse_styles(values: List[str]) -> List[int]:
    styles = []
    for value in values:
        style = as_int(value.strip())
        if style is None:
            logger.debug(f"Ignoring non-numeric chat style: {value!r}")
            continue
        styles.append(style)
    return styles


class _ContactAccumulator:
    """Running totals for one handle while grouping contact rows."""

    def __init__(self, row: Row):
        identifier = column(row, "id")
        email = is_email(identifier)
        self.handle_id = as_int(column(row, "ROWID"))
        self.info = ContactInfo(
            id=identifier,
            phone_number=None if email else identifier,
            email=identifier if email else None,
            country=column(row, "country"),
            service=column(row, "service"),
            uncanonicalized_id=column(row, "uncanonicalized_id"),
        )
        self.message_count = 0
        self.chat_count = 0
        self.counters: Dict[str, int] = {name: 0 for name in CONTACT_COUNTER_COLUMNS}
        self.shared_chats: List[str] = []
        self.chat_styles: List[int] = []

    def add(self, row: Row) -> None:
        self.message_count += as_int(column(row, "message_count"), default=0) or 0
        self.chat_count += as_int(column(row, "chat_count"), default=0) or 0
        for name, col in CONTACT_COUNTER_COLUMNS.items():
            self.counters[name] += as_int(column(row, col), default=0) or 0

        for chat in split_concat(column(row, "shared_chats")):
            if chat not in self.shared_chats:
                self.shared_chats.append(chat)
        for style in _parse_styles(split_concat(column(row, "chat_styles"))):
            if style not in self.chat_styles:
                self.chat_styles.append(style)

    def build(self) -> ContactAggregate:
        return ContactAggregate(
            handle_id=self.handle_id,
            contact_info=self.info,
            stats=ContactStats(
                message_count=self.message_count,
                chat_count=self.chat_count,
                types=ContactTypeCounts(**self.counters),
            ),
            relationships=ContactRelationships(
                shared_chats=list(self.shared_chats),
                chat_styles=list(self.chat_styles),
            ),
        )


def assemble_contacts(rows: Iterable[Row]) -> List[ContactAggregate]:
    """
    Group contact rows by handle ROWID into ContactAggregate records.

    Rows may already be aggregated per handle (one row each) or be partial
    aggregates; counters for the same handle are summed and relationship
    lists merged in first-seen order. Output order follows the first row of
    each handle.
    """
    groups: "OrderedDict[Any, _ContactAccumulator]" = OrderedDict()

    for index, row in enumerate(rows):
        key = as_int(column(row, "ROWID"))
        if key is None:
            # Without a ROWID the row cannot be grouped; keep it on its own
            key = ("ungrouped", index)
        if key not in groups:
            groups[key] = _ContactAccumulator(row)
        groups[key].add(row)

    contacts = [accumulator.build() for accumulator in groups.values()]
    logger.debug(f"Assembled {len(contacts)} contact aggregates")
    return contacts


# =============================================================================
# Threads
# =============================================================================


def assemble_thread(row: Row) -> ThreadRecord:
    """Assemble one chat row into a ThreadRecord."""
    return ThreadRecord(
        row_id=as_int(column(row, "ROWID")),
        guid=column(row, "guid"),
        chat_identifier=column(row, "chat_identifier"),
        display_name=column(row, "display_name"),
        service=column(row, "service_name"),
        style=as_int(column(row, "style")),
        message_count=as_int(column(row, "message_count"), default=0) or 0,
        last_message_date=normalize_timestamp(column(row, "last_message_date")),
    )


def assemble_threads(rows: Iterable[Row]) -> List[ThreadRecord]:
    """Assemble a batch of chat rows."""
    return [assemble_thread(row) for row in rows]
