"""
Canonical record model.

These frozen dataclasses are the normalized, storage-independent shape that
the assembler produces and the renderer consumes. Their nesting mirrors the
JSON document emitted for each record kind; ``dataclasses.asdict`` gives the
structured rendering directly.

Every record also defines ``tabular_row()``: its projection onto the fixed
tabular columns (GUID, MESSAGE, DATE, SERVICE, SENDER, RECEIVER).
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

TabularRow = Tuple[Optional[str], Optional[str], Optional[str], Optional[str], str, str]


# =============================================================================
# Participants
# =============================================================================


@dataclass(frozen=True)
class Participant:
    """One side of a conversation."""

    phone_number: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    handle_id: Optional[int] = None

    @property
    def identifier(self) -> str:
        """Phone number if present, else email, else an empty string."""
        return self.phone_number or self.email or ""


@dataclass(frozen=True)
class Communication:
    """Sender/receiver pair produced by direction resolution."""

    sender: Participant
    receiver: Participant


# =============================================================================
# Messages
# =============================================================================


@dataclass(frozen=True)
class MessageTimestamps:
    date: Optional[str] = None
    date_read: Optional[str] = None
    date_delivered: Optional[str] = None
    date_played: Optional[str] = None
    date_retracted: Optional[str] = None
    date_edited: Optional[str] = None


@dataclass(frozen=True)
class MessageType:
    is_empty: bool = False
    is_archive: bool = False
    is_spam: bool = False
    is_corrupt: bool = False
    is_expirable: bool = False
    is_system: bool = False
    is_service: bool = False
    is_forward: bool = False
    is_audio: bool = False
    is_emote: bool = False


@dataclass(frozen=True)
class MessageState:
    is_delivered: bool = False
    is_read: bool = False
    is_sent: bool = False
    is_played: bool = False
    is_prepared: bool = False
    is_finished: bool = False
    is_empty: bool = False
    was_data_detected: bool = False
    was_delivered_quietly: bool = False
    was_detonated: bool = False


@dataclass(frozen=True)
class ThreadRefs:
    reply_to_guid: Optional[str] = None
    originator_guid: Optional[str] = None
    associated_guid: Optional[str] = None


@dataclass(frozen=True)
class Channel:
    service: Optional[str] = None
    version: Optional[int] = None
    is_from_me: Optional[int] = None
    chat_identifier: Optional[str] = None
    thread: ThreadRefs = field(default_factory=ThreadRefs)


@dataclass(frozen=True)
class MessageCommunication:
    channel: Channel
    sender: Participant
    receiver: Participant


@dataclass(frozen=True)
class Content:
    text: Optional[str] = None
    subject: Optional[str] = None
    group_title: Optional[str] = None


@dataclass(frozen=True)
class ICloudMeta:
    ck_sync_state: Optional[int] = None
    ck_record_id: Optional[str] = None
    ck_record_change_tag: Optional[str] = None


@dataclass(frozen=True)
class MessageRecord:
    """A message row from chat.db, normalized."""

    guid: Optional[str]
    timestamps: MessageTimestamps
    type: MessageType
    state: MessageState
    communication: MessageCommunication
    content: Content
    icloud: ICloudMeta

    def tabular_row(self) -> TabularRow:
        return (
            self.guid,
            self.content.text,
            self.timestamps.date,
            self.communication.channel.service,
            self.communication.sender.identifier,
            self.communication.receiver.identifier,
        )


# =============================================================================
# Attachments
# =============================================================================


@dataclass(frozen=True)
class AttachmentMetadata:
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    uti: Optional[str] = None
    transfer_name: Optional[str] = None
    total_bytes: Optional[int] = None


@dataclass(frozen=True)
class AttachmentStatus:
    transfer_state: Optional[int] = None
    is_outgoing: Optional[int] = None
    is_sticker: Optional[int] = None
    hide_attachment: Optional[int] = None
    is_commsafety_sensitive: Optional[int] = None
    ck_sync_state: Optional[int] = None


@dataclass(frozen=True)
class AttachmentMessageState:
    is_delivered: bool = False
    is_read: bool = False
    is_sent: bool = False
    is_spam: bool = False
    is_kt_verified: bool = False
    is_empty: bool = False
    is_delayed: bool = False
    is_auto_reply: bool = False
    is_prepared: bool = False
    is_finished: bool = False


@dataclass(frozen=True)
class AttachmentMessage:
    """The message an attachment belongs to."""

    guid: Optional[str]
    is_from_me: Optional[int]
    communication: Communication
    state: AttachmentMessageState


@dataclass(frozen=True)
class AttachmentRecord:
    guid: Optional[str]
    created_date: Optional[str]
    metadata: AttachmentMetadata
    status: AttachmentStatus
    message: AttachmentMessage

    def tabular_row(self) -> TabularRow:
        return (
            self.guid,
            self.metadata.filename,
            self.created_date,
            None,
            self.message.communication.sender.identifier,
            self.message.communication.receiver.identifier,
        )


# =============================================================================
# Hidden (recoverable) messages
# =============================================================================


@dataclass(frozen=True)
class HiddenTimeline:
    delete_date: Optional[str] = None
    date: Optional[str] = None
    date_retracted: Optional[str] = None


@dataclass(frozen=True)
class HiddenThread:
    associated_guid: Optional[str] = None
    reply_to_guid: Optional[str] = None


@dataclass(frozen=True)
class HiddenContext:
    chat_identifier: Optional[str] = None
    service: Optional[str] = None
    service_name: Optional[str] = None


@dataclass(frozen=True)
class HiddenMessageRecord:
    """A soft-deleted message still held in chat_recoverable_message_join."""

    guid: Optional[str]
    is_from_me: Optional[int]
    timeline: HiddenTimeline
    communication: Communication
    content: Content
    thread: HiddenThread
    context: HiddenContext

    def tabular_row(self) -> TabularRow:
        return (
            self.guid,
            self.content.text,
            self.timeline.date,
            self.context.service,
            self.communication.sender.identifier,
            self.communication.receiver.identifier,
        )


# =============================================================================
# Contacts
# =============================================================================


@dataclass(frozen=True)
class ContactInfo:
    id: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    service: Optional[str] = None
    uncanonicalized_id: Optional[str] = None


@dataclass(frozen=True)
class ContactTypeCounts:
    audio: int = 0
    attachment: int = 0
    emoji: int = 0
    downgraded: int = 0
    delayed: int = 0
    auto_reply: int = 0
    spam: int = 0
    system: int = 0
    forward: int = 0
    archive: int = 0
    expirable: int = 0


@dataclass(frozen=True)
class ContactStats:
    message_count: int = 0
    chat_count: int = 0
    types: ContactTypeCounts = field(default_factory=ContactTypeCounts)


@dataclass(frozen=True)
class ContactRelationships:
    shared_chats: List[str] = field(default_factory=list)
    chat_styles: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class ContactAggregate:
    """Per-handle rollup of message activity and shared chats."""

    handle_id: Optional[int]
    contact_info: ContactInfo
    stats: ContactStats
    relationships: ContactRelationships

    def tabular_row(self) -> TabularRow:
        return (
            self.contact_info.id,
            None,
            None,
            self.contact_info.service,
            self.contact_info.phone_number or self.contact_info.email or "",
            "",
        )


# =============================================================================
# Threads
# =============================================================================


@dataclass(frozen=True)
class ThreadRecord:
    """A chat row with its message count and latest activity."""

    row_id: Optional[int]
    guid: Optional[str]
    chat_identifier: Optional[str]
    display_name: Optional[str]
    service: Optional[str]
    style: Optional[int]
    message_count: int
    last_message_date: Optional[str]

    def tabular_row(self) -> TabularRow:
        return (
            self.guid,
            self.display_name,
            self.last_message_date,
            self.service,
            "",
            self.chat_identifier or "",
        )


# =============================================================================
# Drafts
# =============================================================================


@dataclass(frozen=True)
class DraftSource:
    type: str
    directory: str
    path: str


@dataclass(frozen=True)
class DraftReceiver:
    account: str
    service: str


@dataclass(frozen=True)
class DraftCommunication:
    receiver: DraftReceiver


@dataclass(frozen=True)
class DraftData:
    text: str
    format: str
    encoding_method: str
    mime_type: str
    data_length: int
    encoded_data: str


@dataclass(frozen=True)
class DraftContent:
    data: DraftData
    attachments: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DraftDelivery:
    is_pending: bool = False
    is_delivered: bool = False
    is_sent: bool = False
    is_read: bool = False
    is_played: bool = False
    is_prepared: bool = False
    is_finished: bool = False
    was_delivered_quietly: bool = False
    did_notify_recipient: bool = False
    was_downgraded: bool = False
    was_detonated: bool = False
    is_delayed: bool = False


@dataclass(frozen=True)
class DraftState:
    has_attachments: bool = False
    created: Optional[str] = None
    last_modified: Optional[str] = None


@dataclass(frozen=True)
class DraftStatus:
    delivery: DraftDelivery
    state: DraftState


@dataclass(frozen=True)
class DraftRecord:
    """An unsent composition recovered from the Drafts directory."""

    draft_id: str
    job_id: Optional[str]
    source: DraftSource
    communication: DraftCommunication
    content: DraftContent
    status: DraftStatus

    def tabular_row(self) -> TabularRow:
        return (
            self.draft_id,
            self.content.data.text,
            self.status.state.last_modified,
            self.communication.receiver.service,
            "",
            self.communication.receiver.account,
        )


def record_to_dict(record: Any) -> Dict[str, Any]:
    """Convert any record to its nested dictionary form."""
    return asdict(record)


# =============================================================================
# Run envelope
# =============================================================================


@dataclass(frozen=True)
class QueryInfo:
    timestamp: str
    source_db: Optional[str]
    type: str
    search_term: Optional[str] = None
    date_range: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class RunMetadata:
    """Who ran the extraction, when, and against what."""

    job_id: str
    user: str
    executor: str
    pid: int
    version: str
    query: QueryInfo


@dataclass
class ExtractionResult:
    """Run metadata plus the assembled records, grouped into named sections."""

    job: RunMetadata
    sections: Dict[str, List[Any]] = field(default_factory=dict)

    def to_document(self) -> Dict[str, Any]:
        return {
            "job": asdict(self.job),
            "data": {
                name: [record_to_dict(record) for record in records]
                for name, records in self.sections.items()
            },
        }

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.sections.values())
