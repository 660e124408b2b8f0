"""
SQL query definitions for chat.db extraction.

Each function returns a (query, params) tuple ready for
QueryExecutor.fetch. Column aliases match the names the record assembler
reads.
"""

from typing import Any, Tuple

Query = Tuple[str, Tuple[Any, ...]]

_MESSAGE_COLUMNS = """
            m.ROWID, m.guid, m.text, m.service, m.handle_id,
            m.is_from_me, m.destination_caller_id,
            m.service_center, m.version, m.account, m.account_guid,
            m.date, m.date_read, m.date_delivered, m.date_played,
            m.date_retracted, m.date_edited,
            m.subject, m.group_title,
            m.associated_message_guid, m.reply_to_guid, m.thread_originator_guid,
            m.is_delivered, m.is_read, m.is_sent, m.is_played, m.is_prepared, m.is_finished,
            m.is_empty, m.is_archive, m.is_spam, m.is_corrupt, m.is_expirable,
            m.is_system_message, m.is_service_message, m.is_forward,
            m.is_audio_message, m.is_emote,
            m.was_data_detected, m.was_delivered_quietly, m.was_detonated,
            m.ck_sync_state, m.ck_record_id, m.ck_record_change_tag,
            c.chat_identifier
"""

_MESSAGE_JOINS = """
        FROM message m
        LEFT JOIN chat_message_join cmj ON m.ROWID = cmj.message_id
        LEFT JOIN chat c ON cmj.chat_id = c.ROWID
"""


def get_handles() -> Query:
    """Get query for the handle directory (ROWID, id, country)."""
    return "SELECT ROWID, id, country FROM handle ORDER BY ROWID;", ()


def get_messages() -> Query:
    """Get query for all messages that carry text."""
    query = f"""
        SELECT {_MESSAGE_COLUMNS}
        {_MESSAGE_JOINS}
        WHERE m.text IS NOT NULL
        ORDER BY m.date ASC, m.ROWID ASC;
    """
    return query, ()


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_messages(search_term: str) -> Query:
    """
    Get query to search messages by text, guid, handle id or caller id.

    Args:
        search_term: Literal substring to look for.

    Returns:
        (SQL query string, parameters tuple).
    """
    pattern = f"%{escape_like(search_term)}%"
    query = f"""
        SELECT {_MESSAGE_COLUMNS}
        {_MESSAGE_JOINS}
        LEFT JOIN handle h ON m.handle_id = h.ROWID
        WHERE m.text LIKE ? ESCAPE '\\'
           OR m.guid LIKE ? ESCAPE '\\'
           OR h.id LIKE ? ESCAPE '\\'
           OR m.destination_caller_id LIKE ? ESCAPE '\\'
        ORDER BY m.date ASC, m.ROWID ASC;
    """
    return query, (pattern, pattern, pattern, pattern)


def get_messages_between(start_ns: int, end_ns: int) -> Query:
    """
    Get query for messages whose date lies in [start_ns, end_ns].

    Args:
        start_ns: Range start in Apple nanoseconds.
        end_ns: Range end in Apple nanoseconds.

    Returns:
        (SQL query string, parameters tuple).
    """
    query = f"""
        SELECT {_MESSAGE_COLUMNS}
        {_MESSAGE_JOINS}
        WHERE m.date BETWEEN ? AND ?
        ORDER BY m.date ASC, m.ROWID ASC;
    """
    return query, (int(start_ns), int(end_ns))


def get_attachments() -> Query:
    """Get query for attachments joined to their owning message."""
    query = """
        SELECT
            a.ROWID,
            a.guid,
            a.created_date,
            a.filename,
            a.uti,
            a.mime_type,
            a.transfer_name,
            a.total_bytes,
            a.transfer_state,
            a.is_outgoing,
            a.is_sticker,
            a.hide_attachment,
            a.is_commsafety_sensitive,
            a.ck_sync_state,
            a.original_guid,
            a.ck_record_id,
            m.handle_id,
            m.is_from_me,
            m.destination_caller_id,
            m.is_delivered,
            m.is_read,
            m.is_sent,
            m.is_empty,
            m.is_delayed,
            m.is_auto_reply,
            m.is_prepared,
            m.is_finished,
            m.is_spam,
            m.is_kt_verified
        FROM attachment a
        LEFT JOIN message_attachment_join maj ON a.ROWID = maj.attachment_id
        LEFT JOIN message m ON maj.message_id = m.ROWID
        ORDER BY a.ROWID ASC;
    """
    return query, ()


def get_hidden_messages() -> Query:
    """Get query for recoverable (recently deleted) messages, newest deletion first."""
    query = """
        SELECT
            crm.delete_date,
            m.date AS message_date,
            m.date_retracted,
            m.guid,
            m.text,
            m.service,
            m.is_from_me,
            m.subject,
            m.group_title,
            m.handle_id,
            m.destination_caller_id,
            m.associated_message_guid,
            m.reply_to_guid,
            c.chat_identifier,
            c.service_name
        FROM chat_recoverable_message_join crm
        JOIN chat c ON crm.chat_id = c.ROWID
        JOIN message m ON crm.message_id = m.ROWID
        WHERE m.text IS NOT NULL
        ORDER BY crm.delete_date DESC;
    """
    return query, ()


def get_contacts() -> Query:
    """
    Get query for per-handle contact aggregates.

    Message counters are computed in a subquery so that joining chats does
    not multiply them. attachment_count counts rows with is_empty = 0 and
    no text.
    """
    query = """
        SELECT
            h.ROWID,
            h.id,
            h.service,
            h.country,
            h.uncanonicalized_id,
            COALESCE(ms.message_count, 0) AS message_count,
            (SELECT COUNT(DISTINCT chj.chat_id)
               FROM chat_handle_join chj
              WHERE chj.handle_id = h.ROWID) AS chat_count,
            (SELECT GROUP_CONCAT(DISTINCT c.chat_identifier)
               FROM chat_handle_join chj
               JOIN chat c ON chj.chat_id = c.ROWID
              WHERE chj.handle_id = h.ROWID) AS shared_chats,
            (SELECT GROUP_CONCAT(DISTINCT c.style)
               FROM chat_handle_join chj
               JOIN chat c ON chj.chat_id = c.ROWID
              WHERE chj.handle_id = h.ROWID) AS chat_styles,
            COALESCE(ms.audio_count, 0) AS audio_count,
            COALESCE(ms.attachment_count, 0) AS attachment_count,
            COALESCE(ms.emoji_count, 0) AS emoji_count,
            COALESCE(ms.downgraded_count, 0) AS downgraded_count,
            COALESCE(ms.delayed_count, 0) AS delayed_count,
            COALESCE(ms.auto_reply_count, 0) AS auto_reply_count,
            COALESCE(ms.spam_count, 0) AS spam_count,
            COALESCE(ms.system_count, 0) AS system_count,
            COALESCE(ms.forward_count, 0) AS forward_count,
            COALESCE(ms.archive_count, 0) AS archive_count,
            COALESCE(ms.expirable_count, 0) AS expirable_count
        FROM handle h
        LEFT JOIN (
            SELECT
                m.handle_id,
                COUNT(m.ROWID) AS message_count,
                SUM(CASE WHEN m.is_audio_message = 1 THEN 1 ELSE 0 END) AS audio_count,
                SUM(CASE WHEN m.is_empty = 0 AND m.text IS NULL THEN 1 ELSE 0 END)
                    AS attachment_count,
                SUM(CASE WHEN m.is_emote = 1 THEN 1 ELSE 0 END) AS emoji_count,
                SUM(CASE WHEN m.was_downgraded = 1 THEN 1 ELSE 0 END) AS downgraded_count,
                SUM(CASE WHEN m.is_delayed = 1 THEN 1 ELSE 0 END) AS delayed_count,
                SUM(CASE WHEN m.is_auto_reply = 1 THEN 1 ELSE 0 END) AS auto_reply_count,
                SUM(CASE WHEN m.is_spam = 1 THEN 1 ELSE 0 END) AS spam_count,
                SUM(CASE WHEN m.is_system_message = 1 THEN 1 ELSE 0 END) AS system_count,
                SUM(CASE WHEN m.is_forward = 1 THEN 1 ELSE 0 END) AS forward_count,
                SUM(CASE WHEN m.is_archive = 1 THEN 1 ELSE 0 END) AS archive_count,
                SUM(CASE WHEN m.is_expirable = 1 THEN 1 ELSE 0 END) AS expirable_count
            FROM message m
            GROUP BY m.handle_id
        ) ms ON ms.handle_id = h.ROWID
        ORDER BY h.id;
    """
    return query, ()


def get_threads() -> Query:
    """Get query for chats with message counts and latest message date."""
    query = """
        SELECT
            c.ROWID,
            c.guid,
            c.chat_identifier,
            c.display_name,
            c.service_name,
            c.style,
            COUNT(cmj.message_id) AS message_count,
            MAX(m.date) AS last_message_date
        FROM chat c
        LEFT JOIN chat_message_join cmj ON c.ROWID = cmj.chat_id
        LEFT JOIN message m ON cmj.message_id = m.ROWID
        GROUP BY c.ROWID
        ORDER BY c.ROWID;
    """
    return query, ()
