"""
Direction resolution: who sent a row and who received it.

chat.db records one participant per message row: handle_id points at the
counterparty, and destination_caller_id holds the local account the message
went through. is_from_me decides which of the two is the sender:

    is_from_me = 0   counterparty -> me
    is_from_me = 1   me -> counterparty

Messages, attachments and hidden messages all carry these three columns, so
one resolver serves every record kind.
"""

import logging
from typing import Any, Mapping

from msgintel.extract.handles import HandleDirectory
from msgintel.extract.normalizers import as_flag, as_int, column, participant_from_identifier
from msgintel.extract.records import Communication, Participant

logger = logging.getLogger(__name__)

# chat.db stores 0 in message.handle_id when no handle applies
NO_HANDLE = 0


def counterparty(row: Mapping[str, Any], directory: HandleDirectory) -> Participant:
    """The participant referenced by the row's handle_id."""
    handle_id = as_int(column(row, "handle_id"), default=NO_HANDLE)
    entry = directory.by_row_id(handle_id)

    if entry is None:
        if handle_id != NO_HANDLE:
            logger.debug(f"handle_id {handle_id} not found in handle directory")
        return Participant(handle_id=handle_id)

    return participant_from_identifier(entry.identifier, entry.country, handle_id)


def local_account(row: Mapping[str, Any], directory: HandleDirectory) -> Participant:
    """The local account side, identified by destination_caller_id."""
    caller_id = column(row, "destination_caller_id")
    if not isinstance(caller_id, str):
        caller_id = None

    entry = directory.by_identifier(caller_id)
    country = entry.country if entry else None
    return participant_from_identifier(caller_id, country, None)


def resolve_direction(row: Mapping[str, Any], directory: HandleDirectory) -> Communication:
    """
    Resolve sender and receiver for a message-like row.

    Args:
        row: Raw row exposing is_from_me, handle_id and destination_caller_id.
        directory: The session's handle directory.

    Returns:
        Communication with both sides populated. Exactly one side carries a
        handle_id: the sender when is_from_me is 0, the receiver when it is 1.
    """
    them = counterparty(row, directory)
    me = local_account(row, directory)

    if as_flag(column(row, "is_from_me")):
        return Communication(sender=me, receiver=them)
    return Communication(sender=them, receiver=me)
