"""
Identifier classification and small row-coercion helpers.

chat.db identifies participants by a single free-form identifier string
(handle.id, message.destination_caller_id). Anything containing "@" is an
email address; everything else, including short codes and business IDs, is
treated as a phone-style identifier.
"""

from typing import Any, List, Mapping, Optional

from msgintel.extract.records import Participant


def is_email(identifier: Optional[str]) -> bool:
    """
    Classify an identifier as an email address.

    Examples:
        >>> is_email("user@example.com")
        True
        >>> is_email("+14155551234")
        False
        >>> is_email(None)
        False
    """
    if not isinstance(identifier, str):
        return False
    return "@" in identifier


def participant_from_identifier(
    identifier: Optional[str],
    country: Optional[str] = None,
    handle_id: Optional[int] = None,
) -> Participant:
    """
    Build a Participant, routing the identifier to email or phone_number.

    An absent identifier yields null phone and email.
    """
    if identifier is None:
        return Participant(country=country, handle_id=handle_id)

    if is_email(identifier):
        return Participant(email=identifier, country=country, handle_id=handle_id)
    return Participant(phone_number=identifier, country=country, handle_id=handle_id)


def as_flag(value: Any) -> bool:
    """Interpret a chat.db boolean column: non-zero is True, NULL is False."""
    if value is None:
        return False
    try:
        return int(value) != 0
    except (TypeError, ValueError):
        return bool(value)


def as_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Coerce a column to int, falling back to default when impossible."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def column(row: Mapping[str, Any], name: str) -> Any:
    """Read a column from a raw row, returning None when the column is absent."""
    try:
        return row[name]
    except (KeyError, IndexError, TypeError):
        return None


def split_concat(value: Any) -> List[str]:
    """Split a GROUP_CONCAT column back into its ordered parts."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(part) for part in value]
    text = str(value)
    if not text:
        return []
    return text.split(",")
