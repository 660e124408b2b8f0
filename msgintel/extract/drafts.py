"""
Draft extraction from ~/Library/Messages/Drafts.

Messages keeps unsent compositions per account:

    Drafts/
    ├── +14155551234/composition.plist
    ├── user@example.com/composition.plist
    │   └── Attachments/
    └── Pending/composition.plist

composition.plist is a property list wrapping an NSKeyedArchiver blob. The
draft text is the first archived object exposing an "NS.string" payload; a
"CKCompositionFileURL" marker in the same object graph means the draft
references a file:// attachment.

Drafts are not backed by chat.db. They are rebuilt from disk on every run and
a corrupt artifact only drops that account's draft.
"""

import base64
import logging
import plistlib
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Tuple
from xml.parsers.expat import ExpatError

from msgintel.extract.records import (
    DraftCommunication,
    DraftContent,
    DraftData,
    DraftDelivery,
    DraftReceiver,
    DraftRecord,
    DraftSource,
    DraftState,
    DraftStatus,
)
from msgintel.extract.timestamps import format_utc

logger = logging.getLogger(__name__)

COMPOSITION_FILENAME = "composition.plist"
ATTACHMENTS_DIRNAME = "Attachments"
PENDING_ACCOUNT = "Pending"
FILE_URL_MARKER = "CKCompositionFileURL"


class DraftArtifactError(ValueError):
    """Raised when a composition artifact cannot be decoded."""


class DraftArtifactReader:
    """Filesystem access to the Messages Drafts directory."""

    def __init__(self, drafts_path: Path):
        self.drafts_path = Path(drafts_path)

    def composition_path(self, account: str) -> Path:
        return self.drafts_path / account / COMPOSITION_FILENAME

    def list_accounts(self) -> List[str]:
        """
        List account directories that hold a composition artifact.

        Returns:
            Sorted account names, or an empty list if the Drafts directory
            is missing or unreadable.
        """
        if not self.drafts_path.is_dir():
            logger.info(f"Drafts directory not found: {self.drafts_path}")
            return []

        try:
            entries = sorted(self.drafts_path.iterdir())
        except OSError as e:
            logger.warning(f"Cannot list drafts directory {self.drafts_path}: {e}")
            return []

        return [entry.name for entry in entries if (entry / COMPOSITION_FILENAME).is_file()]

    def read_composition(self, account: str) -> Optional[bytes]:
        """Read an account's composition.plist, or None if it is absent/unreadable."""
        path = self.composition_path(account)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning(f"Cannot read draft artifact {path}: {e}")
            return None

    def file_times(self, account: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Get (created, last_modified) for an account's composition.plist.

        Creation time uses st_birthtime where the platform records it
        (macOS) and falls back to st_ctime.
        """
        path = self.composition_path(account)
        try:
            stat = path.stat()
        except OSError:
            return None, None

        created_ts = getattr(stat, "st_birthtime", stat.st_ctime)
        created = format_utc(datetime.fromtimestamp(created_ts, tz=timezone.utc))
        modified = format_utc(datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc))
        return created, modified

    def has_attachments(self, account: str) -> bool:
        return (self.drafts_path / account / ATTACHMENTS_DIRNAME).is_dir()


def _first_data_blob(value: Any) -> Optional[bytes]:
    """Depth-first search for the first bytes payload in a decoded plist."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, dict):
        for item in value.values():
            blob = _first_data_blob(item)
            if blob is not None:
                return blob
    if isinstance(value, (list, tuple)):
        for item in value:
            blob = _first_data_blob(item)
            if blob is not None:
                return blob
    return None


def decode_composition(raw: bytes) -> Tuple[List[Any], bytes]:
    """
    Decode a composition.plist into its keyed-archive object list.

    Args:
        raw: Raw bytes of composition.plist (binary or XML plist).

    Returns:
        (archive $objects list, archive bytes) where the archive bytes are the
        embedded NSKeyedArchiver blob.

    Raises:
        DraftArtifactError: If the artifact is not a plist or holds no archive.
    """
    try:
        outer = plistlib.loads(raw)
    except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError) as e:
        raise DraftArtifactError(f"not a property list: {e}") from e

    # Some artifacts are the keyed archive itself rather than a wrapper
    if isinstance(outer, dict) and "$objects" in outer:
        archive, archive_bytes = outer, raw
    else:
        archive_bytes = _first_data_blob(outer)
        if archive_bytes is None:
            raise DraftArtifactError("no embedded archive data")
        try:
            archive = plistlib.loads(archive_bytes)
        except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError) as e:
            raise DraftArtifactError(f"embedded archive is not a property list: {e}") from e

    objects = archive.get("$objects") if isinstance(archive, dict) else None
    if not isinstance(objects, list):
        raise DraftArtifactError("archive has no $objects list")

    return objects, archive_bytes


def draft_text(objects: List[Any]) -> str:
    """Text of the first archived object exposing an NS.string payload."""
    for obj in objects:
        if isinstance(obj, dict):
            value = obj.get("NS.string")
            if isinstance(value, str) and value:
                return value
    return ""


def draft_attachments(objects: List[Any]) -> List[str]:
    """The first file:// URL in the graph, when a file-URL marker is present."""
    if FILE_URL_MARKER not in objects:
        return []
    for obj in objects:
        if isinstance(obj, str) and obj.startswith("file://"):
            return [obj]
    return []


def new_draft_id() -> str:
    return f"DRAFT-{str(uuid.uuid4()).upper()}"


def assemble_draft(
    account: str,
    raw: bytes,
    path: Path,
    *,
    job_id: Optional[str] = None,
    created: Optional[str] = None,
    last_modified: Optional[str] = None,
    has_attachments: bool = False,
) -> DraftRecord:
    """
    Assemble a DraftRecord from one account's composition artifact.

    Raises:
        DraftArtifactError: If the artifact cannot be decoded.
    """
    objects, archive_bytes = decode_composition(raw)
    encoded = base64.b64encode(archive_bytes).decode("ascii")

    return DraftRecord(
        draft_id=new_draft_id(),
        job_id=job_id,
        source=DraftSource(type="plist", directory=account, path=str(path)),
        communication=DraftCommunication(
            receiver=DraftReceiver(
                account=account,
                service="iMessage" if "@" in account else "SMS",
            )
        ),
        content=DraftContent(
            data=DraftData(
                text=draft_text(objects),
                format="NSKeyedArchiver",
                encoding_method="base64",
                mime_type="application/x-plist",
                data_length=len(encoded),
                encoded_data=encoded,
            ),
            attachments=draft_attachments(objects),
        ),
        status=DraftStatus(
            delivery=DraftDelivery(is_pending=account == PENDING_ACCOUNT),
            state=DraftState(
                has_attachments=has_attachments,
                created=created,
                last_modified=last_modified,
            ),
        ),
    )


def extract_drafts(reader: DraftArtifactReader, job_id: Optional[str] = None) -> List[DraftRecord]:
    """
    Extract one DraftRecord per account that has a readable composition.

    Unreadable or corrupt artifacts are logged and skipped.
    """
    drafts: List[DraftRecord] = []

    for account in reader.list_accounts():
        raw = reader.read_composition(account)
        if raw is None:
            continue

        created, last_modified = reader.file_times(account)
        try:
            draft = assemble_draft(
                account,
                raw,
                reader.composition_path(account),
                job_id=job_id,
                created=created,
                last_modified=last_modified,
                has_attachments=reader.has_attachments(account),
            )
        except DraftArtifactError as e:
            logger.warning(f"Skipping draft for {account}: {e}")
            continue

        drafts.append(draft)

    logger.info(f"Extracted {len(drafts)} drafts from {reader.drafts_path}")
    return drafts
