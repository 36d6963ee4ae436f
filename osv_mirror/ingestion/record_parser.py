"""
Decoding of archive members into advisory records.

Parsing is pure: a member either yields an AdvisoryRecord or raises
MalformedRecordError naming the member. Validation stops at structure,
the document itself is kept verbatim.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

RECORD_SUFFIX = ".json"


class MalformedRecordError(ValueError):
    """Raised when a member is not a JSON object with a usable id."""

    def __init__(self, entry_name: str, reason: str):
        super().__init__(f"{entry_name}: {reason}")
        self.entry_name = entry_name
        self.reason = reason


@dataclass
class AdvisoryRecord:
    """
    One advisory document keyed by its id.

    ``raw`` is the decoded text exactly as it appeared in the archive and is
    what gets stored; ``payload`` is the parsed form of the same text.
    """
    id: str
    payload: Dict[str, Any]
    raw: str
    modified: Optional[str] = None


def is_record_entry(name: str) -> bool:
    return name.endswith(RECORD_SUFFIX)


def parse_record(entry_name: str, content: bytes) -> AdvisoryRecord:
    """
    Parse one archive member.

    Args:
        entry_name: Member path inside the archive, used in errors
        content: Raw member bytes

    Returns:
        AdvisoryRecord for the document

    Raises:
        MalformedRecordError: If the bytes are not UTF-8 JSON, the document
            is not an object, or it has no non-empty string id
    """
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedRecordError(entry_name, f"not UTF-8 ({exc.reason})") from exc

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(entry_name, f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc

    if not isinstance(document, dict):
        raise MalformedRecordError(entry_name, f"expected a JSON object, got {type(document).__name__}")

    advisory_id = document.get("id")
    if not isinstance(advisory_id, str) or not advisory_id.strip():
        raise MalformedRecordError(entry_name, "missing or empty 'id'")

    modified = document.get("modified")

    return AdvisoryRecord(
        id=advisory_id,
        payload=document,
        raw=text,
        modified=modified if isinstance(modified, str) else None,
    )
