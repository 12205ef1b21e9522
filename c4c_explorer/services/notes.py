"""Flatten EMailNotes / ActivityText payloads into ``NormalizedNote`` records.

WHAT: Walks ``d.results[].<notes_key>[]`` for every fetched e-mail or memo
activity and produces one flat record per non-blank note.
WHEN: Called after the reference fan-out has finished; no I/O happens here.
WHY: Upstream records are loosely shaped and spell some fields two ways, and
note bodies are HTML. Exports need a fixed set of plain-text columns.
HOW: Every read goes through ``read_string`` so missing or non-string values
become ``""``. Field names are looked up through ``FIELD_SOURCES``, an ordered
candidate table, so another upstream spelling is one more tuple entry.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from bs4 import BeautifulSoup

from ..schemas.c4c import NormalizedNote
from .upstream import odata_results

NOTE = "note"
RECORD = "record"

EMAIL_NOTES_KEY = "EMailNotes"
ACTIVITY_TEXT_KEY = "ActivityText"

FieldSources = Tuple[Tuple[str, str], ...]

# Output field -> ordered (source, upstream key) candidates; first non-blank wins.
FIELD_SOURCES: Dict[str, FieldSources] = {
    "ticket_id": ((RECORD, "TicketID"),),
    "object_id": ((NOTE, "ObjectID"),),
    "parent_object_id": ((NOTE, "ParentObjectID"),),
    "header_object_id": ((NOTE, "HeaderObjectID"),),
    "external_key": ((NOTE, "ExternalKey"), (NOTE, "External_Key")),
    "email_external_key": ((NOTE, "EMailExternalKey"), (RECORD, "ExternalKey")),
    "email_id": ((NOTE, "EMailID"), (RECORD, "ID")),
    "type_code": ((NOTE, "TypeCode"),),
    "type_code_text": ((NOTE, "TypeCodeText"),),
    "author_name": ((NOTE, "AuthorName"),),
    "author_uuid": ((NOTE, "AuthorUUID"),),
    "created_by": ((NOTE, "CreatedBy"),),
    "last_updated_by": ((NOTE, "LastUpdatedBy"),),
    "language": ((NOTE, "LanguageCode"),),
    "language_text": ((NOTE, "LanguageCodeText"),),
}

DATE_FIELD_SOURCES: Dict[str, FieldSources] = {
    "created_on": ((NOTE, "CreatedOn"),),
    "updated_on": ((NOTE, "UpdatedOn"),),
}

_BR_RE = re.compile(r"<\s*br\b[^>]*>", re.IGNORECASE)
_P_CLOSE_RE = re.compile(r"<\s*/\s*p\s*>", re.IGNORECASE)
_P_OPEN_RE = re.compile(r"<\s*p(?:\s[^>]*)?>", re.IGNORECASE)
_DIV_CLOSE_RE = re.compile(r"<\s*/\s*div\s*>", re.IGNORECASE)
_DIV_OPEN_RE = re.compile(r"<\s*div(?:\s[^>]*)?>", re.IGNORECASE)
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_ODATA_DATE_RE = re.compile(r"/Date\((\d+)(?:[+-]\d+)?\)/")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def read_string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def read_field(record: Mapping[str, Any] | None, key: str) -> str:
    if not isinstance(record, Mapping):
        return ""
    return read_string(record.get(key))


def first_present(sources: FieldSources, note: Mapping[str, Any], record: Mapping[str, Any]) -> str:
    for source, key in sources:
        value = read_field(note if source == NOTE else record, key)
        if value.strip():
            return value
    return ""


def html_to_text(html: str) -> str:
    """Convert a note body to readable text, keeping paragraph and line breaks."""

    if not html:
        return ""
    normalized = _BR_RE.sub("\n", html)
    normalized = _P_CLOSE_RE.sub("\n\n", normalized)
    normalized = _P_OPEN_RE.sub("", normalized)
    normalized = _DIV_CLOSE_RE.sub("\n", normalized)
    normalized = _DIV_OPEN_RE.sub("", normalized)

    soup = BeautifulSoup(normalized, "html.parser")
    for element in soup.find_all(["head", "title", "style", "script"]):
        element.decompose()
    text = (soup.body or soup).get_text()
    return _EXCESS_NEWLINES_RE.sub("\n\n", text).strip()


def decode_odata_date(value: Any) -> str:
    """``/Date(ms[+offset])/`` to an ISO-8601 UTC instant; other strings unchanged."""

    if not isinstance(value, str):
        return ""
    match = _ODATA_DATE_RE.search(value)
    if not match:
        return value
    try:
        instant = _EPOCH + timedelta(milliseconds=int(match.group(1)))
    except OverflowError:
        return value
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _normalize_note(
    note: Mapping[str, Any],
    record: Mapping[str, Any],
    *,
    activity_id: str,
    note_index: int,
    ticket_id: str,
) -> NormalizedNote | None:
    html = read_field(note, "Text")
    if not html.strip():
        return None

    fields = {name: first_present(sources, note, record) for name, sources in FIELD_SOURCES.items()}
    for name, sources in DATE_FIELD_SOURCES.items():
        fields[name] = decode_odata_date(first_present(sources, note, record))

    fields["header_object_id"] = fields["header_object_id"] or fields["parent_object_id"]
    fields["email_id"] = fields["email_id"] or activity_id
    fields["ticket_id"] = fields["ticket_id"] or ticket_id

    return NormalizedNote(
        email_activity_id=activity_id,
        note_index=note_index,
        html=html,
        text=html_to_text(html),
        **fields,
    )


def normalize(
    per_activity_results: Mapping[str, Any],
    *,
    notes_key: str = EMAIL_NOTES_KEY,
    ticket_id: str = "",
) -> List[NormalizedNote]:
    notes: List[NormalizedNote] = []
    for activity_id, envelope in per_activity_results.items():
        for record in odata_results(envelope):
            if not isinstance(record, Mapping):
                continue
            raw_notes = record.get(notes_key)
            # Verbose OData v2 wraps expanded collections as {"results": [...]}.
            if isinstance(raw_notes, Mapping):
                raw_notes = raw_notes.get("results")
            if not isinstance(raw_notes, Sequence) or isinstance(raw_notes, str):
                continue
            for index, raw_note in enumerate(raw_notes, start=1):
                if not isinstance(raw_note, Mapping):
                    continue
                normalized = _normalize_note(
                    raw_note,
                    record,
                    activity_id=str(activity_id),
                    note_index=index,
                    ticket_id=ticket_id,
                )
                if normalized is not None:
                    notes.append(normalized)
    return notes
