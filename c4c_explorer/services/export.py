from __future__ import annotations

import csv
import io
import json
import re
from typing import Any, Iterable, List, Tuple

from ..schemas.c4c import NormalizedNote

EMAIL_NOTES_CSV_HEADER: Tuple[str, ...] = (
    "TicketID",
    "ObjectID",
    "ParentObjectID",
    "HeaderObjectID",
    "External_Key",
    "EMail_External_Key",
    "EMail_ID",
    "Text",
    "Type_Code",
    "Type_Code_Text",
    "Author_Name",
    "Author_UUID",
    "Created_On",
    "Created_By",
    "Updated_On",
    "Last_Updated_By",
    "Language",
    "Language_Text",
)

ExportRow = Tuple[str, ...]

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def note_to_row(note: NormalizedNote) -> ExportRow:
    return (
        note.ticket_id,
        note.object_id,
        note.parent_object_id,
        note.header_object_id,
        note.external_key,
        note.email_external_key,
        note.email_id,
        note.text,
        note.type_code,
        note.type_code_text,
        note.author_name,
        note.author_uuid,
        note.created_on,
        note.created_by,
        note.updated_on,
        note.last_updated_by,
        note.language,
        note.language_text,
    )


def encode_csv(notes: Iterable[NormalizedNote]) -> str:
    """Header plus one fully quoted row per note, ``\\n`` separated."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EMAIL_NOTES_CSV_HEADER)
    for note in notes:
        writer.writerow(note_to_row(note))
    return buffer.getvalue().removesuffix("\n")


def to_jsonable(result: Any) -> Any:
    if isinstance(result, NormalizedNote):
        return result.model_dump(by_alias=True)
    if isinstance(result, dict):
        return {key: to_jsonable(value) for key, value in result.items()}
    if isinstance(result, (list, tuple)):
        return [to_jsonable(item) for item in result]
    return result


def encode_json(result: Any) -> str:
    return json.dumps(to_jsonable(result), indent=2, ensure_ascii=False)


def export_filename(kind: str, ticket_id: str | None, extension: str) -> str:
    safe_ticket = _UNSAFE_FILENAME_CHARS.sub("_", (ticket_id or "").strip()) or "ticket"
    return f"{kind}-{safe_ticket}.{extension}"


def notes_from_result(result: dict[str, Any]) -> List[NormalizedNote]:
    return [note for note in result.get("notes", []) if isinstance(note, NormalizedNote)]
