"""Request bodies for the ``/c4c`` endpoints and the normalized note record."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class C4CBaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tenant_url: Optional[str] = Field(default=None, alias="tenantUrl")
    ticket_id: str = Field(default="", alias="ticketId")
    username: Optional[str] = None
    password: Optional[str] = None
    max_references: Optional[int] = Field(default=None, ge=1, alias="maxReferences")


class EmailNotesRequest(C4CBaseRequest):
    email_activity_id: Optional[str] = Field(default=None, alias="emailActivityId")


class NormalizedNote(BaseModel):
    """One non-blank note flattened out of an e-mail or activity record.

    Every string field is ``""`` when the upstream record has no value for it.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    ticket_id: str = ""
    email_activity_id: str = ""
    note_index: int
    html: str = ""
    text: str = ""
    object_id: str = ""
    parent_object_id: str = ""
    header_object_id: str = ""
    external_key: str = ""
    email_external_key: str = ""
    email_id: str = ""
    type_code: str = ""
    type_code_text: str = ""
    author_name: str = ""
    author_uuid: str = ""
    created_on: str = ""
    created_by: str = ""
    updated_on: str = ""
    last_updated_by: str = ""
    language: str = ""
    language_text: str = ""
