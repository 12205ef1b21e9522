"""Ticket → ObjectID → references → activity/e-mail bodies, end to end.

``C4CService`` is built once from ``AppSettings``. The default tenant and the
default Basic Auth pair are read from configuration at that point; request
handlers only pass what the caller supplied. Each public coroutine opens its
own ``httpx.AsyncClient`` and keeps no state between calls.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple

import httpx

from ..middlewares import ticket_ctx_var
from ..settings import AppSettings
from .notes import ACTIVITY_TEXT_KEY, EMAIL_NOTES_KEY, normalize
from .odata import normalize_tenant_url
from .references import (
    expand_activities,
    expand_email_notes,
    fetch_all_references,
    fetch_email_notes,
    fetch_memo_references,
    unique_reference_ids,
)
from .tickets import fetch_ticket_texts, resolve_object_id
from .upstream import Credentials, build_auth_header

logger = logging.getLogger(__name__)


class C4CService:
    def __init__(
        self,
        settings: AppSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.default_tenant_url = settings.C4C_TENANT_URL
        self.default_credentials = Credentials(settings.C4C_USERNAME, settings.C4C_PASSWORD)
        self.odata_root = settings.odata_root
        self.timeout = settings.C4C_HTTP_TIMEOUT
        self._transport = transport

    def resolve_credentials(self, credentials: Optional[Credentials]) -> Credentials:
        """Use the caller's pair when they sent any part of it, else the configured one."""

        if credentials is not None and (credentials.username or credentials.password):
            return credentials
        return self.default_credentials

    def resolve_tenant(self, tenant_url: Optional[str]) -> str:
        candidate = tenant_url if tenant_url and tenant_url.strip() else self.default_tenant_url
        return normalize_tenant_url(candidate)

    def _prepare(self, tenant_url: Optional[str], credentials: Optional[Credentials]) -> Tuple[str, str]:
        auth_header = build_auth_header(self.resolve_credentials(credentials))
        return self.resolve_tenant(tenant_url), auth_header

    @asynccontextmanager
    async def _session(self, ticket_id: str) -> AsyncIterator[httpx.AsyncClient]:
        token = ticket_ctx_var.set((ticket_id or "").strip() or None)
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout), transport=self._transport
            ) as client:
                yield client
        finally:
            ticket_ctx_var.reset(token)

    async def resolve_ticket_texts(
        self,
        tenant_url: Optional[str],
        ticket_id: str,
        credentials: Optional[Credentials] = None,
    ) -> Dict[str, Any]:
        tenant_base, auth_header = self._prepare(tenant_url, credentials)
        async with self._session(ticket_id) as client:
            object_id = await resolve_object_id(
                client, tenant_base, ticket_id, auth_header, odata_root=self.odata_root
            )
            data = await fetch_ticket_texts(
                client, tenant_base, object_id, auth_header, odata_root=self.odata_root
            )
        return {"objectId": object_id, "data": data}

    async def resolve_internal_memos(
        self,
        tenant_url: Optional[str],
        ticket_id: str,
        credentials: Optional[Credentials] = None,
        *,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        tenant_base, auth_header = self._prepare(tenant_url, credentials)
        async with self._session(ticket_id) as client:
            object_id = await resolve_object_id(
                client, tenant_base, ticket_id, auth_header, odata_root=self.odata_root
            )
            references = await fetch_memo_references(
                client, tenant_base, object_id, auth_header, odata_root=self.odata_root
            )
            reference_ids = unique_reference_ids(references, limit)
            activities = await expand_activities(
                client, tenant_base, reference_ids, auth_header, odata_root=self.odata_root
            )

        notes = normalize(activities, notes_key=ACTIVITY_TEXT_KEY, ticket_id=ticket_id.strip())
        logger.info(
            "memos.aggregated",
            extra={"extra_data": {"object_id": object_id, "activities": len(activities), "notes": len(notes)}},
        )
        return {
            "objectId": object_id,
            "references": references,
            "activities": list(activities.values()),
            "notes": notes,
        }

    async def resolve_email_notes(
        self,
        tenant_url: Optional[str],
        ticket_id: str,
        email_activity_id: Optional[str] = None,
        credentials: Optional[Credentials] = None,
    ) -> Dict[str, Any]:
        tenant_base, auth_header = self._prepare(tenant_url, credentials)
        email_activity_id = (email_activity_id or "").strip()
        async with self._session(ticket_id) as client:
            object_id = await resolve_object_id(
                client, tenant_base, ticket_id, auth_header, odata_root=self.odata_root
            )
            references = await fetch_all_references(
                client, tenant_base, object_id, auth_header, odata_root=self.odata_root
            )
            if not email_activity_id:
                return {"objectId": object_id, "references": references}
            email_notes = await fetch_email_notes(
                client, tenant_base, email_activity_id, auth_header, odata_root=self.odata_root
            )

        notes = normalize(
            {email_activity_id: email_notes}, notes_key=EMAIL_NOTES_KEY, ticket_id=ticket_id.strip()
        )
        return {
            "objectId": object_id,
            "references": references,
            "emailNotes": email_notes,
            "notes": notes,
        }

    async def resolve_email_notes_collection(
        self,
        tenant_url: Optional[str],
        ticket_id: str,
        credentials: Optional[Credentials] = None,
        *,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        tenant_base, auth_header = self._prepare(tenant_url, credentials)
        async with self._session(ticket_id) as client:
            object_id = await resolve_object_id(
                client, tenant_base, ticket_id, auth_header, odata_root=self.odata_root
            )
            references = await fetch_all_references(
                client, tenant_base, object_id, auth_header, odata_root=self.odata_root
            )
            reference_ids = unique_reference_ids(references, limit)
            email_notes = await expand_email_notes(
                client, tenant_base, reference_ids, auth_header, odata_root=self.odata_root
            )

        notes = normalize(email_notes, notes_key=EMAIL_NOTES_KEY, ticket_id=ticket_id.strip())
        logger.info(
            "email_notes.aggregated",
            extra={"extra_data": {"object_id": object_id, "emails": len(email_notes), "notes": len(notes)}},
        )
        return {
            "objectId": object_id,
            "references": references,
            "emailNotes": [{"id": key, "data": value} for key, value in email_notes.items()],
            "notes": notes,
        }
