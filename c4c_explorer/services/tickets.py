from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import MissingTicketId, TicketNotFound
from .odata import (
    SERVICE_REQUEST_COLLECTION,
    SERVICE_REQUEST_TEXT_COLLECTION,
    build_url,
    collection_path,
    eq_clause,
    keyed_navigation_path,
    query_params,
)
from .upstream import fetch_json, odata_results

logger = logging.getLogger(__name__)


async def resolve_object_id(
    client: httpx.AsyncClient,
    tenant_base: str,
    ticket_id: str | None,
    auth_header: str,
    *,
    odata_root: str,
) -> str:
    """Map an external ticket id to the service request's ``ObjectID``."""

    if not ticket_id or not ticket_id.strip():
        raise MissingTicketId()
    external_id = ticket_id.strip()
    url = build_url(
        tenant_base,
        collection_path(odata_root, SERVICE_REQUEST_COLLECTION),
        query_params(eq_clause("ID", external_id)),
    )
    rows = odata_results(await fetch_json(client, url, auth_header))
    object_id = rows[0].get("ObjectID") if rows and isinstance(rows[0], dict) else None
    # Zero rows and a row without ObjectID are the same dead end for callers.
    if not isinstance(object_id, str) or not object_id:
        logger.info("Ticket %s did not resolve to an ObjectID (%d rows)", external_id, len(rows))
        raise TicketNotFound()
    logger.info(
        "ticket.resolved",
        extra={"extra_data": {"ticket_id": external_id, "object_id": object_id}},
    )
    return object_id


async def fetch_ticket_texts(
    client: httpx.AsyncClient,
    tenant_base: str,
    object_id: str,
    auth_header: str,
    *,
    odata_root: str,
) -> Any:
    path = keyed_navigation_path(
        odata_root, SERVICE_REQUEST_COLLECTION, object_id, SERVICE_REQUEST_TEXT_COLLECTION
    )
    url = build_url(tenant_base, path, query_params())
    return await fetch_json(client, url, auth_header)
