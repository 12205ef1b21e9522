"""Reference document lookup and the parallel fan-out over linked activities.

Two query shapes share this module. Internal memos restrict references to
``TypeCode eq '39'`` and expand each one through ``ActivityCollection``.
E-mail references are fetched unrestricted and expanded through
``EMailCollection`` either one id at a time or all at once.

Fan-out is all-or-nothing: the first failed fetch cancels the rest and is
re-raised unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Iterable, List, Optional

import httpx

from .odata import (
    ACTIVITY_COLLECTION,
    EMAIL_COLLECTION,
    REFERENCE_COLLECTION,
    and_filter,
    build_url,
    collection_path,
    eq_clause,
    query_params,
)
from .upstream import fetch_json, odata_results

logger = logging.getLogger(__name__)

MEMO_TYPE_CODE = "39"
MEMO_PROCESSING_TYPE_CODE = "0011"
ACTIVITY_TEXT_EXPAND = "ActivityText"
EMAIL_NOTES_EXPAND = "EMailNotes"


def unique_reference_ids(envelope: Any, limit: Optional[int] = None) -> List[str]:
    """Reference ``ID`` values in upstream order, de-duplicated.

    Rows without a non-blank string ``ID`` are ignored. ``limit`` caps how many
    ids are returned; ``None`` keeps all of them.
    """

    ids: List[str] = []
    for row in odata_results(envelope):
        if not isinstance(row, dict):
            continue
        reference_id = row.get("ID")
        if isinstance(reference_id, str) and reference_id.strip():
            ids.append(reference_id)
    unique = list(dict.fromkeys(ids))
    if limit is not None:
        unique = unique[: max(limit, 0)]
    return unique


async def _gather_all(coroutines: Iterable[Awaitable[Any]]) -> List[Any]:
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        # Siblings must settle before the caller closes the shared client.
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def _fetch_references(
    client: httpx.AsyncClient,
    tenant_base: str,
    filter_expression: str,
    auth_header: str,
    odata_root: str,
) -> Any:
    url = build_url(
        tenant_base,
        collection_path(odata_root, REFERENCE_COLLECTION),
        query_params(filter_expression),
    )
    return await fetch_json(client, url, auth_header)


async def fetch_memo_references(
    client: httpx.AsyncClient,
    tenant_base: str,
    object_id: str,
    auth_header: str,
    *,
    odata_root: str,
) -> Any:
    filter_expression = and_filter(
        eq_clause("ParentObjectID", object_id),
        eq_clause("TypeCode", MEMO_TYPE_CODE),
    )
    return await _fetch_references(client, tenant_base, filter_expression, auth_header, odata_root)


async def fetch_all_references(
    client: httpx.AsyncClient,
    tenant_base: str,
    object_id: str,
    auth_header: str,
    *,
    odata_root: str,
) -> Any:
    filter_expression = eq_clause("ParentObjectID", object_id)
    return await _fetch_references(client, tenant_base, filter_expression, auth_header, odata_root)


async def fetch_activity(
    client: httpx.AsyncClient,
    tenant_base: str,
    activity_id: str,
    auth_header: str,
    *,
    odata_root: str,
) -> Any:
    filter_expression = and_filter(
        eq_clause("ID", activity_id),
        eq_clause("TypeCode", MEMO_TYPE_CODE),
        eq_clause("ProcessingTypeCode", MEMO_PROCESSING_TYPE_CODE),
    )
    url = build_url(
        tenant_base,
        collection_path(odata_root, ACTIVITY_COLLECTION),
        query_params(filter_expression, expand=ACTIVITY_TEXT_EXPAND),
    )
    return await fetch_json(client, url, auth_header)


async def fetch_email_notes(
    client: httpx.AsyncClient,
    tenant_base: str,
    email_activity_id: str,
    auth_header: str,
    *,
    odata_root: str,
) -> Any:
    url = build_url(
        tenant_base,
        collection_path(odata_root, EMAIL_COLLECTION),
        query_params(eq_clause("ID", email_activity_id), expand=EMAIL_NOTES_EXPAND),
    )
    return await fetch_json(client, url, auth_header)


async def expand_activities(
    client: httpx.AsyncClient,
    tenant_base: str,
    reference_ids: List[str],
    auth_header: str,
    *,
    odata_root: str,
) -> Dict[str, Any]:
    """Fetch every memo activity concurrently, keyed by reference id."""

    logger.info(
        "references.expand",
        extra={"extra_data": {"collection": ACTIVITY_COLLECTION, "count": len(reference_ids)}},
    )
    envelopes = await _gather_all(
        fetch_activity(client, tenant_base, reference_id, auth_header, odata_root=odata_root)
        for reference_id in reference_ids
    )
    return dict(zip(reference_ids, envelopes))


async def expand_email_notes(
    client: httpx.AsyncClient,
    tenant_base: str,
    reference_ids: List[str],
    auth_header: str,
    *,
    odata_root: str,
) -> Dict[str, Any]:
    """Fetch ``EMailNotes`` for every referenced e-mail concurrently."""

    logger.info(
        "references.expand",
        extra={"extra_data": {"collection": EMAIL_COLLECTION, "count": len(reference_ids)}},
    )
    envelopes = await _gather_all(
        fetch_email_notes(client, tenant_base, reference_id, auth_header, odata_root=odata_root)
        for reference_id in reference_ids
    )
    return dict(zip(reference_ids, envelopes))
