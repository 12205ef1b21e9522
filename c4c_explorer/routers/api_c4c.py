"""JSON and CSV endpoints over the C4C resolution pipeline.

File: c4c_explorer/routers/api_c4c.py
"""


from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from ..schemas.c4c import C4CBaseRequest, EmailNotesRequest
from ..services.c4c import C4CService
from ..services.export import encode_csv, export_filename, notes_from_result, to_jsonable
from ..services.upstream import Credentials
from ..settings import get_settings

router = APIRouter(prefix="/c4c", tags=["c4c"])


@lru_cache(maxsize=1)
def get_c4c_service() -> C4CService:
    return C4CService(get_settings())


def _credentials(body: C4CBaseRequest) -> Credentials:
    return Credentials(username=body.username or "", password=body.password or "")


def _track_ticket(request: Request, body: C4CBaseRequest) -> None:
    request.state.ticket_id = (body.ticket_id or "").strip() or None


def _json(result: dict[str, Any]) -> JSONResponse:
    return JSONResponse(to_jsonable(result))


def _csv_download(result: dict[str, Any], kind: str, ticket_id: str) -> Response:
    filename = export_filename(kind, ticket_id, "csv")
    return Response(
        content=encode_csv(notes_from_result(result)),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/service-request-texts")
async def service_request_texts(
    body: C4CBaseRequest, request: Request, service: C4CService = Depends(get_c4c_service)
):
    _track_ticket(request, body)
    result = await service.resolve_ticket_texts(body.tenant_url, body.ticket_id, _credentials(body))
    return _json(result)


@router.post("/internal-memos")
async def internal_memos(
    body: C4CBaseRequest, request: Request, service: C4CService = Depends(get_c4c_service)
):
    _track_ticket(request, body)
    result = await service.resolve_internal_memos(
        body.tenant_url, body.ticket_id, _credentials(body), limit=body.max_references
    )
    return _json(result)


@router.post("/internal-memos/csv")
async def internal_memos_csv(
    body: C4CBaseRequest, request: Request, service: C4CService = Depends(get_c4c_service)
):
    _track_ticket(request, body)
    result = await service.resolve_internal_memos(
        body.tenant_url, body.ticket_id, _credentials(body), limit=body.max_references
    )
    return _csv_download(result, "internal-memos", body.ticket_id)


@router.post("/email-notes")
async def email_notes(
    body: EmailNotesRequest, request: Request, service: C4CService = Depends(get_c4c_service)
):
    _track_ticket(request, body)
    result = await service.resolve_email_notes(
        body.tenant_url, body.ticket_id, body.email_activity_id, _credentials(body)
    )
    return _json(result)


@router.post("/email-notes-collection")
async def email_notes_collection(
    body: C4CBaseRequest, request: Request, service: C4CService = Depends(get_c4c_service)
):
    _track_ticket(request, body)
    result = await service.resolve_email_notes_collection(
        body.tenant_url, body.ticket_id, _credentials(body), limit=body.max_references
    )
    return _json(result)


@router.post("/email-notes-collection/csv")
async def email_notes_collection_csv(
    body: C4CBaseRequest, request: Request, service: C4CService = Depends(get_c4c_service)
):
    _track_ticket(request, body)
    result = await service.resolve_email_notes_collection(
        body.tenant_url, body.ticket_id, _credentials(body), limit=body.max_references
    )
    return _csv_download(result, "email-notes-collection", body.ticket_id)
