from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import httpx

from ..core.errors import MissingCredentials, UpstreamError, UpstreamMalformedResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    username: str = ""
    password: str = ""

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password=***)"


def build_auth_header(credentials: Credentials) -> str:
    username = credentials.username or ""
    password = credentials.password or ""
    if not username or not password:
        raise MissingCredentials()
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _raise_for_status(response: httpx.Response, context: str) -> None:
    if response.is_success:
        return
    if response.status_code in {401, 403}:
        logger.warning("C4C authentication failed for %s", context)
    elif response.status_code >= 500:
        logger.error("C4C service error %s during %s", response.status_code, context)
    else:
        logger.error("C4C request error %s during %s", response.status_code, context)
    body = response.text
    raise UpstreamError(response.status_code, body or response.reason_phrase)


async def fetch_json(client: httpx.AsyncClient, url: str, auth_header: str) -> Any:
    """Issue one authenticated GET and return the decoded JSON body."""

    headers = {"Authorization": auth_header, "Accept": "application/json"}
    context = url.split("?", 1)[0]
    try:
        response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        logger.error("C4C request to %s failed: %s", context, exc)
        raise UpstreamError(0, str(exc), message=f"Upstream request failed: {exc}") from exc

    logger.debug(
        "c4c.response",
        extra={"extra_data": {"url": context, "status": response.status_code}},
    )
    _raise_for_status(response, context)

    try:
        return response.json()
    except ValueError as exc:
        logger.error("C4C returned a non-JSON body for %s", context)
        raise UpstreamMalformedResponse() from exc


def odata_results(envelope: Any) -> List[Dict[str, Any]]:
    """Return ``d.results`` from an OData v2 envelope, or ``[]`` when absent."""

    if not isinstance(envelope, dict):
        return []
    data = envelope.get("d")
    if not isinstance(data, dict):
        return []
    results = data.get("results")
    if not isinstance(results, list):
        return []
    return results
