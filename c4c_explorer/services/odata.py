"""OData URL and ``$filter`` construction for the C4C tenant.

Only single-quote doubling is applied to literals. Field names and operators
are interpolated as-is, so they must never come from user input.
"""

from __future__ import annotations

from typing import Dict, Mapping
from urllib.parse import urlencode, urljoin, urlsplit

from ..core.errors import InvalidTenantUrl

SERVICE_REQUEST_COLLECTION = "ServiceRequestCollection"
REFERENCE_COLLECTION = "ServiceRequestBusinessTransactionDocumentReferenceCollection"
ACTIVITY_COLLECTION = "ActivityCollection"
EMAIL_COLLECTION = "EMailCollection"
SERVICE_REQUEST_TEXT_COLLECTION = "ServiceRequestTextCollection"

_ALLOWED_SCHEMES = {"http", "https"}
_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_tenant_url(tenant_url: str | None) -> str:
    """Reduce ``tenant_url`` to its origin, omitting the port when it is the scheme default."""

    if not tenant_url or not tenant_url.strip():
        raise InvalidTenantUrl("tenantUrl is required.")
    try:
        parts = urlsplit(tenant_url.strip())
        hostname = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise InvalidTenantUrl("tenantUrl must be a valid URL.") from exc
    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES or not hostname:
        raise InvalidTenantUrl("tenantUrl must be a valid URL.")
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


def build_url(tenant_base: str, path: str, params: Mapping[str, str] | None = None) -> str:
    origin = normalize_tenant_url(tenant_base)
    url = urljoin(origin + "/", path)
    if params:
        url = f"{url}?{urlencode(dict(params))}"
    return url


def escape_odata_literal(value: str) -> str:
    return value.replace("'", "''")


def eq_clause(field: str, value: str) -> str:
    return f"{field} eq '{escape_odata_literal(value)}'"


def and_filter(*clauses: str) -> str:
    return " and ".join(clause for clause in clauses if clause)


def collection_path(odata_root: str, collection: str) -> str:
    return f"{odata_root.rstrip('/')}/{collection}"


def keyed_navigation_path(odata_root: str, collection: str, key: str, navigation: str) -> str:
    """``/root/Collection('key')/Navigation`` with the key escaped as a literal."""

    return f"{collection_path(odata_root, collection)}('{escape_odata_literal(key)}')/{navigation}"


def query_params(filter_expression: str | None = None, expand: str | None = None) -> Dict[str, str]:
    params: Dict[str, str] = {}
    if filter_expression:
        params["$filter"] = filter_expression
    if expand:
        params["$expand"] = expand
    params["$format"] = "json"
    return params
