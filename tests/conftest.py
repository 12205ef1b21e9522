import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("C4C_TENANT_URL", "https://my000001.crm.ondemand.com")

from c4c_explorer.services.c4c import C4CService
from c4c_explorer.settings import AppSettings

TENANT = "https://my123456.crm.ondemand.com"


class FakeC4C:
    """In-memory C4C tenant keyed by (collection, $filter)."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, Optional[str]], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        collection: str,
        filter_expression: Optional[str],
        payload: Any = None,
        *,
        status_code: int = 200,
        text: Optional[str] = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status_code, text=text)
            return httpx.Response(status_code, json=payload)

        self.routes[(collection, filter_expression)] = respond

    def results(self, collection: str, filter_expression: Optional[str], rows: List[Dict[str, Any]]) -> None:
        self.add(collection, filter_expression, {"d": {"results": rows}})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        collection = request.url.path.rsplit("/", 1)[-1]
        key = (collection, request.url.params.get("$filter"))
        if key not in self.routes:
            return httpx.Response(404, text=f"no fake route for {key}")
        return self.routes[key](request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def filters(self, collection: str) -> List[Optional[str]]:
        return [
            request.url.params.get("$filter")
            for request in self.requests
            if request.url.path.endswith("/" + collection)
        ]


def make_settings(**overrides: Any) -> AppSettings:
    values: Dict[str, Any] = {
        "C4C_TENANT_URL": TENANT,
        "C4C_USERNAME": "svc-user",
        "C4C_PASSWORD": "svc-pass",
    }
    values.update(overrides)
    return AppSettings(**values)


@pytest.fixture()
def fake_c4c() -> FakeC4C:
    return FakeC4C()


@pytest.fixture()
def service(fake_c4c: FakeC4C) -> C4CService:
    return C4CService(make_settings(), transport=fake_c4c.transport())


@pytest.fixture()
def memo_ticket(fake_c4c: FakeC4C) -> FakeC4C:
    """Ticket TCK-1 -> obj-9 with one type-39 reference to act-1."""

    fake_c4c.results("ServiceRequestCollection", "ID eq 'TCK-1'", [{"ObjectID": "obj-9", "ID": "TCK-1"}])
    fake_c4c.results(
        "ServiceRequestBusinessTransactionDocumentReferenceCollection",
        "ParentObjectID eq 'obj-9' and TypeCode eq '39'",
        [{"ID": "act-1", "ParentObjectID": "obj-9", "TypeCode": "39"}],
    )
    fake_c4c.results(
        "ActivityCollection",
        "ID eq 'act-1' and TypeCode eq '39' and ProcessingTypeCode eq '0011'",
        [
            {
                "ID": "act-1",
                "ActivityText": [
                    {
                        "Text": "<p>Customer called back</p>",
                        "ObjectID": "txt-1",
                        "ParentObjectID": "act-obj-1",
                        "TypeCode": "10002",
                        "CreatedOn": "/Date(1700000000000)/",
                    }
                ],
            }
        ],
    )
    return fake_c4c


@pytest.fixture()
def email_ticket(fake_c4c: FakeC4C) -> FakeC4C:
    """Ticket TCK-2 -> obj-7 with references to two e-mails, one repeated."""

    fake_c4c.results("ServiceRequestCollection", "ID eq 'TCK-2'", [{"ObjectID": "obj-7"}])
    fake_c4c.results(
        "ServiceRequestBusinessTransactionDocumentReferenceCollection",
        "ParentObjectID eq 'obj-7'",
        [
            {"ID": "mail-1", "ParentObjectID": "obj-7", "TypeCode": "39"},
            {"ID": "mail-2", "ParentObjectID": "obj-7", "TypeCode": "39"},
            {"ID": "mail-1", "ParentObjectID": "obj-7", "TypeCode": "39"},
        ],
    )
    fake_c4c.results(
        "EMailCollection",
        "ID eq 'mail-1'",
        [
            {
                "ID": "mail-1",
                "ExternalKey": "EXT-MAIL-1",
                "EMailNotes": [
                    {"Text": "Hello <b>there</b>", "ObjectID": "n1", "ParentObjectID": "p1"},
                    {"Text": "   ", "ObjectID": "n2"},
                    {"Text": "Second", "ObjectID": "n3", "HeaderObjectID": "h3", "ParentObjectID": "p3"},
                ],
            }
        ],
    )
    fake_c4c.results(
        "EMailCollection",
        "ID eq 'mail-2'",
        [{"ID": "mail-2", "EMailNotes": [{"Text": "Reply", "ObjectID": "n4", "External_Key": "EK-4"}]}],
    )
    return fake_c4c
