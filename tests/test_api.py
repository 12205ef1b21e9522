import pytest
from fastapi.testclient import TestClient

from c4c_explorer import app
from c4c_explorer.routers.api_c4c import get_c4c_service
from c4c_explorer.services.c4c import C4CService

from conftest import make_settings


@pytest.fixture()
def client(fake_c4c):
    service = C4CService(make_settings(), transport=fake_c4c.transport())
    app.dependency_overrides[get_c4c_service] = lambda: service
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/c4c/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


def test_internal_memos_endpoint(client, memo_ticket):
    response = client.post("/c4c/internal-memos", json={"ticketId": "TCK-1"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["objectId"] == "obj-9"
    assert len(payload["activities"]) == 1
    assert payload["notes"][0]["noteIndex"] == 1
    assert payload["notes"][0]["text"] == "Customer called back"


def test_email_notes_endpoint_with_activity(client, email_ticket):
    response = client.post(
        "/c4c/email-notes",
        json={"ticketId": "TCK-2", "emailActivityId": "mail-2", "tenantUrl": "https://my123456.crm.ondemand.com/x"},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["emailNotes"]["d"]["results"][0]["ID"] == "mail-2"
    assert payload["notes"][0]["externalKey"] == "EK-4"


def test_email_notes_collection_csv(client, email_ticket):
    response = client.post("/c4c/email-notes-collection/csv", json={"ticketId": "TCK-2"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="email-notes-collection-TCK-2.csv"' in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0].startswith('"TicketID","ObjectID"')
    assert len(lines) == 4


def test_internal_memos_csv(client, memo_ticket):
    response = client.post("/c4c/internal-memos/csv", json={"ticketId": "TCK-1"})
    assert response.status_code == 200
    assert '"Customer called back"' in response.text


def test_missing_ticket_is_400(client, fake_c4c):
    response = client.post("/c4c/internal-memos", json={})
    assert response.status_code == 400
    assert response.json() == {"code": "missing_ticket_id", "message": "ticketId is required."}
    assert fake_c4c.requests == []


def test_invalid_tenant_is_400(client):
    response = client.post("/c4c/email-notes", json={"ticketId": "TCK-2", "tenantUrl": "nope"})
    assert response.status_code == 400
    assert response.json()["message"] == "tenantUrl must be a valid URL."


def test_unknown_ticket_is_404(client, fake_c4c):
    fake_c4c.results("ServiceRequestCollection", "ID eq 'NOPE'", [])
    response = client.post("/c4c/email-notes-collection", json={"ticketId": "NOPE"})
    assert response.status_code == 404
    assert response.json()["code"] == "ticket_not_found"


def test_upstream_failure_is_502(client, fake_c4c):
    fake_c4c.add("ServiceRequestCollection", "ID eq 'TCK-1'", text="Service down", status_code=503)
    response = client.post("/c4c/service-request-texts", json={"ticketId": "TCK-1"})
    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "upstream_error"
    assert body["message"] == "Upstream error 503: Service down"
    assert body["details"] == {"upstream_status": 503}


def test_malformed_upstream_is_502(client, fake_c4c):
    fake_c4c.add("ServiceRequestCollection", "ID eq 'TCK-1'", text="<html/>", status_code=200)
    response = client.post("/c4c/internal-memos", json={"ticketId": "TCK-1"})
    assert response.status_code == 502
    assert response.json()["code"] == "upstream_malformed_response"


def test_validation_errors_are_joined(client):
    response = client.post("/c4c/internal-memos", json={"ticketId": "TCK-1", "maxReferences": 0})
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert "maxReferences" in body["message"]
