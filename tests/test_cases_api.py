"""HTTP surface for cases: envelopes, query syntax and status codes."""

from __future__ import annotations

import pytest


def create(client, headers, user, number="CASE-001", **extra):
    body = {"case_number": number, "title": "Burglary", "description": "Back door forced", **extra}
    return client.post("/cases/", json=body, headers=headers(user))


def test_create_case(client, headers, investigator):
    resp = create(client, headers, investigator)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["evidence_count"] == 0
    assert body["data"]["status"] == "open"
    assert body["data"]["created_by_user_id"] == investigator.id


def test_unauthenticated_request(client):
    resp = client.get("/cases/")
    assert resp.status_code == 401
    assert resp.json()["success"] is False


def test_analyst_cannot_create(client, headers, analyst):
    resp = create(client, headers, analyst)
    assert resp.status_code == 403
    assert resp.json()["success"] is False
    assert "not authorized" in resp.json()["error"]


def test_duplicate_case_number(client, headers, investigator):
    create(client, headers, investigator)
    resp = create(client, headers, investigator)
    assert resp.status_code == 400


def test_missing_description(client, headers, investigator):
    resp = client.post("/cases/", json={"case_number": "X-1", "title": "t"}, headers=headers(investigator))
    assert resp.status_code == 400
    assert "description" in resp.json()["error"]


class TestListQuery:
    @pytest.fixture()
    def seeded(self, client, headers, investigator):
        for number, priority, opened in [
            ("C-1", "low", "2024-01-01T09:00:00"),
            ("C-2", "high", "2024-02-01T09:00:00"),
            ("C-3", "high", "2024-03-01T09:00:00"),
        ]:
            create(client, headers, investigator, number=number, priority=priority, date_opened=opened)

    def test_default_listing(self, client, headers, investigator, seeded):
        body = client.get("/cases/", headers=headers(investigator)).json()
        assert body["count"] == 3
        assert body["pagination"] == {"total": 3}
        assert [c["case_number"] for c in body["data"]] == ["C-3", "C-2", "C-1"]

    def test_filter_select_and_sort(self, client, headers, investigator, seeded):
        resp = client.get(
            "/cases/?priority=high&select=case_number&sort=case_number", headers=headers(investigator)
        )
        body = resp.json()
        assert body["count"] == 2
        assert body["data"] == [
            {"id": body["data"][0]["id"], "case_number": "C-2"},
            {"id": body["data"][1]["id"], "case_number": "C-3"},
        ]

    def test_paging(self, client, headers, investigator, seeded):
        body = client.get("/cases/?page=2&limit=2", headers=headers(investigator)).json()
        assert body["count"] == 1
        assert body["pagination"]["prev"] == {"page": 1, "limit": 2}
        assert "next" not in body["pagination"]

    def test_comparison_filter(self, client, headers, investigator, seeded):
        body = client.get("/cases/?evidence_count[gte]=1", headers=headers(investigator)).json()
        assert body["count"] == 0

    def test_unknown_filter_field(self, client, headers, investigator, seeded):
        resp = client.get("/cases/?colour=red", headers=headers(investigator))
        assert resp.status_code == 400

    def test_zero_limit(self, client, headers, investigator, seeded):
        resp = client.get("/cases/?limit=0", headers=headers(investigator))
        assert resp.status_code == 400
        assert resp.json()["success"] is False


def test_get_case_with_evidence(client, headers, investigator):
    case_id = create(client, headers, investigator).json()["data"]["id"]
    client.post(
        f"/cases/{case_id}/evidence",
        json={"evidence_id": "EV-1", "type": "image", "title": "Photo"},
        headers=headers(investigator),
    )
    body = client.get(f"/cases/{case_id}", headers=headers(investigator)).json()
    assert body["data"]["evidence_count"] == 1
    assert body["data"]["created_by"] == {"id": investigator.id, "name": investigator.name}
    assert [e["evidence_id"] for e in body["data"]["evidence"]] == ["EV-1"]


def test_get_missing_case(client, headers, investigator):
    resp = client.get("/cases/4242", headers=headers(investigator))
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Case not found with id of 4242"}


def test_update_by_non_owner(client, headers, investigator, create_user):
    case_id = create(client, headers, investigator).json()["data"]["id"]
    other = create_user()
    resp = client.put(f"/cases/{case_id}", json={"title": "Mine now"}, headers=headers(other))
    assert resp.status_code == 403


def test_close_case(client, headers, investigator, supervisor):
    case_id = create(client, headers, investigator).json()["data"]["id"]
    resp = client.put(f"/cases/{case_id}", json={"status": "closed"}, headers=headers(supervisor))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "closed"
    assert resp.json()["data"]["date_closed"] is not None


def test_delete_case(client, headers, investigator):
    case_id = create(client, headers, investigator).json()["data"]["id"]
    resp = client.delete(f"/cases/{case_id}", headers=headers(investigator))
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "data": {}}
    assert client.get(f"/cases/{case_id}", headers=headers(investigator)).status_code == 404


def test_delete_case_with_evidence_is_blocked(client, headers, investigator, admin):
    case_id = create(client, headers, investigator).json()["data"]["id"]
    client.post(
        f"/cases/{case_id}/evidence",
        json={"evidence_id": "EV-1", "type": "physical", "title": "Crowbar"},
        headers=headers(investigator),
    )
    resp = client.delete(f"/cases/{case_id}", headers=headers(admin))
    assert resp.status_code == 400
    assert "delete them first" in resp.json()["error"]


def test_unknown_route_is_enveloped(client):
    resp = client.get("/nowhere")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_service_endpoints(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get("/healthz").json()["status"] == "healthy"
