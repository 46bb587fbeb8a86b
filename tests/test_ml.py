"""ML service client and the /ml proxy routes."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from crimesleuth.app import app
from crimesleuth.core.errors import UpstreamServiceError
from crimesleuth.core.ml_client import MLClient, get_ml_client


def fake_response(status_code=200, payload=None):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = status_code < 400
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


class TestMLClient:
    def test_generate_summary(self):
        client = MLClient(base_url="http://ml.test/", timeout=12)
        payload = {"summary": "Two figures near a car", "objects_detected": ["car", "person"], "crime_type": "Theft"}
        with patch("crimesleuth.core.ml_client.requests.request", return_value=fake_response(200, payload)) as req:
            result = client.generate_summary("7", "EV-1", b"img", filename="a.png", content_type="image/png")

        assert result == payload
        args, kwargs = req.call_args
        assert args == ("POST", "http://ml.test/generate-summary")
        assert kwargs["timeout"] == 12
        assert kwargs["data"] == {"case_id": "7", "image_id": "EV-1"}
        assert kwargs["files"] == {"image": ("a.png", b"img", "image/png")}

    def test_summary_defaults_fill_missing_fields(self):
        with patch("crimesleuth.core.ml_client.requests.request", return_value=fake_response(200, {})):
            result = MLClient(base_url="http://ml.test").generate_summary("1", "EV-1", b"img")
        assert result["crime_type"] == "Unknown"
        assert result["objects_detected"] == []
        assert result["summary"]

    def test_health_uses_short_timeout(self):
        client = MLClient(base_url="http://ml.test", timeout=60, health_timeout=5)
        with patch("crimesleuth.core.ml_client.requests.request", return_value=fake_response(200, {"ok": True})) as req:
            client.health()
        assert req.call_args.kwargs["timeout"] == 5

    def test_timeout(self):
        with patch("crimesleuth.core.ml_client.requests.request", side_effect=requests.Timeout()):
            with pytest.raises(UpstreamServiceError) as exc:
                MLClient(base_url="http://ml.test").generate_case_report("1")
        assert exc.value.message == "ML operation timed out"

    def test_connection_refused(self):
        with patch("crimesleuth.core.ml_client.requests.request", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(UpstreamServiceError) as exc:
                MLClient(base_url="http://ml.test").health()
        assert "Cannot connect to ML server at http://ml.test" in exc.value.message

    def test_upstream_error_message_is_passed_through(self):
        resp = fake_response(500, {"error": "model weights missing"})
        with patch("crimesleuth.core.ml_client.requests.request", return_value=resp):
            with pytest.raises(UpstreamServiceError) as exc:
                MLClient(base_url="http://ml.test").generate_case_report("1")
        assert exc.value.message == "model weights missing"

    def test_upstream_error_without_body(self):
        with patch("crimesleuth.core.ml_client.requests.request", return_value=fake_response(502)):
            with pytest.raises(UpstreamServiceError) as exc:
                MLClient(base_url="http://ml.test").health()
        assert exc.value.message == "ML service error: 502"


@pytest.fixture()
def ml_client():
    mock = MagicMock(spec=MLClient)
    app.dependency_overrides[get_ml_client] = lambda: mock
    yield mock
    app.dependency_overrides.pop(get_ml_client, None)


class TestRoutes:
    def test_health_is_public(self, client, ml_client):
        ml_client.health.return_value = {"status": "ok"}
        resp = client.get("/ml/health")
        assert resp.json() == {"success": True, "data": "ML service is available"}

    def test_health_down(self, client, ml_client):
        ml_client.health.side_effect = UpstreamServiceError("Cannot connect to ML server at http://ml.test")
        resp = client.get("/ml/health")
        assert resp.status_code == 503
        assert resp.json()["success"] is False

    def test_generate_summary(self, client, headers, analyst, ml_client):
        ml_client.generate_summary.return_value = {
            "summary": "Footprints in mud",
            "objects_detected": ["footprint"],
            "crime_type": "Trespass",
        }
        resp = client.post(
            "/ml/generate-summary",
            data={"case_id": "3", "image_id": "EV-9"},
            files={"image": ("mud.jpg", b"jpeg-bytes", "image/jpeg")},
            headers=headers(analyst),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["crime_type"] == "Trespass"
        kwargs = ml_client.generate_summary.call_args.kwargs
        assert (kwargs["case_id"], kwargs["image_id"], kwargs["image"]) == ("3", "EV-9", b"jpeg-bytes")

    def test_generate_summary_requires_login(self, client, ml_client):
        resp = client.post(
            "/ml/generate-summary",
            data={"case_id": "3", "image_id": "EV-9"},
            files={"image": ("mud.jpg", b"jpeg-bytes", "image/jpeg")},
        )
        assert resp.status_code == 401
        ml_client.generate_summary.assert_not_called()

    def test_case_report_for_missing_case(self, client, headers, analyst, ml_client):
        resp = client.post("/ml/generate-case-report", json={"case_id": 55}, headers=headers(analyst))
        assert resp.status_code == 404
        ml_client.generate_case_report.assert_not_called()

    def test_case_report(self, client, headers, investigator, ml_client):
        case_id = client.post(
            "/cases/",
            json={"case_number": "CASE-9", "title": "Fraud", "description": "Invoice fraud"},
            headers=headers(investigator),
        ).json()["data"]["id"]
        ml_client.generate_case_report.return_value = {"report": "Three linked invoices"}

        resp = client.post("/ml/generate-case-report", json={"case_id": case_id}, headers=headers(investigator))
        assert resp.status_code == 200
        assert resp.json()["data"] == {"case_id": case_id, "report": "Three linked invoices"}
        ml_client.generate_case_report.assert_called_once_with(str(case_id))
