"""API tests for the dashboard, client and health blueprints.

Each request builds its own Dashboard over the test database; rows are
created through the SQL factories in conftest.
"""

from datetime import datetime, timedelta, timezone

import pytest

from bitacora.models.client_token import ClientToken


# ── Helpers ──────────────────────────────────────────────────────────────


def _note_payload(**overrides):
    body = {
        "project": "Retail Rollout",
        "title": "Kickoff",
        "date": "2024-03-01",
        "summary": "Scope agreed with client",
        "client_status": "done",
        "client_responsible": "Maria",
    }
    body.update(overrides)
    return body


@pytest.fixture()
def project(make_project, make_note):
    proj = make_project("Retail Rollout", "Acme Stores", phase=2)
    make_note(proj, title="Audit", on=datetime(2024, 2, 15).date(), summary="Store audit findings.")
    make_note(proj, title="Intro", on=datetime(2024, 1, 5).date(), summary="First contact call.")
    return proj


# ═════════════════════════════════════════════════════════════════════════════
# Internal API
# ═════════════════════════════════════════════════════════════════════════════


class TestInternalDashboard:
    def test_list_projects(self, client, make_project):
        make_project("Zeta")
        make_project("Alpha")
        res = client.get("/api/v1/projects")
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 2
        assert [p["name"] for p in body["items"]] == ["Alpha", "Zeta"]

    def test_get_dashboard_defaults_to_first_project(self, client, project):
        res = client.get("/api/v1/dashboard")
        assert res.status_code == 200
        body = res.get_json()
        assert body["mode"] == "internal"
        assert body["project"] == {"name": "Retail Rollout", "id": project.id}
        assert body["phase"]["committed"] == 2
        assert [p["status"] for p in body["phase"]["phases"]] == ["done", "current", "upcoming", "upcoming"]
        assert [s["title"] for s in body["sessions"]["items"]] == ["Audit", "Intro"]
        assert body["sessions"]["timeline"][0]["sequence"] == 2

    def test_get_dashboard_with_no_projects(self, client):
        res = client.get("/api/v1/dashboard")
        assert res.status_code == 200
        body = res.get_json()
        assert body["project"] is None
        assert body["projects"] == []

    def test_get_dashboard_unknown_project_is_404(self, client, project):
        res = client.get("/api/v1/dashboard?project=Nope")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_get_dashboard_selects_requested_session(self, client, project):
        intro = client.get("/api/v1/dashboard").get_json()["sessions"]["items"][1]
        res = client.get("/api/v1/dashboard", query_string={"project": "Retail Rollout", "session": intro["id"]})
        assert res.get_json()["sessions"]["active"]["title"] == "Intro"

    def test_save_phase(self, client, project):
        res = client.put("/api/v1/dashboard/phase", json={"project": "Retail Rollout", "phase": 3})
        assert res.status_code == 200
        assert res.get_json()["committed"] == 3
        body = client.get("/api/v1/dashboard", query_string={"project": "Retail Rollout"}).get_json()
        assert body["phase"]["committed"] == 3

    def test_save_phase_inserts_missing_row(self, client, make_project):
        make_project("Fresh")
        res = client.put("/api/v1/dashboard/phase", json={"project": "Fresh", "phase": 2})
        assert res.status_code == 200
        assert client.get("/api/v1/dashboard?project=Fresh").get_json()["phase"]["committed"] == 2

    @pytest.mark.parametrize("payload,code", [
        ({"phase": 2}, "ERR_VALIDATION_REQUIRED"),
        ({"project": "Retail Rollout"}, "ERR_VALIDATION_REQUIRED"),
        ({"project": "Retail Rollout", "phase": "two"}, "ERR_VALIDATION_INVALID"),
        ({"project": "Retail Rollout", "phase": 7}, "ERR_VALIDATION_INVALID"),
        ({"project": "Retail Rollout", "phase": True}, "ERR_VALIDATION_INVALID"),
    ])
    def test_save_phase_validation(self, client, project, payload, code):
        res = client.put("/api/v1/dashboard/phase", json=payload)
        assert res.status_code == 400
        assert res.get_json()["code"] == code

    def test_create_session(self, client, project):
        res = client.post("/api/v1/dashboard/sessions", json=_note_payload())
        assert res.status_code == 201
        body = res.get_json()
        assert body["session"]["title"] == "Kickoff"
        assert body["session"]["client_status_label"] == "Done"
        assert body["sessions"]["items"][0]["title"] == "Kickoff"
        assert body["sessions"]["active_id"] == body["session"]["id"]
        assert body["sessions"]["draft"]["title"] == ""

    def test_create_session_validation_error(self, client, project):
        res = client.post("/api/v1/dashboard/sessions", json=_note_payload(title="ab", summary="short"))
        assert res.status_code == 400
        body = res.get_json()
        assert body["error"] == "Please fill in the fields correctly."
        assert set(body["details"]) == {"title", "summary"}
        assert len(client.get("/api/v1/dashboard").get_json()["sessions"]["items"]) == 2

    def test_create_session_unknown_status(self, client, project):
        res = client.post("/api/v1/dashboard/sessions", json=_note_payload(client_status="later"))
        assert res.status_code == 400
        assert "client_status" in res.get_json()["details"]

    def test_share_returns_client_url(self, client, project):
        res = client.post("/api/v1/dashboard/share", json={"project": "Retail Rollout"})
        assert res.status_code == 201
        body = res.get_json()
        assert body["url"] == f"https://bitacora-client.example.com/?token={body['token']}"
        row = ClientToken.query.filter_by(token=body["token"]).one()
        assert row.active is True
        assert row.client_name == "Acme Stores"

    def test_share_requires_project(self, client):
        res = client.post("/api/v1/dashboard/share", json={})
        assert res.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Client API
# ═════════════════════════════════════════════════════════════════════════════


class TestClientDashboard:
    def test_valid_token_shows_read_only_view(self, client, project, make_token):
        make_token("Retail Rollout", "tok-valid-0001")
        res = client.get("/api/v1/client/dashboard?token=tok-valid-0001")
        assert res.status_code == 200
        body = res.get_json()
        assert body["mode"] == "client"
        assert body["project"]["name"] == "Retail Rollout"
        assert body["client"]["name"] == "Acme Stores"
        assert body["client"]["state"] == "resolved"
        assert "draft" not in body["sessions"]
        assert "projects" not in body
        assert res.headers["Cache-Control"] == "no-store"

    def test_shared_link_round_trip(self, client, project):
        link = client.post("/api/v1/dashboard/share", json={"project": "Retail Rollout"}).get_json()
        res = client.get(f"/api/v1/client/dashboard?token={link['token']}")
        assert res.status_code == 200
        assert res.get_json()["phase"]["committed"] == 2

    def test_future_expiry_is_accepted(self, client, project, make_token):
        make_token("Retail Rollout", "tok-future", expires_at=datetime.now(timezone.utc) + timedelta(days=3))
        assert client.get("/api/v1/client/dashboard?token=tok-future").status_code == 200

    def test_expired_token_is_410(self, client, project, make_token):
        make_token("Retail Rollout", "tok-expired", expires_at=datetime.now(timezone.utc) - timedelta(days=1))
        res = client.get("/api/v1/client/dashboard?token=tok-expired")
        assert res.status_code == 410
        body = res.get_json()
        assert body["code"] == "ERR_ACCESS_EXPIRED"
        assert body["error"] == "This link has expired."
        assert body["details"]["support_contact"] == "support@example.com"

    @pytest.mark.parametrize("query", ["?token=unknown", "?token=tok-inactive", ""])
    def test_invalid_tokens_are_403(self, client, project, make_token, query):
        make_token("Retail Rollout", "tok-inactive", active=False)
        res = client.get(f"/api/v1/client/dashboard{query}")
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "ERR_ACCESS_INVALID"
        assert body["error"] == "The link is not valid or has expired."
        assert body["details"]["support_contact"] == "support@example.com"

    def test_token_for_missing_project_is_lookup_failed(self, client, make_token):
        make_token("Deleted Project", "tok-orphan")
        res = client.get("/api/v1/client/dashboard?token=tok-orphan")
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "ERR_ACCESS_LOOKUP_FAILED"
        assert body["error"] == "The link is not valid or has expired."

    def test_client_view_has_no_write_routes(self, client, project, make_token):
        make_token("Retail Rollout", "tok-valid-0001")
        res = client.post("/api/v1/client/dashboard?token=tok-valid-0001", json={})
        assert res.status_code == 405


# ═════════════════════════════════════════════════════════════════════════════
# Health & middleware
# ═════════════════════════════════════════════════════════════════════════════


def test_health_ready(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_health_live_checks_store(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["store"]["backend"] == "sql"


def test_responses_carry_request_id(client):
    res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
    assert "X-Request-Duration-Ms" in res.headers


def test_unknown_route_is_json_404(client):
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json()["error"] == "Not found"
