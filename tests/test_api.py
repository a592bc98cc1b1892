from datetime import timedelta

import pytest

from app.domain.entities import utcnow

from conftest import RecordingHandle

API = "/api/v1"


@pytest.fixture
def org(client, user_headers):
    response = client.post(f"{API}/organizations", json={"name": "Acme", "slug": "acme"}, headers=user_headers)
    assert response.status_code == 201
    return response.json()


def _service(client, headers, org_id, name="API", **extra):
    response = client.post(f"{API}/organizations/{org_id}/services", json={"name": name, **extra}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _maintenance(client, headers, org_id, **extra):
    start = utcnow() + timedelta(hours=1)
    body = {
        "title": "DB upgrade",
        "scheduledStartTime": start.isoformat(),
        "scheduledEndTime": (start + timedelta(hours=2)).isoformat(),
        **extra,
    }
    response = client.post(f"{API}/organizations/{org_id}/maintenances", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestAuthAndHealth:

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"
        detail = client.get("/api/v1/health").json()
        assert detail["database"]["ready"] is True
        assert detail["realtime"]["ready"] is True

    def test_dashboard_routes_require_user(self, client):
        response = client.get(f"{API}/organizations")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}


class TestOrganizations:

    def test_create_and_fetch(self, client, user_headers, org):
        assert org["slug"] == "acme"
        assert org["logoUrl"] is None

        fetched = client.get(f"{API}/organizations/{org['id']}", headers=user_headers).json()
        assert fetched["name"] == "Acme"

    def test_duplicate_slug(self, client, user_headers, org):
        response = client.post(f"{API}/organizations", json={"name": "X", "slug": "acme"}, headers=user_headers)
        assert response.status_code == 409

    def test_invalid_slug(self, client, user_headers):
        response = client.post(f"{API}/organizations", json={"name": "X", "slug": "Bad Slug"}, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_patch_absent_vs_null(self, client, user_headers):
        created = client.post(
            f"{API}/organizations",
            json={"name": "Acme", "slug": "acme", "logoUrl": "https://acme.test/logo.png"},
            headers=user_headers,
        ).json()
        url = f"{API}/organizations/{created['id']}"

        renamed = client.patch(url, json={"name": "Acme Inc"}, headers=user_headers).json()
        assert renamed["logoUrl"] == "https://acme.test/logo.png"

        cleared = client.patch(url, json={"logoUrl": None}, headers=user_headers).json()
        assert cleared["logoUrl"] is None
        assert cleared["name"] == "Acme Inc"

        rejected = client.patch(url, json={"name": None}, headers=user_headers)
        assert rejected.status_code == 400
        assert "name" in rejected.json()["details"]

    def test_pagination_limits(self, client, user_headers, org):
        listed = client.get(f"{API}/organizations", headers=user_headers).json()
        assert listed["meta"] == {"total": 1, "page": 1, "limit": 10, "pages": 1}

        assert client.get(f"{API}/organizations?limit=101", headers=user_headers).status_code == 400
        assert client.get(f"{API}/organizations?page=0", headers=user_headers).status_code == 400
        assert client.get(f"{API}/organizations?limit=100", headers=user_headers).status_code == 200

    def test_overall_status_uses_public_services(self, client, user_headers, org):
        empty = client.get(f"{API}/organizations/{org['id']}/status", headers=user_headers).json()
        assert empty["overallStatus"] == "operational"

        _service(client, user_headers, org["id"], name="API", status="degraded")
        _service(client, user_headers, org["id"], name="Hidden", status="major_outage", isPublic=False)

        status = client.get(f"{API}/organizations/{org['id']}/status", headers=user_headers).json()
        assert status["overallStatus"] == "degraded"
        assert [s["name"] for s in status["services"]] == ["API"]

    def test_unknown_organization(self, client, user_headers):
        response = client.get(f"{API}/organizations/missing/services", headers=user_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Organization not found"}


class TestServices:

    def test_status_endpoint_records_history(self, client, user_headers, org):
        service = _service(client, user_headers, org["id"])
        base = f"{API}/organizations/{org['id']}/services/{service['id']}"

        updated = client.post(f"{base}/status", json={"status": "partial_outage"}, headers=user_headers).json()
        client.post(f"{base}/status", json={"status": "partial_outage"}, headers=user_headers)

        assert updated["status"] == "partial_outage"
        history = client.get(f"{base}/history", headers=user_headers).json()
        assert [h["status"] for h in history["data"]] == ["partial_outage", "operational"]

        detail = client.get(f"{base}?includeHistory=true", headers=user_headers).json()
        assert len(detail["statusHistory"]) == 2

    def test_invalid_status_value(self, client, user_headers, org):
        service = _service(client, user_headers, org["id"])
        response = client.post(
            f"{API}/organizations/{org['id']}/services/{service['id']}/status",
            json={"status": "on_fire"},
            headers=user_headers,
        )
        assert response.status_code == 400

    def test_tenant_mismatch_is_forbidden(self, client, user_headers, org):
        other = client.post(f"{API}/organizations", json={"name": "Globex", "slug": "globex"}, headers=user_headers).json()
        service = _service(client, user_headers, other["id"])

        response = client.get(f"{API}/organizations/{org['id']}/services/{service['id']}", headers=user_headers)

        assert response.status_code == 403
        assert response.json() == {"error": "Service does not belong to the organization"}

    def test_patch_and_delete(self, client, user_headers, org):
        service = _service(client, user_headers, org["id"], description="Public API")
        url = f"{API}/organizations/{org['id']}/services/{service['id']}"

        patched = client.patch(url, json={"isPublic": False}, headers=user_headers).json()
        assert patched["isPublic"] is False
        assert patched["description"] == "Public API"

        assert client.delete(url, headers=user_headers).status_code == 204
        assert client.get(url, headers=user_headers).status_code == 404


class TestIncidents:

    def test_full_lifecycle(self, client, user_headers, org):
        api = _service(client, user_headers, org["id"], name="API")
        web = _service(client, user_headers, org["id"], name="Web")
        recorder = RecordingHandle()
        client.app.state.broadcaster.join(org["id"], recorder)
        base = f"{API}/organizations/{org['id']}/incidents"

        created = client.post(
            base,
            json={
                "title": "Outage",
                "impact": "major_outage",
                "serviceIds": [api["id"], web["id"]],
                "initialUpdate": "We are investigating",
            },
            headers=user_headers,
        )
        assert created.status_code == 201
        incident = created.json()
        assert incident["status"] == "investigating"
        assert {s["status"] for s in incident["services"]} == {"major_outage"}
        assert [u["message"] for u in incident["updates"]] == ["We are investigating"]

        recorder.events.clear()
        resolved = client.post(
            f"{base}/{incident['id']}/status",
            json={"status": "resolved", "message": "Fixed"},
            headers=user_headers,
        ).json()

        assert resolved["status"] == "resolved"
        assert resolved["resolvedAt"] is not None
        assert resolved["latestUpdate"]["message"] == "Fixed"
        assert {s["status"] for s in resolved["services"]} == {"operational"}
        assert recorder.names() == ["incident:update", "service:status:change", "service:status:change"]

    def test_illegal_transition_message(self, client, user_headers, org):
        base = f"{API}/organizations/{org['id']}/incidents"
        incident = client.post(base, json={"title": "t", "impact": "degraded"}, headers=user_headers).json()
        client.post(f"{base}/{incident['id']}/status", json={"status": "resolved"}, headers=user_headers)

        response = client.post(f"{base}/{incident['id']}/status", json={"status": "monitoring"}, headers=user_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid status transition from resolved to monitoring"}

    def test_manage_services_and_filters(self, client, user_headers, org):
        api = _service(client, user_headers, org["id"], name="API")
        base = f"{API}/organizations/{org['id']}/incidents"
        incident = client.post(base, json={"title": "t", "impact": "degraded"}, headers=user_headers).json()

        added = client.post(
            f"{base}/{incident['id']}/services",
            json={"serviceIds": [api["id"]], "action": "add"},
            headers=user_headers,
        ).json()
        assert [s["status"] for s in added["services"]] == ["degraded"]

        removed = client.post(
            f"{base}/{incident['id']}/services",
            json={"serviceIds": [api["id"]], "action": "remove"},
            headers=user_headers,
        ).json()
        assert removed["services"] == []

        active = client.get(f"{base}?status=active", headers=user_headers).json()
        assert [i["id"] for i in active["data"]] == [incident["id"]]
        assert client.get(f"{base}?status=bogus", headers=user_headers).status_code == 400

    def test_delete(self, client, user_headers, org):
        api = _service(client, user_headers, org["id"])
        base = f"{API}/organizations/{org['id']}/incidents"
        incident = client.post(
            base, json={"title": "t", "impact": "major_outage", "serviceIds": [api["id"]]}, headers=user_headers
        ).json()

        assert client.delete(f"{base}/{incident['id']}", headers=user_headers).status_code == 204

        service = client.get(f"{API}/organizations/{org['id']}/services/{api['id']}", headers=user_headers).json()
        assert service["status"] == "operational"
        assert client.get(f"{base}/{incident['id']}", headers=user_headers).status_code == 404


class TestMaintenances:

    def test_window_validation(self, client, user_headers, org):
        start = utcnow() + timedelta(hours=1)
        response = client.post(
            f"{API}/organizations/{org['id']}/maintenances",
            json={"title": "x", "scheduledStartTime": start.isoformat(), "scheduledEndTime": start.isoformat()},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert "scheduled_end_time" in response.json()["details"]

    def test_status_with_retroactive_times(self, client, user_headers, org):
        maintenance = _maintenance(client, user_headers, org["id"])
        url = f"{API}/organizations/{org['id']}/maintenances/{maintenance['id']}/status"
        start = "2024-01-01T10:00:00+00:00"
        end = "2024-01-01T11:30:00+00:00"

        completed = client.post(
            url,
            json={"status": "completed", "actualStartTime": start, "actualEndTime": end},
            headers=user_headers,
        ).json()

        assert completed["status"] == "completed"
        assert completed["actualStartTime"] == start
        assert completed["actualEndTime"] == end

        again = client.post(url, json={"status": "in_progress"}, headers=user_headers)
        assert again.status_code == 400

    def test_comments_are_owned_by_author(self, client, user_headers, org):
        maintenance = _maintenance(client, user_headers, org["id"])
        base = f"{API}/organizations/{org['id']}/maintenances/{maintenance['id']}/comments"

        comment = client.post(base, json={"content": "Starting"}, headers=user_headers).json()
        assert comment["userId"] == "user-1"

        intruder = {"X-User-Id": "user-2"}
        assert client.patch(f"{base}/{comment['id']}", json={"content": "x"}, headers=intruder).status_code == 403
        assert client.delete(f"{base}/{comment['id']}", headers=intruder).status_code == 403

        edited = client.patch(f"{base}/{comment['id']}", json={"content": "Started"}, headers=user_headers).json()
        assert edited["content"] == "Started"
        assert client.get(base, headers=user_headers).json()["meta"]["total"] == 1

        assert client.delete(f"{base}/{comment['id']}", headers=user_headers).status_code == 204

    def test_services_endpoint(self, client, user_headers, org):
        api = _service(client, user_headers, org["id"])
        maintenance = _maintenance(client, user_headers, org["id"])
        url = f"{API}/organizations/{org['id']}/maintenances/{maintenance['id']}/services"

        client.post(url, json={"serviceIds": [api["id"]], "action": "add"}, headers=user_headers)

        assert [s["id"] for s in client.get(url, headers=user_headers).json()] == [api["id"]]


class TestTeams:

    def test_team_and_members(self, client, user_headers, org):
        base = f"{API}/organizations/{org['id']}/teams"
        team = client.post(base, json={"name": "SRE"}, headers=user_headers).json()
        members = f"{base}/{team['id']}/members"

        member = client.post(members, json={"userId": "user-9"}, headers=user_headers)
        assert member.status_code == 201
        assert member.json()["role"] == "member"
        assert client.post(members, json={"userId": "user-9"}, headers=user_headers).status_code == 409

        promoted = client.patch(f"{members}/user-9", json={"role": "admin"}, headers=user_headers).json()
        assert promoted["role"] == "admin"
        assert client.patch(f"{members}/user-9", json={"role": "owner"}, headers=user_headers).status_code == 400

        assert client.delete(f"{members}/user-9", headers=user_headers).status_code == 204
        assert client.get(members, headers=user_headers).json()["data"] == []

        renamed = client.patch(f"{base}/{team['id']}", json={"name": "Platform"}, headers=user_headers).json()
        assert renamed["name"] == "Platform"


class TestPublicMirror:

    def test_status_overview(self, client, user_headers, org):
        _service(client, user_headers, org["id"], name="API", status="partial_outage")
        _service(client, user_headers, org["id"], name="Internal", isPublic=False)
        client.post(
            f"{API}/organizations/{org['id']}/incidents",
            json={"title": "Slow API", "impact": "partial_outage"},
            headers=user_headers,
        )
        _maintenance(client, user_headers, org["id"])

        overview = client.get(f"{API}/public/organizations/acme/status").json()

        assert overview["organization"] == {"name": "Acme", "slug": "acme"}
        assert overview["status"]["overall"] == "partial_outage"
        assert [s["name"] for s in overview["status"]["services"]] == ["API"]
        assert [i["title"] for i in overview["activeIncidents"]] == ["Slow API"]
        assert [m["title"] for m in overview["upcomingMaintenances"]] == ["DB upgrade"]

    def test_public_routes_need_no_identity(self, client, user_headers, org):
        maintenance = _maintenance(client, user_headers, org["id"])
        client.post(
            f"{API}/organizations/{org['id']}/maintenances/{maintenance['id']}/comments",
            json={"content": "First"},
            headers=user_headers,
        )
        client.post(
            f"{API}/organizations/{org['id']}/maintenances/{maintenance['id']}/comments",
            json={"content": "Second"},
            headers=user_headers,
        )

        assert client.get(f"{API}/public/organizations/acme").json()["name"] == "Acme"
        assert client.get(f"{API}/public/organizations/acme/incidents").json()["data"] == []
        detail = client.get(f"{API}/public/organizations/acme/maintenances/{maintenance['id']}").json()
        assert detail["title"] == "DB upgrade"
        updates = client.get(f"{API}/public/organizations/acme/maintenances/{maintenance['id']}/updates").json()
        assert [u["content"] for u in updates["data"]] == ["Second", "First"]

    def test_unknown_slug(self, client):
        assert client.get(f"{API}/public/organizations/nope/status").status_code == 404
