from sqlalchemy import select

from app.models.audit_log import AuditLog

API = "/api/v1/installations"


def test_health(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers.get("X-Request-ID")


def test_requires_auth(client):
    assert client.get(API).status_code in (401, 403)
    r = client.get(API, headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_create_allocates_sr_no_and_audits(client, db, auth_headers, fields):
    r = client.post(API, json=fields(priority="High"), headers=auth_headers("Admin"))

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["srNo"].startswith("DC-")
    assert body["createdBy"] == "Admin Tester"
    assert body["completionPercentage"] == 0

    row = db.execute(select(AuditLog).where(AuditLog.action == "CREATE")).scalar_one()
    assert row.resource_id == body["srNo"]
    assert row.severity == "medium"


def test_create_validation_shape(client, auth_headers, fields):
    r = client.post(API, json=fields(pin_code="12", contact_no="abc"), headers=auth_headers())

    assert r.status_code == 422
    body = r.json()
    assert body["detail"] == "The given data was invalid."
    assert "pin_code" in body["errors"]
    assert "contact_no" in body["errors"]


def test_create_rejects_unknown_field(client, auth_headers, fields):
    r = client.post(API, json=fields(record_state="deleted"), headers=auth_headers())

    assert r.status_code == 422
    assert "record_state" in r.json()["errors"]


def test_plain_user_can_create_but_not_list(client, auth_headers, fields):
    headers = auth_headers("User", name="Field One")

    created = client.post(API, json=fields(), headers=headers)
    assert created.status_code == 201
    assert client.get(API, headers=headers).status_code == 403

    own = client.get(f"{API}/{created.json()['id']}", headers=headers)
    assert own.status_code == 200

    other = client.get(f"{API}/{created.json()['id']}", headers=auth_headers("User", name="Field Two"))
    assert other.status_code == 403


def test_list_filters_and_pagination(client, make_installation, auth_headers):
    make_installation(district="Pune")
    make_installation(district="Nashik", region_division="Nashik")
    make_installation(district="Nashik", region_division="Nashik", priority="High")

    r = client.get(API, params={"district": "Nashik", "per_page": 1}, headers=auth_headers("Client"))

    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert body["pages"] == 2
    assert len(body["items"]) == 1
    assert body["regions"] == ["Nashik", "Pune"]

    high = client.get(API, params={"priority": "High"}, headers=auth_headers("Client")).json()
    assert high["total"] == 1
    assert client.get(API, params={"priority": "Urgent"}, headers=auth_headers()).status_code == 422


def test_unknown_record_is_404(client, auth_headers):
    r = client.get(f"{API}/does-not-exist", headers=auth_headers())
    assert r.status_code == 404
    assert r.json()["detail"] == "Installation not found."


def test_update(client, make_installation, auth_headers, fields):
    inst = make_installation()

    r = client.put(
        f"{API}/{inst.id}",
        json=fields(installation_status="In Progress"),
        headers=auth_headers("Client"),
    )

    assert r.status_code == 200
    assert r.json()["installationStatus"] == "In Progress"
    assert r.json()["updatedBy"] == "Client Tester"

    denied = client.put(f"{API}/{inst.id}", json=fields(), headers=auth_headers("User"))
    assert denied.status_code == 403


def test_update_cannot_change_sr_no(client, make_installation, auth_headers, fields):
    inst = make_installation()

    r = client.put(f"{API}/{inst.id}", json=fields(sr_no="DC-2099-0001"), headers=auth_headers())

    assert r.status_code == 422


def test_delete_is_admin_only(client, make_installation, auth_headers):
    inst = make_installation()

    assert client.delete(f"{API}/{inst.id}", headers=auth_headers("Client")).status_code == 403

    r = client.delete(f"{API}/{inst.id}", headers=auth_headers("Admin"))
    assert r.status_code == 200
    assert r.json() == {"status": "deleted", "id": str(inst.id), "srNo": inst.sr_no}
    assert client.get(f"{API}/{inst.id}", headers=auth_headers()).status_code == 404


def test_status_helpers(client, make_installation, auth_headers):
    inst = make_installation()
    headers = auth_headers("Client")

    delivered = client.post(f"{API}/{inst.id}/mark-delivered", json={"on": "2025-05-01"}, headers=headers)
    assert delivered.status_code == 200
    assert delivered.json()["deliveryStatus"] == "Delivered"
    assert delivered.json()["deliveryDate"] == "2025-05-01"

    installed = client.post(f"{API}/{inst.id}/mark-installed", headers=headers)
    assert installed.json()["installationStatus"] == "Installed"
    assert installed.json()["installationDate"] is not None

    assigned = client.post(f"{API}/{inst.id}/assign-technician", json={"technician": "Sunil"}, headers=headers)
    assert assigned.json()["assignedTechnician"] == "Sunil"


def test_share_link_round_trip(client, make_installation, auth_headers):
    inst = make_installation()
    headers = auth_headers("Client")

    r = client.post(f"{API}/{inst.id}/share", headers=headers)
    assert r.status_code == 200
    link = r.json()
    assert link["shareUrl"].endswith(f"/installations/shared/{link['token']}")

    shared = client.get(f"{API}/shared/{link['token']}", headers=headers)
    assert shared.status_code == 200
    assert shared.json()["srNo"] == inst.sr_no

    assert client.get(f"{API}/shared/garbage", headers=headers).status_code == 404
    # a share token is not a login
    as_login = client.get(API, headers={"Authorization": f"Bearer {link['token']}"})
    assert as_login.status_code == 401
