from datetime import date, timedelta

from pigfarm.stores import AnimalRegistry

ADMIN_HEADERS = {"X-Employee-Id": "99", "X-Employee-Role": "admin"}


def create_pair(client, sow="S1", boar="B1"):
    s = client.post("/pigs/", json={"pig_id": sow, "gender": "female", "breed": "Landrace"})
    assert s.status_code == 201, s.text
    b = client.post("/pigs/", json={"pig_id": boar, "gender": "male", "breed": "Duroc"})
    assert b.status_code == 201, b.text
    return s.json(), b.json()


def test_create_pig_and_list(client):
    r = client.post(
        "/pigs/",
        json={
            "pig_id": "S100",
            "gender": "female",
            "breed": "Large White",
            "birth_date": "2023-02-01",
            "weight": 140.5,
            "location": "farm_a",
        },
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["breeding_status"] == "available"
    assert data["current_breeding_record_id"] is None

    r2 = client.get("/pigs/", params={"gender": "female"})
    assert r2.status_code == 200
    assert any(p["pig_id"] == "S100" for p in r2.json())

    dup = client.post("/pigs/", json={"pig_id": "S100", "gender": "female"})
    assert dup.status_code == 409


def test_racing_pig_registration_conflicts(client, monkeypatch):
    assert client.post("/pigs/", json={"pig_id": "S7", "gender": "female"}).status_code == 201
    # Lookup misses as it would for a request racing the first insert
    monkeypatch.setattr(AnimalRegistry, "find", lambda self, pig_id, **kwargs: None)

    r = client.post("/pigs/", json={"pig_id": "S7", "gender": "female"})

    assert r.status_code == 409, r.text
    assert r.json()["code"] == "conflict"


def test_cannot_create_pig_mid_cycle(client):
    r = client.post("/pigs/", json={"pig_id": "BAD", "gender": "female", "breeding_status": "pregnant"})
    assert r.status_code == 422
    assert r.json()["code"] == "validation_error"


def test_actor_header_is_required(client):
    r = client.post(
        "/pigs/",
        json={"pig_id": "X1", "gender": "male"},
        headers={"X-Employee-Id": ""},
    )
    assert r.status_code == 422


def test_pairing_farrowing_flow(client):
    create_pair(client)
    bred = date.today() - timedelta(days=110)

    b = client.post(
        "/breeding/records",
        json={"sow_id": "S1", "boar_id": "B1", "breeding_date": bred.isoformat(), "boar_source": "own_farm"},
    )
    assert b.status_code == 201, b.text
    record = b.json()
    assert record["breeding_status"] == "bred"
    assert record["expected_farrowing_date"] == (bred + timedelta(days=114)).isoformat()
    assert record["days_left_to_farrowing"] == 4
    assert record["registered_by"] == 1

    sow = client.get("/pigs/S1").json()
    assert sow["breeding_status"] == "pregnant"
    assert sow["current_breeding_record_id"] == record["id"]

    again = client.post(
        "/breeding/records",
        json={"sow_id": "S1", "boar_id": "B1", "breeding_date": (bred + timedelta(days=30)).isoformat()},
    )
    assert again.status_code == 409

    nxt = client.get("/breeding/next-litter-id")
    assert nxt.status_code == 200
    litter_id = nxt.json()["next_litter_id"]
    assert litter_id == "LT001"

    f = client.post(
        f"/breeding/records/{record['id']}/farrowing",
        json={
            "litter_id": litter_id,
            "birth_date": date.today().isoformat(),
            "male_count": 5,
            "female_count": 4,
            "number_died": 1,
            "average_weight": 1.3,
            "location": "farm_a",
        },
    )
    assert f.status_code == 201, f.text
    fj = f.json()
    assert fj["litter_size"] == 9
    assert fj["total_born"] == 10
    assert fj["sow_status"] == "farrowed"

    litter = client.get(f"/litters/{litter_id}").json()
    assert litter["total_born"] == 10
    assert litter["sow_id"] == "S1"

    rec = client.get(f"/breeding/records/{record['id']}").json()
    assert rec["breeding_status"] == "farrowed"
    assert rec["litter_size"] + rec["number_died"] == rec["total_born"]

    assert client.get("/breeding/next-litter-id").json()["next_litter_id"] == "LT002"


def test_duplicate_litter_id_returns_suggestion(client):
    create_pair(client)
    client.post("/pigs/", json={"pig_id": "S2", "gender": "female"})
    bred = (date.today() - timedelta(days=112)).isoformat()
    r1 = client.post("/breeding/records", json={"sow_id": "S1", "boar_id": "B1", "breeding_date": bred}).json()
    r2 = client.post("/breeding/records", json={"sow_id": "S2", "boar_id": "B1", "breeding_date": bred}).json()

    body = {"litter_id": "LT007", "birth_date": date.today().isoformat(), "male_count": 3, "female_count": 3}
    assert client.post(f"/breeding/records/{r1['id']}/farrowing", json=body).status_code == 201

    dup = client.post(f"/breeding/records/{r2['id']}/farrowing", json=body)
    assert dup.status_code == 409
    data = dup.json()
    assert data["code"] == "conflict"
    assert data["details"]["error"] == "DUPLICATE_LITTER_ID"
    assert data["details"]["suggested_id"] == "LT007-1"

    retry = client.post(
        f"/breeding/records/{r2['id']}/farrowing",
        json={**body, "litter_id": data["details"]["suggested_id"]},
    )
    assert retry.status_code == 201, retry.text


def test_early_farrowing_is_rejected(client):
    create_pair(client)
    bred = (date.today() - timedelta(days=30)).isoformat()
    rec = client.post("/breeding/records", json={"sow_id": "S1", "boar_id": "B1", "breeding_date": bred}).json()

    r = client.post(
        f"/breeding/records/{rec['id']}/farrowing",
        json={"litter_id": "LT001", "birth_date": date.today().isoformat(), "male_count": 1},
    )
    assert r.status_code == 422
    assert r.json()["details"]["rule"] == "farrowing_window"


def test_update_statuses_and_dashboards(client):
    create_pair(client)
    bred = (date.today() - timedelta(days=111)).isoformat()
    rec = client.post("/breeding/records", json={"sow_id": "S1", "boar_id": "B1", "breeding_date": bred}).json()

    r = client.put("/breeding/update-statuses")
    assert r.status_code == 200, r.text
    assert r.json() == {"records_updated": 1, "sows_updated": 0}
    assert client.get(f"/breeding/records/{rec['id']}").json()["breeding_status"] == "due_soon"

    assert client.put("/breeding/update-statuses").json()["records_updated"] == 0

    stats = client.get("/breeding/statistics")
    assert stats.status_code == 200
    assert stats.json()["due_soon"] == 1
    assert stats.json()["pregnant_sows"] == 1

    due = client.get("/breeding/due")
    assert due.status_code == 200
    assert [d["breeding_record_id"] for d in due.json()] == [rec["id"]]


def test_edit_and_cancel_record(client):
    create_pair(client)
    rec = client.post(
        "/breeding/records", json={"sow_id": "S1", "boar_id": "B1", "breeding_date": "2026-01-01"}
    ).json()

    u = client.put(f"/breeding/records/{rec['id']}", json={"notes": "second service"})
    assert u.status_code == 200, u.text
    assert u.json()["notes"] == "second service"

    c = client.post(f"/breeding/records/{rec['id']}/cancel")
    assert c.status_code == 200
    assert c.json()["breeding_status"] == "failed"
    assert client.get("/pigs/S1").json()["breeding_status"] == "available"

    changes = client.get("/audit/edit-changes", headers=ADMIN_HEADERS)
    assert changes.status_code == 200
    assert len([ch for ch in changes.json() if ch["entity_type"] == "breeding_record"]) == 2


def test_delete_request_approval_flow(client):
    create_pair(client)
    rec = client.post(
        "/breeding/records", json={"sow_id": "S1", "boar_id": "B1", "breeding_date": "2026-01-01"}
    ).json()

    short = client.post(f"/breeding/records/{rec['id']}/delete-request", json={"reason": "dup"})
    assert short.status_code == 422

    req = client.post(f"/breeding/records/{rec['id']}/delete-request", json={"reason": "Duplicate entry for S1"})
    assert req.status_code == 201, req.text
    req_id = req.json()["id"]

    dup = client.post(f"/breeding/records/{rec['id']}/delete-request", json={"reason": "Duplicate entry for S1"})
    assert dup.status_code == 409

    assert client.get("/audit/delete-requests").status_code == 403
    assert client.put(f"/audit/delete-requests/{req_id}/approve").status_code == 403

    pending = client.get("/audit/delete-requests", params={"status": "pending"}, headers=ADMIN_HEADERS)
    assert [p["id"] for p in pending.json()] == [req_id]

    bad = client.put(f"/audit/delete-requests/{req_id}/explode", headers=ADMIN_HEADERS)
    assert bad.status_code == 422

    ok = client.put(f"/audit/delete-requests/{req_id}/approve", headers=ADMIN_HEADERS)
    assert ok.status_code == 200, ok.text
    assert ok.json()["status"] == "approved"

    assert client.get(f"/breeding/records/{rec['id']}").status_code == 404
    assert client.get("/pigs/S1").json()["breeding_status"] == "available"

    activities = client.get("/audit/activities", headers=ADMIN_HEADERS).json()
    assert any(a["activity_type"] == "delete" for a in activities)


def test_cancel_delete_request(client):
    create_pair(client)
    rec = client.post(
        "/breeding/records", json={"sow_id": "S1", "boar_id": "B1", "breeding_date": "2026-01-01"}
    ).json()
    client.post(f"/breeding/records/{rec['id']}/delete-request", json={"reason": "Entered by mistake"})

    r = client.post(f"/breeding/records/{rec['id']}/cancel-delete-request")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"

    again = client.post(f"/breeding/records/{rec['id']}/cancel-delete-request")
    assert again.status_code == 404


def test_weaning_status_flow(client):
    create_pair(client)
    bred = (date.today() - timedelta(days=114)).isoformat()
    rec = client.post("/breeding/records", json={"sow_id": "S1", "boar_id": "B1", "breeding_date": bred}).json()

    early = client.patch("/pigs/S1/breeding-status", json={"breeding_status": "available"})
    assert early.status_code == 409

    client.post(
        f"/breeding/records/{rec['id']}/farrowing",
        json={"litter_id": "LT001", "birth_date": date.today().isoformat(), "female_count": 8},
    )

    w = client.patch("/pigs/S1/breeding-status", json={"breeding_status": "weaning"})
    assert w.status_code == 200, w.text
    assert w.json()["breeding_status"] == "weaning"
