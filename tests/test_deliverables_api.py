def test_deliverable_crud(client, auth, make_project):
    project = make_project()
    phase_id = project.phases[0].id

    response = client.post(
        "/api/deliverables",
        json={
            "project_id": project.id,
            "phase_id": phase_id,
            "name": "Logo concepts",
            "link": "https://figma.com/file/abc",
            "link_type": "figma",
        },
        headers=auth("pm"),
    )
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "draft"

    response = client.put(
        f"/api/deliverables/{created['id']}", json={"status": "ready_for_review"}, headers=auth("pm")
    )
    assert response.json()["status"] == "ready_for_review"

    listed = client.get("/api/deliverables", params={"phase_id": phase_id}, headers=auth("client")).json()
    assert [d["name"] for d in listed] == ["Logo concepts"]

    assert client.delete(f"/api/deliverables/{created['id']}", headers=auth("pm")).status_code == 200
    assert client.get(f"/api/deliverables/{created['id']}", headers=auth("pm")).status_code == 404


def test_phase_must_belong_to_project(client, auth, make_project):
    project = make_project()
    other = make_project(name="Other")
    response = client.post(
        "/api/deliverables",
        json={"project_id": project.id, "phase_id": other.phases[0].id, "name": "Brief"},
        headers=auth("pm"),
    )
    assert response.status_code == 422


def test_unknown_status_is_rejected(client, auth, make_project):
    project = make_project()
    response = client.post(
        "/api/deliverables",
        json={"project_id": project.id, "phase_id": project.phases[0].id, "name": "Brief", "status": "shipped"},
        headers=auth("pm"),
    )
    assert response.status_code == 422


def test_clients_read_but_do_not_manage(client, auth, make_project):
    project = make_project()
    response = client.post(
        "/api/deliverables",
        json={"project_id": project.id, "phase_id": project.phases[0].id, "name": "Brief"},
        headers=auth("client"),
    )
    assert response.status_code == 403


def test_foreign_deliverables_are_hidden(client, auth, make_project):
    project = make_project(client_email="buyer@contoso.io")
    created = client.post(
        "/api/deliverables",
        json={"project_id": project.id, "phase_id": project.phases[0].id, "name": "Brief"},
        headers=auth("pm"),
    ).json()

    assert client.get(f"/api/deliverables/{created['id']}", headers=auth("client")).status_code == 404
    assert client.get("/api/deliverables", headers=auth("client")).json() == []


def test_archived_project_keeps_its_deliverables(client, auth, db, make_project):
    project = make_project()
    created = client.post(
        "/api/deliverables",
        json={"project_id": project.id, "phase_id": project.phases[0].id, "name": "Brief"},
        headers=auth("pm"),
    ).json()
    project.status = "archived"
    db.commit()

    response = client.delete(f"/api/deliverables/{created['id']}", headers=auth("pm"))
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"
    assert client.get(f"/api/deliverables/{created['id']}", headers=auth("pm")).status_code == 200
