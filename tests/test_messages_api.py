def post(client, auth, role="client", **payload):
    return client.post("/api/messages", json=payload, headers=auth(role))


def test_post_and_list_thread(client, auth, make_project):
    project = make_project()

    first = post(client, auth, project_id=project.id, content="Can we see the moodboard?")
    assert first.status_code == 201
    assert first.json()["sender_email"] == "client@northwind.io"
    assert first.json()["message_type"] == "user"

    reply = post(
        client, auth, role="pm",
        project_id=project.id,
        phase_id=project.phases[0].id,
        content="Uploading it today",
        reply_to_id=first.json()["id"],
    )
    assert reply.status_code == 201

    thread = client.get("/api/messages", params={"project_id": project.id}, headers=auth("client")).json()
    assert [m["content"] for m in thread] == ["Can we see the moodboard?", "Uploading it today"]

    replies = client.get(
        "/api/messages", params={"reply_to_id": first.json()["id"]}, headers=auth("pm")
    ).json()
    assert [m["id"] for m in replies] == [reply.json()["id"]]


def test_reply_must_exist_in_same_project(client, auth, make_project):
    project = make_project()
    other = make_project(name="Other")
    foreign = post(client, auth, role="pm", project_id=other.id, content="elsewhere").json()

    response = post(client, auth, project_id=project.id, content="hi", reply_to_id=foreign["id"])
    assert response.status_code == 422

    response = post(client, auth, project_id=project.id, content="hi", reply_to_id=9999)
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_phase_must_belong_to_project(client, auth, make_project):
    project = make_project()
    other = make_project(name="Other")
    response = post(client, auth, project_id=project.id, phase_id=other.phases[0].id, content="hi")
    assert response.status_code == 422


def test_blank_content_is_rejected(client, auth, make_project):
    project = make_project()
    assert post(client, auth, project_id=project.id, content="   ").status_code == 422


def test_clients_cannot_post_system_messages(client, auth, make_project):
    project = make_project()
    response = post(client, auth, project_id=project.id, content="hello", message_type="system")
    assert response.status_code == 403


def test_cannot_post_to_foreign_project(client, auth, make_project):
    project = make_project(client_email="buyer@contoso.io")
    assert post(client, auth, project_id=project.id, content="hi").status_code == 404


def test_only_sender_edits_but_moderators_resolve(client, auth, make_project):
    project = make_project()
    message = post(client, auth, project_id=project.id, content="Typo in the header").json()
    url = f"/api/messages/{message['id']}"

    assert client.put(url, json={"content": "edited"}, headers=auth("pm")).status_code == 403

    response = client.put(url, json={"content": "Typo in the footer"}, headers=auth("client"))
    assert response.status_code == 200
    assert response.json()["content"] == "Typo in the footer"

    response = client.put(url, json={"is_resolved": True}, headers=auth("pm"))
    assert response.status_code == 200
    assert response.json()["is_resolved"] is True


def test_deleting_parent_leaves_dangling_reply(client, auth, make_project):
    project = make_project()
    parent = post(client, auth, project_id=project.id, content="question").json()
    reply = post(client, auth, role="pm", project_id=project.id, content="answer", reply_to_id=parent["id"]).json()

    assert client.delete(f"/api/messages/{parent['id']}", headers=auth("client")).status_code == 200

    kept = client.get(f"/api/messages/{reply['id']}", headers=auth("client")).json()
    assert kept["reply_to_id"] == parent["id"]


def test_filter_by_message_type(client, auth, make_project):
    project = make_project(("awaiting_approval",))
    client.post(
        f"/api/phases/{project.phases[0].id}/transition", json={"action": "approve"}, headers=auth("client")
    )
    post(client, auth, project_id=project.id, content="Thanks!")

    system = client.get(
        "/api/messages", params={"project_id": project.id, "message_type": "system"}, headers=auth("client")
    ).json()
    assert [m["content"] for m in system] == ['Demo Client approved phase "Phase 1"']
