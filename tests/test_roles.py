import uuid


def create(client, headers, name, instructions="Be brief."):
    return client.post("/api/roles", json={"name": name, "instructions": instructions}, headers=headers)


def test_created_role_appears_in_list_sorted_by_name(client, auth_headers):
    assert create(client, auth_headers, "Translator").status_code == 201
    assert create(client, auth_headers, "Analyst").status_code == 201
    names = [r["name"] for r in client.get("/api/roles", headers=auth_headers).get_json()]
    assert names == ["Analyst", "Translator"]


def test_create_role_validates_fields(client, auth_headers):
    resp = client.post("/api/roles", json={"name": "  "}, headers=auth_headers)
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.get_json()["errors"]}
    assert fields == {"name", "instructions"}


def test_duplicate_role_name_conflicts(client, auth_headers):
    create(client, auth_headers, "Coder")
    resp = create(client, auth_headers, "Coder")
    assert resp.status_code == 409
    assert resp.get_json() == {"error": "Role name already exists"}


def test_update_role(client, auth_headers):
    role = create(client, auth_headers, "Coder").get_json()
    resp = client.put(f"/api/roles/{role['id']}", json={"instructions": "Write Python."}, headers=auth_headers)
    assert resp.status_code == 200
    updated = resp.get_json()
    assert updated["name"] == "Coder"
    assert updated["instructions"] == "Write Python."


def test_update_role_needs_a_field(client, auth_headers):
    role = create(client, auth_headers, "Coder").get_json()
    resp = client.put(f"/api/roles/{role['id']}", json={}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Nothing to update"}


def test_rename_role_onto_existing_name_conflicts(client, auth_headers):
    create(client, auth_headers, "Coder")
    other = create(client, auth_headers, "Writer").get_json()
    resp = client.put(f"/api/roles/{other['id']}", json={"name": "Coder"}, headers=auth_headers)
    assert resp.status_code == 409


def test_missing_role(client, auth_headers):
    missing = str(uuid.uuid4())
    assert client.put(f"/api/roles/{missing}", json={"name": "x"}, headers=auth_headers).status_code == 404
    assert client.delete(f"/api/roles/{missing}", headers=auth_headers).status_code == 404
    assert client.delete("/api/roles/123", headers=auth_headers).status_code == 400


def test_delete_role(client, auth_headers):
    role = create(client, auth_headers, "Coder").get_json()
    assert client.delete(f"/api/roles/{role['id']}", headers=auth_headers).status_code == 204
    assert client.get("/api/roles", headers=auth_headers).get_json() == []
