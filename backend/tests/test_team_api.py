from linksecure.stores import grants as grants_store


async def _grant(client, headers, file_id, role="view", **target):
    return await client.post("/team/grants", json={"file_id": file_id, "role": role, **target}, headers=headers)


async def test_grant_by_email_and_list_members(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    resp = await _grant(client, auth_headers(owner), f.id, "edit", email="OTHER@example.com")
    assert resp.status_code == 201, resp.text
    assert resp.json()["user_id"] == other_user.id
    assert resp.json()["role"] == "edit"

    members = await client.get(f"/team/files/{f.id}/members", headers=auth_headers(owner))
    assert members.status_code == 200
    assert [(m["email"], m["role"]) for m in members.json()] == [("other@example.com", "edit")]


async def test_grant_rejections(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    headers = auth_headers(owner)

    assert (await _grant(client, headers, f.id, user_id=owner.id)).status_code == 400
    assert (await _grant(client, headers, f.id, email="nobody@example.com")).status_code == 404
    assert (await _grant(client, headers, f.id, "superuser", user_id=other_user.id)).status_code == 422
    assert (await _grant(client, headers, "missing", user_id=other_user.id)).status_code == 404
    assert (await _grant(client, auth_headers(other_user), f.id, user_id=other_user.id)).status_code == 403


async def test_regrant_updates_in_place(client, owner, other_user, make_file, auth_headers, db):
    f = await make_file(owner)
    headers = auth_headers(owner)
    await _grant(client, headers, f.id, "view", user_id=other_user.id)
    await _grant(client, headers, f.id, "admin", user_id=other_user.id)

    grants = await grants_store.grants_for_file(db, f.id, active_only=False)
    assert len(grants) == 1
    assert grants[0].role == "admin"


async def test_admin_grantee_can_manage_but_not_grant_self(
    client, owner, other_user, third_user, make_file, auth_headers
):
    f = await make_file(owner)
    await _grant(client, auth_headers(owner), f.id, "admin", user_id=other_user.id)
    admin_headers = auth_headers(other_user)

    assert (await _grant(client, admin_headers, f.id, "view", user_id=third_user.id)).status_code == 201
    assert (await _grant(client, admin_headers, f.id, "view", user_id=other_user.id)).status_code == 400
    members = await client.get(f"/team/files/{f.id}/members", headers=admin_headers)
    assert len(members.json()) == 2


async def test_update_and_remove(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    headers = auth_headers(owner)
    await _grant(client, headers, f.id, "view", user_id=other_user.id)

    updated = await client.put(
        "/team/grants", json={"file_id": f.id, "user_id": other_user.id, "role": "edit"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["role"] == "edit"

    removed = await client.delete(f"/team/grants/{f.id}/{other_user.id}", headers=headers)
    assert removed.status_code == 200
    assert (await client.get(f"/files/{f.id}", headers=auth_headers(other_user))).status_code == 403

    again = await client.put(
        "/team/grants", json={"file_id": f.id, "user_id": other_user.id, "role": "view"}, headers=headers
    )
    assert again.status_code == 404


async def test_file_access_check_records_grant_use(client, owner, other_user, make_file, auth_headers, db):
    f = await make_file(owner)
    await _grant(client, auth_headers(owner), f.id, "view", user_id=other_user.id)

    resp = await client.post("/team/file/access", json={"file_id": f.id}, headers=auth_headers(other_user))
    assert resp.status_code == 200
    assert resp.json()["access_level"] == "view"
    assert resp.json()["via"] == "grant"

    grant = await grants_store.get_grant(db, f.id, other_user.id)
    assert grant.last_accessed_at is not None

    owner_check = await client.post("/team/file/access", json={"file_id": f.id}, headers=auth_headers(owner))
    assert owner_check.json()["via"] == "owner"
    assert owner_check.json()["access_level"] == "admin"


async def test_request_and_approve(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    requester = auth_headers(other_user)

    created = await client.post(
        "/team/requests", json={"file_id": f.id, "requested_role": "edit", "message": "please"}, headers=requester
    )
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    duplicate = await client.post(
        "/team/requests", json={"file_id": f.id, "requested_role": "view"}, headers=requester
    )
    assert duplicate.status_code == 409

    pending = await client.get(f"/team/files/{f.id}/requests", headers=auth_headers(owner))
    assert [r["id"] for r in pending.json()] == [request_id]
    assert (await client.get(f"/team/files/{f.id}/requests", headers=requester)).status_code == 403

    approved = await client.post(
        f"/team/requests/{request_id}/manage", json={"action": "approve"}, headers=auth_headers(owner)
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["actioned_by"] == owner.id

    edit = await client.put(f"/files/{f.id}", json={"description": "edited"}, headers=requester)
    assert edit.status_code == 200

    replay = await client.post(
        f"/team/requests/{request_id}/manage", json={"action": "deny"}, headers=auth_headers(owner)
    )
    assert replay.status_code == 409

    mine = await client.get("/team/requests/mine", headers=requester)
    assert [r["status"] for r in mine.json()] == ["approved"]


async def test_request_deny_and_rejections(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)

    own = await client.post("/team/requests", json={"file_id": f.id, "requested_role": "view"}, headers=auth_headers(owner))
    assert own.status_code == 400

    req = await client.post(
        "/team/requests", json={"file_id": f.id, "requested_role": "view"}, headers=auth_headers(other_user)
    )
    request_id = req.json()["id"]

    # the requester cannot approve their own request
    self_approve = await client.post(
        f"/team/requests/{request_id}/manage", json={"action": "approve"}, headers=auth_headers(other_user)
    )
    assert self_approve.status_code == 403

    denied = await client.post(
        f"/team/requests/{request_id}/manage", json={"action": "deny"}, headers=auth_headers(owner)
    )
    assert denied.json()["status"] == "denied"
    assert (await client.get(f"/files/{f.id}", headers=auth_headers(other_user))).status_code == 403

    missing = await client.post("/team/requests/nope/manage", json={"action": "deny"}, headers=auth_headers(owner))
    assert missing.status_code == 404


async def test_request_when_already_granted_conflicts(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    await _grant(client, auth_headers(owner), f.id, "view", user_id=other_user.id)
    resp = await client.post(
        "/team/requests", json={"file_id": f.id, "requested_role": "edit"}, headers=auth_headers(other_user)
    )
    assert resp.status_code == 409
