from linksecure.models.access_grant import AccessGrant
from linksecure.stores import files as files_store


async def _upload(client, headers, content=b"file body", name="notes.txt", **form):
    resp = await client.post(
        "/files/upload",
        files={"file": (name, content, "text/plain")},
        data=form,
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_upload_stores_blob_and_record(client, owner, auth_headers, blob_store):
    body = await _upload(client, auth_headers(owner), tags="a, b,,c", description="quarterly")

    assert body["owner_id"] == owner.id
    assert body["size"] == len(b"file body")
    assert body["tags"] == ["a", "b", "c"]
    assert body["is_public"] is False
    stored = [k for k in blob_store.objects if k.startswith(f"{owner.id}/")]
    assert len(stored) == 1 and stored[0].endswith("_notes.txt")


async def test_upload_requires_login(client):
    resp = await client.post("/files/upload", files={"file": ("a.txt", b"x", "text/plain")})
    assert resp.status_code == 401


async def test_my_files_includes_shared(client, owner, other_user, make_file, auth_headers, db):
    mine = await make_file(other_user, filename="mine.txt")
    shared = await make_file(owner, filename="shared.txt")
    await make_file(owner, filename="private.txt")
    db.add(AccessGrant(file_id=shared.id, user_id=other_user.id, granted_by=owner.id, role="view"))
    await db.commit()

    resp = await client.get("/files/my-files", headers=auth_headers(other_user))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert {f["id"] for f in body["files"]} == {mine.id, shared.id}
    assert body["has_prev"] is False


async def test_view_counts_and_records(client, owner, make_file, auth_headers, db):
    f = await make_file(owner)
    resp = await client.get(f"/files/{f.id}", headers=auth_headers(owner))
    assert resp.status_code == 200
    assert resp.json()["view_count"] == 1

    history = await files_store.list_file_history(db, f.id)
    assert history[0].access_type == "view"


async def test_private_file_is_forbidden_to_strangers(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    assert (await client.get(f"/files/{f.id}", headers=auth_headers(other_user))).status_code == 403
    assert (await client.get(f"/files/{f.id}/download", headers=auth_headers(other_user))).status_code == 403


async def test_public_file_is_readable_not_editable(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner, is_public=True)
    headers = auth_headers(other_user)
    assert (await client.get(f"/files/{f.id}", headers=headers)).status_code == 200
    assert (await client.put(f"/files/{f.id}", json={"description": "x"}, headers=headers)).status_code == 403
    assert (await client.delete(f"/files/{f.id}", headers=headers)).status_code == 403


async def test_unknown_file_is_not_found(client, owner, auth_headers):
    resp = await client.get("/files/nope", headers=auth_headers(owner))
    assert resp.status_code == 404
    assert resp.json()["error"] == "Not Found"


async def test_download_streams_through_the_server(client, owner, make_file, auth_headers, db):
    f = await make_file(owner, content=b"abcdefghij", filename="résumé.txt")
    resp = await client.get(f"/files/{f.id}/download", headers=auth_headers(owner))

    assert resp.status_code == 200
    assert resp.content == b"abcdefghij"
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9.txt" in resp.headers["content-disposition"]
    assert (await files_store.get_file(db, f.id)).download_count == 1


async def test_download_range(client, owner, make_file, auth_headers):
    f = await make_file(owner, content=b"abcdefghij")
    resp = await client.get(f"/files/{f.id}/download", headers={**auth_headers(owner), "Range": "bytes=0-3"})
    assert resp.status_code == 206
    assert resp.content == b"abcd"


async def test_missing_blob_is_a_storage_error(client, owner, make_file, auth_headers, blob_store):
    f = await make_file(owner)
    blob_store.objects.clear()
    resp = await client.get(f"/files/{f.id}/download", headers=auth_headers(owner))
    assert resp.status_code == 500
    assert resp.json()["error"] == "Storage Error"


async def test_editor_can_edit_but_not_share(client, owner, other_user, make_file, auth_headers, db):
    f = await make_file(owner)
    db.add(AccessGrant(file_id=f.id, user_id=other_user.id, granted_by=owner.id, role="edit"))
    await db.commit()
    headers = auth_headers(other_user)

    ok = await client.put(f"/files/{f.id}", json={"tags": ["x", " y "]}, headers=headers)
    assert ok.status_code == 200
    assert ok.json()["tags"] == ["x", "y"]

    publish = await client.put(f"/files/{f.id}", json={"is_public": True}, headers=headers)
    assert publish.status_code == 403
    assert (await client.get(f"/files/{f.id}/history", headers=headers)).status_code == 403


async def test_trash_lifecycle(client, owner, make_file, auth_headers, blob_store):
    f = await make_file(owner)
    headers = auth_headers(owner)

    deleted = await client.delete(f"/files/{f.id}", headers=headers)
    assert deleted.status_code == 200

    # trashed files are gone even for their owner
    gone = await client.get(f"/files/{f.id}", headers=headers)
    assert gone.status_code == 410
    assert gone.headers["cache-control"] == "public, max-age=300"

    trash = await client.get("/files/trash/list", headers=headers)
    assert [t["id"] for t in trash.json()["files"]] == [f.id]

    assert (await client.post(f"/files/{f.id}/restore", headers=headers)).status_code == 200
    assert (await client.get(f"/files/{f.id}", headers=headers)).status_code == 200
    assert (await client.post(f"/files/{f.id}/restore", headers=headers)).status_code == 409

    purged = await client.delete(f"/files/{f.id}/permanent", headers=headers)
    assert purged.status_code == 200
    assert f.storage_path not in blob_store.objects
    assert (await client.get(f"/files/{f.id}", headers=headers)).status_code == 404


async def test_admin_grantee_can_trash_but_not_restore(client, owner, other_user, make_file, auth_headers, db):
    f = await make_file(owner)
    db.add(AccessGrant(file_id=f.id, user_id=other_user.id, granted_by=owner.id, role="admin"))
    await db.commit()
    headers = auth_headers(other_user)

    assert (await client.delete(f"/files/{f.id}", headers=headers)).status_code == 200
    assert (await client.post(f"/files/{f.id}/restore", headers=headers)).status_code == 403
    assert (await client.delete(f"/files/{f.id}/permanent", headers=headers)).status_code == 403


async def test_purge_removes_links_and_grants(client, owner, other_user, make_file, auth_headers, db):
    f = await make_file(owner)
    headers = auth_headers(owner)
    db.add(AccessGrant(file_id=f.id, user_id=other_user.id, granted_by=owner.id, role="view"))
    await db.commit()
    link = (await client.post(f"/files/{f.id}/generate-link", json={}, headers=headers)).json()

    assert (await client.delete(f"/files/{f.id}/permanent", headers=headers)).status_code == 200
    assert (await client.get(f"/secure/{link['token']}")).status_code == 404
    assert (await client.get("/files/secure-links", headers=headers)).json()["total"] == 0


async def test_history_for_owner(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    headers = {**auth_headers(owner), "User-Agent": "Mozilla/5.0 (iPhone) Mobile"}
    await client.get(f"/files/{f.id}", headers=headers)
    await client.get(f"/files/{f.id}/download", headers=headers)

    resp = await client.get(f"/files/{f.id}/history", headers=auth_headers(owner))
    assert resp.status_code == 200
    body = resp.json()
    assert body["download_count"] == 1
    assert [e["access_type"] for e in body["events"]] == ["download", "view"]
    assert body["events"][0]["device"] == "Mobile"


async def test_api_prefix_and_health(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    assert (await client.get(f"/api/files/{f.id}", headers=auth_headers(owner))).status_code == 200
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "ok"
