import pytest

from linksecure.models.access_grant import AccessGrant
from linksecure.stores import secure_links as links_store


async def _generate(client, headers, file_id, **policy):
    resp = await client.post(f"/files/{file_id}/generate-link", json=policy, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_generate_plain_link(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    body = await _generate(client, auth_headers(owner), f.id, expires_in_hours=2, max_access_count=5)

    assert body["mediated"] is False
    assert body["secure_url"].startswith("https://blobs.test/")
    assert body["max_access_count"] == 5
    assert body["policies"]["password_protected"] is False


async def test_generate_requires_login(client, owner, make_file):
    f = await make_file(owner)
    resp = await client.post(f"/files/{f.id}/generate-link", json={})
    assert resp.status_code == 401


async def test_generate_for_public_file_conflicts(client, owner, make_file, auth_headers):
    f = await make_file(owner, is_public=True)
    resp = await client.post(f"/files/{f.id}/generate-link", json={}, headers=auth_headers(owner))
    assert resp.status_code == 409
    assert resp.json()["error"] == "Conflict"


async def test_generate_by_non_owner_is_forbidden(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    resp = await client.post(f"/files/{f.id}/generate-link", json={}, headers=auth_headers(other_user))
    assert resp.status_code == 403


async def test_zero_max_access_count_is_rejected(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    resp = await client.post(
        f"/files/{f.id}/generate-link", json={"max_access_count": 0}, headers=auth_headers(owner)
    )
    assert resp.status_code == 422


async def test_password_link_flow(client, owner, make_file, auth_headers):
    f = await make_file(owner, content=b"top secret")
    body = await _generate(client, auth_headers(owner), f.id, password="s3cret")
    token = body["token"]
    assert body["secure_url"] == f"http://testserver/secure/{token}"

    missing = await client.get(f"/secure/{token}/download")
    assert missing.status_code == 401
    assert missing.json()["requiresPassword"] is True

    wrong = await client.get(f"/secure/{token}/download", params={"password": "nope"})
    assert wrong.status_code == 401

    ok = await client.get(f"/secure/{token}/download", headers={"x-secure-password": "s3cret"})
    assert ok.status_code == 200
    assert ok.content == b"top secret"
    assert ok.headers["content-disposition"].startswith("attachment;")
    assert ok.headers["cache-control"] == "no-store"
    assert "blobs.test" not in ok.text


async def test_email_is_required_and_recorded(client, owner, make_file, auth_headers, db):
    f = await make_file(owner)
    body = await _generate(client, auth_headers(owner), f.id, require_email=True)
    token = body["token"]

    missing = await client.get(f"/secure/{token}")
    assert missing.status_code == 400
    assert missing.json()["requiresEmail"] is True

    invalid = await client.get(f"/secure/{token}", params={"email": "not-an-email"})
    assert invalid.status_code == 400

    ok = await client.get(f"/secure/{token}", params={"email": "visitor@example.com"})
    assert ok.status_code == 200
    assert ok.headers["content-disposition"].startswith("inline;")

    events = await links_store.list_access_events(db, body["id"])
    assert events[0].visitor_email == "visitor@example.com"
    assert events[0].access_type == "view"


async def test_preview_disabled_blocks_view_only(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    token = (await _generate(client, auth_headers(owner), f.id, allow_preview=False))["token"]

    assert (await client.get(f"/secure/{token}")).status_code == 403
    assert (await client.get(f"/secure/{token}/download")).status_code == 200


async def test_watermark_header_for_link_visitors(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    token = (await _generate(client, auth_headers(owner), f.id, watermark_enabled=True))["token"]

    anonymous = await client.get(f"/secure/{token}")
    assert anonymous.headers["x-linksecure-watermark"] == "true"

    as_owner = await client.get(f"/secure/{token}", headers=auth_headers(owner))
    assert "x-linksecure-watermark" not in as_owner.headers


async def test_owner_does_not_consume_quota(client, owner, make_file, auth_headers, db):
    f = await make_file(owner)
    body = await _generate(client, auth_headers(owner), f.id, max_access_count=1, allow_preview=False)
    token = body["token"]

    for _ in range(3):
        resp = await client.get(f"/secure/{token}/download", headers=auth_headers(owner))
        assert resp.status_code == 200

    link = await links_store.get_by_token(db, token)
    assert link.access_count == 0
    assert link.is_active


async def test_grantee_does_not_consume_quota(client, owner, other_user, make_file, auth_headers, db):
    f = await make_file(owner)
    db.add(AccessGrant(file_id=f.id, user_id=other_user.id, granted_by=owner.id, role="view"))
    await db.commit()
    token = (await _generate(client, auth_headers(owner), f.id, max_access_count=1, watermark_enabled=True))["token"]

    resp = await client.get(f"/secure/{token}/download", headers=auth_headers(other_user))
    assert resp.status_code == 200
    assert (await links_store.get_by_token(db, token)).access_count == 0


async def test_quota_exhaustion_returns_gone(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    token = (await _generate(client, auth_headers(owner), f.id, max_access_count=2, require_email=True))["token"]
    params = {"email": "v@example.com"}

    assert (await client.get(f"/secure/{token}/download", params=params)).status_code == 200
    assert (await client.get(f"/secure/{token}/download", params=params)).status_code == 200
    third = await client.get(f"/secure/{token}/download", params=params)
    assert third.status_code == 410
    assert third.headers["cache-control"] == "public, max-age=300"


async def test_unknown_token_is_not_found(client):
    resp = await client.get("/secure/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Invalid or expired link"


async def test_info_does_not_consume(client, owner, make_file, auth_headers, db):
    f = await make_file(owner, content=b"12345")
    token = (await _generate(client, auth_headers(owner), f.id, max_access_count=1, password="pw"))["token"]

    for _ in range(2):
        resp = await client.get(f"/secure/{token}/info")
        assert resp.status_code == 200
    info = resp.json()
    assert info["file_name"] == "report.txt"
    assert info["file_size"] == 5
    assert info["policies"]["password_protected"] is True
    assert (await links_store.get_by_token(db, token)).access_count == 0


async def test_range_request_is_relayed(client, owner, make_file, auth_headers):
    f = await make_file(owner, content=b"0123456789")
    token = (await _generate(client, auth_headers(owner), f.id, password="pw"))["token"]

    resp = await client.get(
        f"/secure/{token}/download", params={"password": "pw"}, headers={"Range": "bytes=2-5"}
    )
    assert resp.status_code == 206
    assert resp.content == b"2345"
    assert resp.headers["content-range"] == "bytes 2-5/10"


async def test_list_details_and_revoke(client, owner, other_user, make_file, auth_headers):
    f = await make_file(owner)
    body = await _generate(client, auth_headers(owner), f.id, password="pw")
    await client.get(f"/secure/{body['token']}", params={"password": "pw"})

    listing = await client.get("/files/secure-links", headers=auth_headers(owner))
    assert listing.status_code == 200
    assert listing.json()["total"] == 1

    details = await client.get(f"/files/secure-links/{body['id']}", headers=auth_headers(owner))
    assert details.status_code == 200
    assert len(details.json()["events"]) == 1

    foreign = await client.delete(f"/files/secure-links/{body['id']}", headers=auth_headers(other_user))
    assert foreign.status_code == 403

    for _ in range(2):
        revoked = await client.delete(f"/files/secure-links/{body['id']}", headers=auth_headers(owner))
        assert revoked.status_code == 200
        assert revoked.json()["is_active"] is False

    gone = await client.get(f"/secure/{body['token']}", params={"password": "pw"})
    assert gone.status_code == 410


@pytest.mark.parametrize("prefix", ["", "/api"])
async def test_routes_are_mounted_under_api_too(client, owner, make_file, auth_headers, prefix):
    f = await make_file(owner)
    resp = await client.post(f"{prefix}/files/{f.id}/generate-link", json={}, headers=auth_headers(owner))
    assert resp.status_code == 201


async def test_trashed_file_hides_every_link_path(client, owner, make_file, auth_headers):
    f = await make_file(owner)
    token = (await _generate(client, auth_headers(owner), f.id, password="pw"))["token"]
    assert (await client.delete(f"/files/{f.id}", headers=auth_headers(owner))).status_code == 200

    info = await client.get(f"/secure/{token}/info")
    assert info.status_code == 410
    assert "file_name" not in info.json()
    assert (await client.get(f"/secure/{token}", params={"password": "pw"})).status_code == 410
    assert (await client.get(f"/secure/{token}/download", params={"password": "pw"})).status_code == 410
