"""
tests.test_api

HTTP contract of the access control service: sign-in, session resolution, the
admin role endpoint and its error mapping, and the access check route.
"""

from __future__ import annotations

import uuid

import httpx
import pytest
from fastapi import APIRouter, Depends

from church_rbac.api.app import create_app
from church_rbac.auth.deps import require_access
from church_rbac.rbac.roles import ContextType, RoleLevel
from church_rbac.settings import Settings

from conftest import bearer_for


async def _sign_in(client: httpx.AsyncClient, email: str) -> dict[str, str]:
    r = await client.post("/api/dev/token", json={"email": email, "firstName": email.split("@")[0]})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


@pytest.mark.asyncio
async def test_first_session_registers_member(client: httpx.AsyncClient) -> None:
    headers = await _sign_in(client, "maria@example.org")
    r = await client.get("/api/auth/session", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["roleLevel"] == 1
    assert body["role"] == "member"
    assert body["roleName"] == "Member"
    assert body["contextMap"] is None
    assert body["homePath"] == "/member/dashboard"


@pytest.mark.asyncio
async def test_session_requires_token(client: httpx.AsyncClient) -> None:
    r = await client.get("/api/auth/session")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "unauthenticated"


@pytest.mark.asyncio
async def test_invalid_token_is_401(client: httpx.AsyncClient) -> None:
    r = await client.get("/api/auth/session", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_set_user_role_end_to_end(
    client: httpx.AsyncClient, settings: Settings, make_member
) -> None:
    admin = await make_member("admin@example.org", level=RoleLevel.ADMIN)
    admin_headers = bearer_for(settings, admin.id, admin.email)
    leader_headers = await _sign_in(client, "leader@example.org")
    assert (await client.get("/api/auth/session", headers=leader_headers)).status_code == 200

    r = await client.post(
        "/api/admin/set-user-role",
        headers=admin_headers,
        json={
            "targetEmail": "leader@example.org",
            "roleLevel": 2,
            "contextType": "cell_group_ids",
            "contextIds": ["cg-42"],
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["roleLevel"] == 2
    assert body["roleName"] == "Cell Group Leader"
    assert body["contextMap"] == {"cell_group_ids": ["cg-42"]}

    async def allowed(**params) -> bool:
        r = await client.get("/api/access/check", headers=leader_headers, params=params)
        assert r.status_code == 200, r.text
        return r.json()["allowed"]

    assert await allowed(requiredLevel=2, contextType="cell_group_ids", contextId="cg-42")
    assert not await allowed(requiredLevel=2, contextType="cell_group_ids", contextId="cg-99")
    assert not await allowed(requiredLevel=3)

    # The old token still carries Member claims; the session view reads the member row.
    session = (await client.get("/api/auth/session", headers=leader_headers)).json()
    assert session["roleLevel"] == 2


@pytest.mark.asyncio
async def test_set_user_role_accepts_scalar_context_id(
    client: httpx.AsyncClient, settings: Settings, make_member
) -> None:
    admin = await make_member("admin@example.org", level=RoleLevel.ADMIN)
    await make_member("m@example.org")
    r = await client.post(
        "/api/admin/set-user-role",
        headers=bearer_for(settings, admin.id),
        json={
            "targetEmail": "m@example.org",
            "roleLevel": 3,
            "contextType": "ministry_ids",
            "contextIds": "worship",
        },
    )
    assert r.status_code == 200, r.text
    assert r.json()["contextMap"] == {"ministry_ids": ["worship"]}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "field"),
    [
        ({"targetEmail": "m@example.org", "roleLevel": 2, "contextType": "cell_group_ids", "contextIds": []}, "contextIds"),
        ({"targetEmail": "m@example.org", "roleLevel": 3, "contextType": "district_ids", "contextIds": ["d"]}, "contextType"),
        ({"targetEmail": "m@example.org", "roleLevel": 9}, "roleLevel"),
        ({"roleLevel": 1}, "targetEmail"),
    ],
)
async def test_set_user_role_validation_is_400(
    client: httpx.AsyncClient, settings: Settings, make_member, payload, field
) -> None:
    admin = await make_member("admin@example.org", level=RoleLevel.ADMIN)
    await make_member("m@example.org")
    r = await client.post(
        "/api/admin/set-user-role", headers=bearer_for(settings, admin.id), json=payload
    )
    assert r.status_code == 400, r.text
    error = r.json()["error"]
    assert error["code"] == "validation_error"
    assert error["field"] == field


@pytest.mark.asyncio
async def test_set_user_role_unauthenticated_is_401(client: httpx.AsyncClient) -> None:
    r = await client.post(
        "/api/admin/set-user-role", json={"targetEmail": "m@example.org", "roleLevel": 4}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_set_user_role_non_admin_is_403(
    client: httpx.AsyncClient, settings: Settings, make_member
) -> None:
    leader = await make_member(
        "leader@example.org", level=RoleLevel.MINISTRY_LEADER, context={"ministry_ids": ["m1"]}
    )
    r = await client.post(
        "/api/admin/set-user-role",
        headers=bearer_for(settings, leader.id),
        json={"targetEmail": "leader@example.org", "roleLevel": 4},
    )
    assert r.status_code == 403
    assert r.json() == {
        "success": False,
        "error": {"code": "forbidden", "message": "Insufficient role"},
    }


@pytest.mark.asyncio
async def test_set_user_role_unknown_target_is_404(
    client: httpx.AsyncClient, settings: Settings, make_member
) -> None:
    admin = await make_member("admin@example.org", level=RoleLevel.ADMIN)
    r = await client.post(
        "/api/admin/set-user-role",
        headers=bearer_for(settings, admin.id),
        json={"targetEmail": "ghost@example.org", "roleLevel": 1},
    )
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "target_not_found"


@pytest.mark.asyncio
async def test_demoted_admin_loses_access_with_old_token(
    client: httpx.AsyncClient, settings: Settings, make_member
) -> None:
    admin = await make_member("admin@example.org", level=RoleLevel.ADMIN)
    other = await make_member("other@example.org", level=RoleLevel.ADMIN)
    other_headers = bearer_for(settings, other.id)
    assert (await client.get("/api/admin/members", headers=other_headers)).status_code == 200

    r = await client.post(
        "/api/admin/set-user-role",
        headers=bearer_for(settings, admin.id),
        json={"targetEmail": "other@example.org", "roleLevel": 1},
    )
    assert r.status_code == 200

    assert (await client.get("/api/admin/members", headers=other_headers)).status_code == 403


@pytest.mark.asyncio
async def test_members_listing_and_history(
    client: httpx.AsyncClient, settings: Settings, make_member
) -> None:
    admin = await make_member("admin@example.org", level=RoleLevel.ADMIN)
    target = await make_member("target@example.org")
    headers = bearer_for(settings, admin.id)

    await client.post(
        "/api/admin/set-user-role",
        headers=headers,
        json={"targetEmail": "target@example.org", "roleLevel": 2, "contextType": "district_ids", "contextIds": ["north"]},
    )

    r = await client.get("/api/admin/members", headers=headers, params={"search": "target"})
    assert r.status_code == 200
    [item] = r.json()
    assert item["email"] == "target@example.org"
    assert item["roleName"] == "Cell Group Leader"
    assert item["roleContext"] == {"district_ids": ["north"]}
    assert item["status"] == "active"

    r = await client.get(f"/api/admin/members/{target.id}/role-history", headers=headers)
    assert r.status_code == 200
    [event] = r.json()
    assert event["eventType"] == "ROLE_ASSIGNED"
    assert event["details"]["new_role_level"] == 2

    r = await client.get(f"/api/admin/members/{uuid.uuid4()}/role-history", headers=headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_access_check_without_token_asks_for_login(client: httpx.AsyncClient) -> None:
    r = await client.get("/api/access/check", params={"requiredLevel": 1})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "unauthenticated"


@pytest.mark.asyncio
async def test_access_check_rejects_unknown_context_type(client: httpx.AsyncClient) -> None:
    r = await client.get(
        "/api/access/check", params={"requiredLevel": 2, "contextType": "choir_ids", "contextId": "x"}
    )
    assert r.status_code == 400
    assert r.json()["error"]["field"] == "contextType"


@pytest.mark.asyncio
async def test_bootstrap_admin_route(client: httpx.AsyncClient, settings: Settings) -> None:
    headers = await _sign_in(client, "pastor@example.org")

    r = await client.post(
        "/api/auth/fix-user-role", json={"email": "pastor@example.org", "adminSecret": "wrong"}
    )
    assert r.status_code == 401

    r = await client.post(
        "/api/auth/fix-user-role",
        json={"email": "pastor@example.org", "adminSecret": settings.bootstrap_admin_secret},
    )
    assert r.status_code == 200, r.text
    assert r.json()["roleLevel"] == 4

    session = (await client.get("/api/auth/session", headers=headers)).json()
    assert session["roleName"] == "Admin"
    assert session["homePath"] == "/admin"


@pytest.mark.asyncio
async def test_dev_token_hidden_in_prod(settings: Settings) -> None:
    app = create_app(settings=settings.model_copy(update={"env": "prod"}))
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            r = await c.post("/api/dev/token", json={"email": "x@example.org"})
    assert r.status_code == 404


def _scoped_app(settings: Settings):
    app = create_app(settings=settings)
    router = APIRouter()

    @router.get(
        "/cell-groups/{cell_group_id}/roster",
        dependencies=[Depends(require_access(RoleLevel.CELL_LEADER, ContextType.CELL_GROUP, "cell_group_id"))],
    )
    async def roster(cell_group_id: str) -> dict[str, str]:
        return {"cellGroupId": cell_group_id}

    app.include_router(router)
    return app


@pytest.mark.asyncio
async def test_scoped_route_hides_denial_reason(settings: Settings, make_member) -> None:
    app = _scoped_app(settings)
    member = await make_member("m@example.org")
    leader = await make_member(
        "l@example.org", level=RoleLevel.CELL_LEADER, context={"cell_group_ids": ["g1"]}
    )
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            ok = await c.get("/cell-groups/g1/roster", headers=bearer_for(settings, leader.id))
            out_of_scope = await c.get("/cell-groups/g2/roster", headers=bearer_for(settings, leader.id))
            too_low = await c.get("/cell-groups/g1/roster", headers=bearer_for(settings, member.id))

    assert ok.status_code == 200
    assert out_of_scope.status_code == too_low.status_code == 403
    assert out_of_scope.json() == too_low.json()


@pytest.mark.asyncio
async def test_imported_member_can_sign_in(client: httpx.AsyncClient, make_member) -> None:
    imported = await make_member(
        "deacon@example.org", level=RoleLevel.CELL_LEADER, context={"cell_group_ids": ["g7"]},
        with_account=False,
    )
    headers = await _sign_in(client, "deacon@example.org")

    r = await client.get("/api/auth/session", headers=headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["memberId"] != str(imported.id)
    assert body["roleLevel"] == 2
    assert body["contextMap"] == {"cell_group_ids": ["g7"]}

    r = await client.get(
        "/api/access/check",
        headers=headers,
        params={"requiredLevel": 2, "contextType": "cell_group_ids", "contextId": "g7"},
    )
    assert r.json() == {"allowed": True}


@pytest.mark.asyncio
async def test_sync_users_route(client: httpx.AsyncClient, settings: Settings, make_member) -> None:
    await make_member("usher@example.org", with_account=False)
    await _sign_in(client, "usher@example.org")
    await _sign_in(client, "newcomer@example.org")

    r = await client.post("/api/auth/sync-users", json={"adminSecret": "wrong"})
    assert r.status_code == 401

    r = await client.post(
        "/api/auth/sync-users", json={"adminSecret": settings.bootstrap_admin_secret}
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total"] == 2
    assert body["created"] == ["newcomer@example.org"]
    assert body["relinked"] == ["usher@example.org"]
    assert body["conflicts"] == []

    again = await client.post(
        "/api/auth/sync-users", json={"adminSecret": settings.bootstrap_admin_secret}
    )
    assert again.json()["total"] == 0
