"""
服务单元成员事务
"""
import pytest
from httpx import AsyncClient

from reqpool.models import ServiceUnit, ServiceUnitMember, UserRole
from reqpool.services import service_units

from conftest import fail_after


@pytest.fixture
async def people(make_user):
    """负责人与四个候选成员"""
    leader = await make_user(UserRole.PRODUCT_MANAGER, name="组长")
    members = [await make_user(UserRole.DEVELOPER, name=f"成员{i}") for i in range(4)]
    return leader, members


@pytest.mark.asyncio
async def test_create_service_unit(client: AsyncClient, auth_headers, people, count_rows):
    leader, (a, b, *_) = people

    response = await client.post(
        "/api/service-units",
        json={"name": "交付一组", "leader_id": leader.id, "member_ids": [a.id, b.id, a.id]},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "交付一组"
    assert data["leader_name"] == "组长"
    assert data["member_ids"] == [a.id, b.id]
    assert data["member_names"] == ["成员0", "成员1"]
    assert await count_rows(ServiceUnitMember) == 2


@pytest.mark.asyncio
async def test_member_already_assigned_conflict(client: AsyncClient, auth_headers, people, count_rows):
    """成员已在其他单元时整体失败，单元与成员行数都不变"""
    leader, (a, b, c, _) = people
    await client.post(
        "/api/service-units",
        json={"name": "交付一组", "leader_id": leader.id, "member_ids": [a.id]},
        headers=auth_headers,
    )
    units_before = await count_rows(ServiceUnit)
    members_before = await count_rows(ServiceUnitMember)

    response = await client.post(
        "/api/service-units",
        json={"name": "交付二组", "leader_id": leader.id, "member_ids": [b.id, a.id, c.id]},
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert "交付一组" in response.json()["message"]
    assert await count_rows(ServiceUnit) == units_before
    assert await count_rows(ServiceUnitMember) == members_before


@pytest.mark.asyncio
async def test_duplicate_name_conflict(client: AsyncClient, auth_headers, people):
    leader, _ = people
    payload = {"name": "交付一组", "leader_id": leader.id, "member_ids": []}
    await client.post("/api/service-units", json=payload, headers=auth_headers)

    response = await client.post("/api/service-units", json=payload, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "服务单元名称已存在"


@pytest.mark.asyncio
async def test_unknown_leader_or_member(client: AsyncClient, auth_headers, people, count_rows):
    leader, (a, *_) = people

    response = await client.post(
        "/api/service-units", json={"name": "x", "leader_id": 9999, "member_ids": [a.id]},
        headers=auth_headers,
    )
    assert response.status_code == 404

    response = await client.post(
        "/api/service-units", json={"name": "x", "leader_id": leader.id, "member_ids": [a.id, 9999]},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert await count_rows(ServiceUnit) == 0


@pytest.mark.asyncio
async def test_update_replaces_members(client: AsyncClient, auth_headers, people, count_rows):
    """成员 {A,B} 更新为 {C} 后只剩一条成员记录，A、B 回到未分配"""
    leader, (a, b, c, _) = people
    unit = (await client.post(
        "/api/service-units",
        json={"name": "交付一组", "leader_id": leader.id, "member_ids": [a.id, b.id]},
        headers=auth_headers,
    )).json()

    response = await client.put(
        f"/api/service-units/{unit['id']}",
        json={"name": "交付一组", "leader_id": leader.id, "member_ids": [c.id]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["member_ids"] == [c.id]
    assert await count_rows(ServiceUnitMember, ServiceUnitMember.service_unit_id == unit["id"]) == 1

    unassigned = {u["id"] for u in (await client.get("/api/unassigned-users", headers=auth_headers)).json()}
    assert a.id in unassigned
    assert b.id in unassigned
    assert c.id not in unassigned


@pytest.mark.asyncio
async def test_update_keeps_own_members_and_checks_others(client: AsyncClient, auth_headers, people):
    leader, (a, b, c, d) = people
    first = (await client.post(
        "/api/service-units", json={"name": "一组", "leader_id": leader.id, "member_ids": [a.id]},
        headers=auth_headers,
    )).json()
    await client.post(
        "/api/service-units", json={"name": "二组", "leader_id": leader.id, "member_ids": [b.id]},
        headers=auth_headers,
    )

    # 保留自己的成员不算冲突
    response = await client.put(
        f"/api/service-units/{first['id']}",
        json={"name": "一组改名", "leader_id": leader.id, "member_ids": [a.id, c.id]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["name"] == "一组改名"

    # 拉入其他单元的成员冲突，原成员不变
    response = await client.put(
        f"/api/service-units/{first['id']}",
        json={"name": "一组改名", "leader_id": leader.id, "member_ids": [b.id, d.id]},
        headers=auth_headers,
    )
    assert response.status_code == 409
    current = (await client.get(f"/api/service-units/{first['id']}", headers=auth_headers)).json()
    assert current["member_ids"] == [a.id, c.id]

    # 改成其他单元的名字冲突
    response = await client.put(
        f"/api/service-units/{first['id']}",
        json={"name": "二组", "leader_id": leader.id, "member_ids": [a.id]},
        headers=auth_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_service_unit(client: AsyncClient, auth_headers, people, count_rows):
    leader, (a, b, *_) = people
    unit = (await client.post(
        "/api/service-units",
        json={"name": "交付一组", "leader_id": leader.id, "member_ids": [a.id, b.id]},
        headers=auth_headers,
    )).json()

    response = await client.delete(f"/api/service-units/{unit['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert await count_rows(ServiceUnit) == 0
    assert await count_rows(ServiceUnitMember) == 0
    assert (await client.delete(f"/api/service-units/{unit['id']}", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_list_service_units(client: AsyncClient, auth_headers, people):
    leader, (a, b, *_) = people
    for name, member in (("一组", a), ("二组", b)):
        await client.post(
            "/api/service-units", json={"name": name, "leader_id": leader.id, "member_ids": [member.id]},
            headers=auth_headers,
        )

    response = await client.get("/api/service-units", headers=auth_headers)

    assert response.status_code == 200
    assert [(u["name"], u["member_ids"]) for u in response.json()] == [("一组", [a.id]), ("二组", [b.id])]


@pytest.mark.asyncio
async def test_update_unknown_unit(client: AsyncClient, auth_headers, people):
    leader, _ = people
    response = await client.put(
        "/api/service-units/404", json={"name": "x", "leader_id": leader.id}, headers=auth_headers
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_failed_create_leaves_no_rows(
    client: AsyncClient, auth_headers, people, monkeypatch, count_rows
):
    """成员写入失败时单元行一并回滚"""
    leader, (a, b, *_) = people
    monkeypatch.setattr(service_units, "replace_members", fail_after(service_units.replace_members))

    response = await client.post(
        "/api/service-units",
        json={"name": "交付一组", "leader_id": leader.id, "member_ids": [a.id, b.id]},
        headers=auth_headers,
    )

    assert response.status_code == 500
    assert await count_rows(ServiceUnit) == 0
    assert await count_rows(ServiceUnitMember) == 0


@pytest.mark.asyncio
async def test_failed_member_replacement_keeps_old_members(
    client: AsyncClient, auth_headers, people, monkeypatch, count_rows
):
    """旧成员已删除、新成员已写入后失败，单元恢复为原名称和原成员"""
    leader, (a, b, c, _) = people
    unit = (await client.post(
        "/api/service-units",
        json={"name": "交付一组", "leader_id": leader.id, "member_ids": [a.id, b.id]},
        headers=auth_headers,
    )).json()
    monkeypatch.setattr(service_units, "replace_members", fail_after(service_units.replace_members))

    response = await client.put(
        f"/api/service-units/{unit['id']}",
        json={"name": "改名", "leader_id": leader.id, "member_ids": [c.id]},
        headers=auth_headers,
    )

    assert response.status_code == 500
    monkeypatch.undo()
    current = (await client.get(f"/api/service-units/{unit['id']}", headers=auth_headers)).json()
    assert current["name"] == "交付一组"
    assert current["member_ids"] == [a.id, b.id]
    assert await count_rows(ServiceUnitMember) == 2
