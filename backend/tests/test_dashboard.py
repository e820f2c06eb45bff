import pytest
from httpx import AsyncClient

from reqpool.models import ProjectStatus, RequirementStatus


@pytest.mark.asyncio
async def test_empty_dashboard_lists_every_status(client: AsyncClient, auth_headers):
    response = await client.get("/api/dashboard", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total_requirements"] == 0
    assert data["total_projects"] == 0
    assert data["requirements_by_status"] == {s.value: 0 for s in RequirementStatus}
    assert data["projects_by_status"] == {s.value: 0 for s in ProjectStatus}


@pytest.mark.asyncio
async def test_dashboard_counts(client: AsyncClient, auth_headers, make_requirement):
    requirements = [await make_requirement() for _ in range(3)]
    await client.post(
        "/api/projects",
        json={"name": "统计", "status": "implementation", "requirement_ids": [requirements[0].id]},
        headers=auth_headers,
    )
    await client.post("/api/projects", json={"name": "空项目"}, headers=auth_headers)

    data = (await client.get("/api/dashboard", headers=auth_headers)).json()

    assert data["total_requirements"] == 3
    assert data["total_projects"] == 2
    assert data["requirements_by_status"]["pending_schedule"] == 2
    assert data["requirements_by_status"]["in_project"] == 1
    assert data["requirements_by_status"]["completed"] == 0
    assert data["projects_by_status"]["implementation"] == 1
    assert data["projects_by_status"]["new"] == 1


def test_status_labels_parse():
    assert RequirementStatus.parse("待排期") is RequirementStatus.PENDING_SCHEDULE
    assert ProjectStatus.parse("implementation") is ProjectStatus.IMPLEMENTATION
    assert ProjectStatus.IMPLEMENTATION.label == "需求实现"
    assert ProjectStatus.parse("unknown") is None
