"""Tests for employee directory endpoints."""

import pytest
from httpx import AsyncClient

from conftest import auth_headers


@pytest.mark.asyncio
async def test_create_employee(async_client: AsyncClient, admin_headers):
    """POST /employees should create a new employee."""
    resp = await async_client.post("/api/v1/employees", json={
        "name": "Bob Jones",
        "employee_code": "BOB-001",
        "email": "bob@example.com",
        "department": "Engineering",
        "position": "Developer",
    }, headers=admin_headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Bob Jones"
    assert data["employee_code"] == "BOB-001"
    assert data["is_active"] is True
    assert data["id"] is not None


@pytest.mark.asyncio
async def test_create_duplicate_code_rejected(async_client: AsyncClient, admin_headers):
    """Creating two employees with the same code should fail."""
    await async_client.post(
        "/api/v1/employees", json={"name": "Emp1", "employee_code": "DUP-001"}, headers=admin_headers
    )
    resp = await async_client.post(
        "/api/v1/employees", json={"name": "Emp2", "employee_code": "DUP-001"}, headers=admin_headers
    )
    assert resp.status_code == 400
    assert "already registered" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_invalid_code_rejected(async_client: AsyncClient, admin_headers):
    resp = await async_client.post(
        "/api/v1/employees",
        json={"name": "X", "employee_code": "<script>"},
        headers=admin_headers,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_requires_admin(async_client: AsyncClient, make_user):
    hr = await make_user("hr")
    resp = await async_client.post(
        "/api/v1/employees",
        json={"name": "Nope", "employee_code": "NOPE-1"},
        headers=auth_headers(hr),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_link_to_missing_user_rejected(async_client: AsyncClient, admin_headers):
    resp = await async_client.post(
        "/api/v1/employees",
        json={"name": "Linked", "employee_code": "LNK-1", "user_id": 9999},
        headers=admin_headers,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_employees_pagination(async_client: AsyncClient, admin_headers):
    """GET /employees with skip/limit should paginate."""
    for i in range(5):
        await async_client.post(
            "/api/v1/employees",
            json={"name": f"P{i}", "employee_code": f"PAGE-{i:03d}"},
            headers=admin_headers,
        )
    resp = await async_client.get("/api/v1/employees?skip=2&limit=2", headers=admin_headers)
    assert resp.status_code == 200
    assert [e["name"] for e in resp.json()] == ["P2", "P3"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(async_client: AsyncClient, admin_headers):
    await async_client.post(
        "/api/v1/employees", json={"name": "Anil", "employee_code": "S-1"}, headers=admin_headers
    )
    resp = await async_client.get("/api/v1/employees?search=%25", headers=admin_headers)
    assert resp.json() == []


@pytest.mark.asyncio
async def test_get_by_code(async_client: AsyncClient, admin_headers):
    await async_client.post(
        "/api/v1/employees", json={"name": "Coded", "employee_code": "CODE-7"}, headers=admin_headers
    )
    resp = await async_client.get("/api/v1/employees/by-code?code=CODE-7", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Coded"

    missing = await async_client.get("/api/v1/employees/by-code?code=NONE", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_get_employee_not_found(async_client: AsyncClient, admin_headers):
    """Requesting a non-existent employee should return 404."""
    resp = await async_client.get("/api/v1/employees/9999", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_employee(async_client: AsyncClient, admin_headers):
    """PUT /employees/{id} should update employee details."""
    create = await async_client.post(
        "/api/v1/employees", json={"name": "Old Name", "employee_code": "UPD-001"}, headers=admin_headers
    )
    eid = create.json()["id"]
    resp = await async_client.put(
        f"/api/v1/employees/{eid}",
        json={"name": "New Name", "department": "Sales"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "New Name"
    assert data["department"] == "Sales"


@pytest.mark.asyncio
async def test_delete_employee_soft(async_client: AsyncClient, admin_headers):
    """DELETE /employees/{id} should soft-delete (deactivate)."""
    create = await async_client.post(
        "/api/v1/employees", json={"name": "Del Me", "employee_code": "DEL-001"}, headers=admin_headers
    )
    eid = create.json()["id"]
    resp = await async_client.delete(f"/api/v1/employees/{eid}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    # Should no longer appear in active list
    listed = await async_client.get("/api/v1/employees", headers=admin_headers)
    codes = [e["employee_code"] for e in listed.json()]
    assert "DEL-001" not in codes


@pytest.mark.asyncio
async def test_account_links_to_one_employee_only(
    async_client: AsyncClient, admin_headers, make_user
):
    user = await make_user("employee")
    first = await async_client.post(
        "/api/v1/employees",
        json={"name": "First", "employee_code": "ONE-1", "user_id": user.id},
        headers=admin_headers,
    )
    assert first.status_code == 201

    second = await async_client.post(
        "/api/v1/employees",
        json={"name": "Second", "employee_code": "ONE-2", "user_id": user.id},
        headers=admin_headers,
    )
    assert second.status_code == 400
    assert "already linked" in second.json()["detail"]

    # re-saving the same link on the same employee is fine
    same = await async_client.put(
        f"/api/v1/employees/{first.json()['id']}",
        json={"user_id": user.id},
        headers=admin_headers,
    )
    assert same.status_code == 200


@pytest.mark.asyncio
async def test_deactivated_employee_can_be_reactivated(async_client: AsyncClient, admin_headers):
    create = await async_client.post(
        "/api/v1/employees", json={"name": "Back Again", "employee_code": "REA-001"}, headers=admin_headers
    )
    eid = create.json()["id"]
    await async_client.delete(f"/api/v1/employees/{eid}", headers=admin_headers)

    resp = await async_client.put(
        f"/api/v1/employees/{eid}", json={"is_active": True}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is True
