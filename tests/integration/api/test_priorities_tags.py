"""
Integration tests for the priority and tag reference endpoints.

WHY: Any signed-in user reads these lists to fill dropdowns, while only
admins change them. Names are unique regardless of case.
"""

import pytest

from helpdesk.core.config import settings
from tests.factories import PriorityFactory, TagFactory, TicketFactory, auth_headers


API = settings.API_PREFIX


class TestPriorities:
    @pytest.mark.asyncio
    async def test_any_user_lists(self, client, customer, priority, high_priority):
        response = await client.get(f"{API}/tickets/priorities", headers=auth_headers(customer))

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["data"]] == ["Medium", "High"]

    @pytest.mark.asyncio
    async def test_admin_creates(self, client, admin):
        response = await client.post(f"{API}/tickets/priorities", json={"name": " Urgent "}, headers=auth_headers(admin))

        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Urgent"

    @pytest.mark.asyncio
    async def test_agent_cannot_create(self, client, agent):
        response = await client.post(f"{API}/tickets/priorities", json={"name": "Urgent"}, headers=auth_headers(agent))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_duplicate_name_is_409(self, client, admin, priority):
        response = await client.post(f"{API}/tickets/priorities", json={"name": "medium"}, headers=auth_headers(admin))

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_rename(self, client, admin, priority):
        response = await client.put(
            f"{API}/tickets/priorities/{priority.id}", json={"name": "Normal"}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"id": priority.id, "name": "Normal"}

    @pytest.mark.asyncio
    async def test_rename_missing_is_404(self, client, admin):
        response = await client.put(f"{API}/tickets/priorities/999", json={"name": "Normal"}, headers=auth_headers(admin))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_unused(self, client, db_session, admin):
        spare = await PriorityFactory.create(db_session, name="Someday")

        response = await client.delete(f"{API}/tickets/priorities/{spare.id}", headers=auth_headers(admin))

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_delete_in_use_is_409(self, client, db_session, admin, priority):
        await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.delete(f"{API}/tickets/priorities/{priority.id}", headers=auth_headers(admin))

        assert response.status_code == 409
        assert response.json()["error"] == "ResourceInUseError"


class TestTags:
    @pytest.mark.asyncio
    async def test_list_sorted_by_name(self, client, db_session, agent):
        await TagFactory.create(db_session, name="vpn")
        await TagFactory.create(db_session, name="billing")

        response = await client.get(f"{API}/tags", headers=auth_headers(agent))

        assert [t["name"] for t in response.json()["data"]] == ["billing", "vpn"]

    @pytest.mark.asyncio
    async def test_create_and_duplicate(self, client, admin):
        first = await client.post(f"{API}/tags", json={"name": "Network"}, headers=auth_headers(admin))
        second = await client.post(f"{API}/tags", json={"name": "network"}, headers=auth_headers(admin))

        assert first.status_code == 201
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_customer_cannot_create(self, client, customer):
        response = await client.post(f"{API}/tags", json={"name": "mine"}, headers=auth_headers(customer))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_detaches_from_tickets(self, client, db_session, admin, priority):
        tag = await TagFactory.create(db_session, name="legacy")
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        await client.put(f"{API}/tickets/{ticket.id}", json={"tag_ids": [tag.id]}, headers=auth_headers(admin))

        response = await client.delete(f"{API}/tags/{tag.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        detail = await client.get(f"{API}/tickets/{ticket.id}", headers=auth_headers(admin))
        assert detail.json()["data"]["tags"] == []

    @pytest.mark.asyncio
    async def test_delete_missing_is_404(self, client, admin):
        response = await client.delete(f"{API}/tags/999", headers=auth_headers(admin))

        assert response.status_code == 404
