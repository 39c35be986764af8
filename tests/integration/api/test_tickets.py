"""
Integration tests for the ticket API.

WHAT: Drives the ticket routes end to end through the FastAPI app with a
shared in-memory database session.

WHY: Verifies the pieces the unit tests cannot:
1. Authentication and role dependencies on each route
2. Status codes and the success/failure envelopes
3. Query parameter handling for list, filters and pagination
4. Admin bulk routes
"""

from datetime import timedelta

import pytest

from helpdesk.core.config import settings
from helpdesk.models.base import utcnow
from helpdesk.models.ticket import TicketStatus
from tests.factories import TagFactory, TicketCommentFactory, TicketFactory, auth_headers


API = settings.API_PREFIX


def _create_body(priority_id: int, **overrides) -> dict:
    body = {
        "subject": "Email not syncing",
        "description": "Outlook stopped syncing this morning.",
        "requester_email": "jane@example.com",
        "requester_name": "Jane Doe",
        "priority_id": priority_id,
    }
    body.update(overrides)
    return body


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, client):
        response = await client.get(f"{API}/tickets")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "AuthenticationError"

    @pytest.mark.asyncio
    async def test_garbage_token_is_401(self, client):
        response = await client.get(f"{API}/tickets", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_health_needs_no_auth(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": settings.VERSION}


# ============================================================================
# Create / Read
# ============================================================================


class TestCreateTicket:
    @pytest.mark.asyncio
    async def test_customer_creates_ticket(self, client, customer, priority):
        response = await client.post(
            f"{API}/tickets", json=_create_body(priority.id), headers=auth_headers(customer)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Ticket created successfully"
        ticket = body["data"]
        assert ticket["status"] == "new"
        assert ticket["ticket_code"].startswith("RES-")
        assert ticket["priority"]["name"] == "Medium"
        assert ticket["created_by"]["email"] == "customer@example.com"
        assert [event["change_type"] for event in ticket["events"]] == ["ticket_created"]

    @pytest.mark.asyncio
    async def test_create_with_assignee_and_tags(self, client, db_session, admin, agent, priority):
        tag = await TagFactory.create(db_session, name="email")

        response = await client.post(
            f"{API}/tickets",
            json=_create_body(priority.id, assignee_id=agent.id, tag_ids=[tag.id]),
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        ticket = response.json()["data"]
        assert ticket["status"] == "open"
        assert ticket["assignee"]["id"] == agent.id
        assert ticket["tags"] == [{"id": tag.id, "name": "email"}]

    @pytest.mark.asyncio
    async def test_unknown_priority_is_400(self, client, customer):
        response = await client.post(f"{API}/tickets", json=_create_body(999), headers=auth_headers(customer))

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidReferenceError"

    @pytest.mark.asyncio
    async def test_invalid_body_is_400(self, client, customer, priority):
        body = _create_body(priority.id, requester_email="not-an-email")

        response = await client.post(f"{API}/tickets", json=body, headers=auth_headers(customer))

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
        fields = [error["field"] for error in response.json()["details"]["errors"]]
        assert "body.requester_email" in fields


class TestGetTicket:
    @pytest.mark.asyncio
    async def test_owner_sees_detail(self, client, db_session, admin, customer, priority):
        ticket = await TicketFactory.create(db_session, created_by=customer, priority=priority)
        await TicketCommentFactory.create(db_session, ticket, admin, content="We are on it.")

        response = await client.get(f"{API}/tickets/{ticket.id}", headers=auth_headers(customer))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == ticket.id
        assert [comment["content"] for comment in data["comments"]] == ["We are on it."]
        assert data["comments"][0]["author"]["id"] == admin.id

    @pytest.mark.asyncio
    async def test_other_customer_is_403(self, client, db_session, customer, other_customer, priority):
        ticket = await TicketFactory.create(db_session, created_by=customer, priority=priority)

        response = await client.get(f"{API}/tickets/{ticket.id}", headers=auth_headers(other_customer))

        assert response.status_code == 403
        assert response.json()["error"] == "AuthorizationError"

    @pytest.mark.asyncio
    async def test_missing_is_404(self, client, customer):
        response = await client.get(f"{API}/tickets/424242", headers=auth_headers(customer))

        assert response.status_code == 404
        assert response.json()["error"] == "TicketNotFoundError"


# ============================================================================
# List / Stats
# ============================================================================


class TestListTickets:
    @pytest.mark.asyncio
    async def test_pagination_block(self, client, db_session, admin, customer, priority):
        for _ in range(3):
            await TicketFactory.create(db_session, created_by=customer, priority=priority)

        response = await client.get(f"{API}/tickets?page=2&limit=2", headers=auth_headers(admin))

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["tickets"]) == 1
        assert data["pagination"] == {
            "current_page": 2,
            "total_pages": 2,
            "total_count": 3,
            "has_next": False,
            "has_prev": True,
            "limit": 2,
        }

    @pytest.mark.asyncio
    async def test_list_items_carry_counts(self, client, db_session, admin, customer, priority):
        ticket = await TicketFactory.create(db_session, created_by=customer, priority=priority)
        await TicketCommentFactory.create(db_session, ticket, admin)

        response = await client.get(f"{API}/tickets", headers=auth_headers(customer))

        [item] = response.json()["data"]["tickets"]
        assert item["comment_count"] == 1
        assert item["attachment_count"] == 0

    @pytest.mark.asyncio
    async def test_agent_cannot_widen_scope(self, client, db_session, admin, agent, other_agent, priority):
        await TicketFactory.create(db_session, created_by=admin, priority=priority, assignee=other_agent)

        response = await client.get(
            f"{API}/tickets?assignee_id={other_agent.id}", headers=auth_headers(agent)
        )

        assert response.status_code == 200
        assert response.json()["data"]["tickets"] == []

    @pytest.mark.asyncio
    async def test_status_filter_and_search(self, client, db_session, admin, customer, priority):
        await TicketFactory.create(db_session, created_by=customer, priority=priority, subject="VPN down")
        wanted = await TicketFactory.create(
            db_session, created_by=customer, priority=priority, subject="VPN slow", status=TicketStatus.RESOLVED
        )

        response = await client.get(f"{API}/tickets?status=resolved&search=vpn", headers=auth_headers(admin))

        assert [item["id"] for item in response.json()["data"]["tickets"]] == [wanted.id]

    @pytest.mark.asyncio
    async def test_unknown_sort_column_falls_back(self, client, db_session, admin, customer, priority):
        base = utcnow()
        older = await TicketFactory.create(
            db_session, created_by=customer, priority=priority, created_at=base - timedelta(hours=1)
        )
        newer = await TicketFactory.create(db_session, created_by=customer, priority=priority, created_at=base)

        response = await client.get(f"{API}/tickets?sort_by=password", headers=auth_headers(admin))

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["data"]["tickets"]] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_bad_sort_order_is_400(self, client, admin):
        response = await client.get(f"{API}/tickets?sort_order=sideways", headers=auth_headers(admin))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_limit_capped_at_100(self, client, admin):
        response = await client.get(f"{API}/tickets?limit=101", headers=auth_headers(admin))

        assert response.status_code == 400


class TestStats:
    @pytest.mark.asyncio
    async def test_customer_stats(self, client, db_session, customer, other_customer, priority):
        await TicketFactory.create(db_session, created_by=customer, priority=priority)
        await TicketFactory.create(db_session, created_by=other_customer, priority=priority)

        response = await client.get(f"{API}/tickets/stats", headers=auth_headers(customer))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["by_status"] == {"new": 1}
        assert data["by_priority"] == {str(priority.id): 1}
        assert data["recent"] == {"new": 1}


# ============================================================================
# Update / Comments
# ============================================================================


class TestUpdateTicket:
    @pytest.mark.asyncio
    async def test_assigned_agent_resolves(self, client, db_session, admin, agent, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority, assignee=agent)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={"status": "resolved"}, headers=auth_headers(agent)
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "resolved"
        assert data["resolved_at"] is not None
        assert data["events"][0]["change_type"] == "status_changed"

    @pytest.mark.asyncio
    async def test_agent_null_assignee_is_403(self, client, db_session, admin, agent, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority, assignee=agent)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={"assignee_id": None}, headers=auth_headers(agent)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_unassigns(self, client, db_session, admin, agent, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority, assignee=agent)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={"assignee_id": None}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["data"]["assignee"] is None

    @pytest.mark.asyncio
    async def test_null_status_is_400(self, client, db_session, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={"status": None}, headers=auth_headers(admin)
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_null_description_is_400(self, client, db_session, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={"description": None}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["subject", "requester_name"])
    async def test_blank_required_text_is_400(self, client, db_session, admin, priority, field):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={field: "   "}, headers=auth_headers(admin)
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_strips_subject(self, client, db_session, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={"subject": "  Printer fixed?  "}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["data"]["subject"] == "Printer fixed?"

    @pytest.mark.asyncio
    async def test_customer_update_is_403(self, client, db_session, customer, priority):
        ticket = await TicketFactory.create(db_session, created_by=customer, priority=priority)

        response = await client.put(
            f"{API}/tickets/{ticket.id}", json={"subject": "Urgent!!"}, headers=auth_headers(customer)
        )

        assert response.status_code == 403


class TestComments:
    @pytest.mark.asyncio
    async def test_agent_posts_internal_note(self, client, db_session, admin, agent, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority, assignee=agent)

        response = await client.post(
            f"{API}/tickets/{ticket.id}/comments",
            json={"content": "Escalating to network team", "is_internal": True},
            headers=auth_headers(agent),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["is_internal"] is True
        assert data["author"]["id"] == agent.id

    @pytest.mark.asyncio
    async def test_customer_internal_note_is_403(self, client, db_session, customer, priority):
        ticket = await TicketFactory.create(db_session, created_by=customer, priority=priority)

        response = await client.post(
            f"{API}/tickets/{ticket.id}/comments",
            json={"content": "psst", "is_internal": True},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Customers cannot create internal notes"

    @pytest.mark.asyncio
    async def test_blank_comment_is_400(self, client, db_session, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.post(
            f"{API}/tickets/{ticket.id}/comments", json={"content": "   "}, headers=auth_headers(admin)
        )

        assert response.status_code == 400


# ============================================================================
# Admin bulk actions
# ============================================================================


class TestBulkActions:
    @pytest.mark.asyncio
    async def test_bulk_assign(self, client, db_session, admin, agent, priority):
        first = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        second = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.post(
            f"{API}/admin/tickets/bulk-assign",
            json={"ticket_ids": [first.id, second.id], "assignee_id": agent.id},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "2 ticket(s) assigned"
        assert {ticket["assignee_id"] for ticket in body["data"]} == {agent.id}

    @pytest.mark.asyncio
    async def test_bulk_assign_missing_ticket_is_404(self, client, db_session, admin, agent, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.post(
            f"{API}/admin/tickets/bulk-assign",
            json={"ticket_ids": [ticket.id, 9999], "assignee_id": agent.id},
            headers=auth_headers(admin),
        )

        assert response.status_code == 404
        assert response.json()["details"] == {"ticket_ids": [9999]}

    @pytest.mark.asyncio
    async def test_bulk_status_requires_admin(self, client, db_session, admin, agent, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority, assignee=agent)

        response = await client.post(
            f"{API}/admin/tickets/bulk-status",
            json={"ticket_ids": [ticket.id], "status": "closed"},
            headers=auth_headers(agent),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_bulk_status(self, client, db_session, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.post(
            f"{API}/admin/tickets/bulk-status",
            json={"ticket_ids": [ticket.id], "status": "closed"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        [data] = response.json()["data"]
        assert data["status"] == "closed"
        assert data["closed_at"] is not None
