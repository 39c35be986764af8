"""
Integration tests for ticket image attachments.

WHY: Uploads cross three systems (multipart parsing, blob storage, the
database) and must leave them consistent:
1. Only images within the size and count limits are accepted
2. Storage failures surface as 502 and leave no stored objects behind
3. Deletes remove the row even when remote cleanup fails
"""

import pytest

from helpdesk.core.config import settings
from tests.factories import TicketAttachmentFactory, TicketFactory, auth_headers


API = settings.API_PREFIX
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _images(*names):
    return [("images", (name, PNG, "image/png")) for name in names]


class TestUploadImages:
    @pytest.mark.asyncio
    async def test_single_image(self, client, db_session, blob_storage, admin, agent, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority, assignee=agent)

        response = await client.post(
            f"{API}/tickets/{ticket.id}/attachments/image",
            files={"image": ("screen.png", PNG, "image/png")},
            headers=auth_headers(agent),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["original_filename"] == "screen.png"
        assert data["mime_type"] == "image/png"
        assert data["size"] == len(PNG)
        assert data["stored_filename"].startswith(f"{blob_storage.public_base_url}/{settings.STORAGE_FOLDER}/")
        assert data["uploaded_by"]["id"] == agent.id

    @pytest.mark.asyncio
    async def test_batch_upload(self, client, db_session, blob_storage, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.post(
            f"{API}/tickets/{ticket.id}/attachments/images",
            files=_images("a.png", "b.png"),
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        assert response.json()["message"] == "2 image(s) uploaded successfully"
        assert len(blob_storage.objects) == 2

        detail = await client.get(f"{API}/tickets/{ticket.id}", headers=auth_headers(admin))
        events = [event["change_type"] for event in detail.json()["data"]["events"]]
        assert events.count("attachment_added") == 2

    @pytest.mark.asyncio
    async def test_non_image_is_400(self, client, db_session, blob_storage, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)

        response = await client.post(
            f"{API}/tickets/{ticket.id}/attachments/images",
            files=[("images", ("notes.txt", b"hello", "text/plain"))],
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "UploadRejectedError"
        assert blob_storage.upload_calls == 0

    @pytest.mark.asyncio
    async def test_too_many_files_is_400(self, client, db_session, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        names = [f"{i}.png" for i in range(settings.MAX_BATCH_UPLOAD_FILES + 1)]

        response = await client.post(
            f"{API}/tickets/{ticket.id}/attachments/images",
            files=_images(*names),
            headers=auth_headers(admin),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_storage_failure_is_502_and_cleans_up(self, client, db_session, blob_storage, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        blob_storage.fail_on_upload = 2

        response = await client.post(
            f"{API}/tickets/{ticket.id}/attachments/images",
            files=_images("a.png", "b.png"),
            headers=auth_headers(admin),
        )

        assert response.status_code == 502
        assert response.json()["error"] == "StorageError"
        assert blob_storage.objects == {}
        assert len(blob_storage.destroyed) == 1

    @pytest.mark.asyncio
    async def test_customer_upload_is_403(self, client, db_session, customer, priority):
        ticket = await TicketFactory.create(db_session, created_by=customer, priority=priority)

        response = await client.post(
            f"{API}/tickets/{ticket.id}/attachments/images",
            files=_images("a.png"),
            headers=auth_headers(customer),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_ticket_is_404(self, client, admin):
        response = await client.post(
            f"{API}/tickets/9999/attachments/images", files=_images("a.png"), headers=auth_headers(admin)
        )

        assert response.status_code == 404


class TestTemporaryImages:
    @pytest.mark.asyncio
    async def test_temporary_upload_then_create(self, client, customer, priority):
        upload = await client.post(
            f"{API}/tickets/attachments/temp/images",
            files=_images("a.png", "b.png"),
            headers=auth_headers(customer),
        )

        assert upload.status_code == 201
        urls = upload.json()["data"]["urls"]
        assert len(urls) == 2
        assert all(f"/{settings.TEMP_STORAGE_FOLDER}/" in url for url in urls)

        created = await client.post(
            f"{API}/tickets",
            json={
                "subject": "See screenshots",
                "requester_email": "jane@example.com",
                "requester_name": "Jane Doe",
                "priority_id": priority.id,
                "image_urls": urls + urls[:1],
            },
            headers=auth_headers(customer),
        )

        assert created.status_code == 201
        attachments = created.json()["data"]["attachments"]
        assert sorted(a["stored_filename"] for a in attachments) == sorted(urls)
        assert {a["size"] for a in attachments} == {0}

    @pytest.mark.asyncio
    async def test_temporary_upload_needs_auth(self, client):
        response = await client.post(f"{API}/tickets/attachments/temp/images", files=_images("a.png"))

        assert response.status_code == 401


class TestDeleteAttachment:
    @pytest.mark.asyncio
    async def test_delete(self, client, db_session, blob_storage, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        upload = await client.post(
            f"{API}/tickets/{ticket.id}/attachments/image",
            files={"image": ("screen.png", PNG, "image/png")},
            headers=auth_headers(admin),
        )
        attachment_id = upload.json()["data"]["id"]

        response = await client.delete(
            f"{API}/tickets/{ticket.id}/attachments/{attachment_id}", headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Attachment deleted successfully",
            "data": None,
        }
        assert blob_storage.objects == {}

    @pytest.mark.asyncio
    async def test_stored_object_removed_after_commit(self, client, db_session, blob_storage, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        attachment = await TicketAttachmentFactory.create(db_session, ticket, admin)
        seen = []
        destroy = blob_storage.destroy

        async def recording_destroy(public_id):
            seen.append(db_session.in_transaction())
            await destroy(public_id)

        blob_storage.destroy = recording_destroy

        response = await client.delete(
            f"{API}/tickets/{ticket.id}/attachments/{attachment.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert seen == [False]

    @pytest.mark.asyncio
    async def test_delete_when_storage_cleanup_fails(self, client, db_session, blob_storage, admin, priority):
        ticket = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        attachment = await TicketAttachmentFactory.create(db_session, ticket, admin)
        blob_storage.fail_on_destroy = True

        response = await client.delete(
            f"{API}/tickets/{ticket.id}/attachments/{attachment.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 200
        detail = await client.get(f"{API}/tickets/{ticket.id}", headers=auth_headers(admin))
        assert detail.json()["data"]["attachments"] == []

    @pytest.mark.asyncio
    async def test_attachment_on_other_ticket_is_404(self, client, db_session, admin, priority):
        first = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        second = await TicketFactory.create(db_session, created_by=admin, priority=priority)
        attachment = await TicketAttachmentFactory.create(db_session, first, admin)

        response = await client.delete(
            f"{API}/tickets/{second.id}/attachments/{attachment.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 404
        assert response.json()["error"] == "AttachmentNotFoundError"
