"""
Guildhall Backend — Connection & Notification API Tests
=========================================================

What:  End-to-end HTTP tests through the real app, exception handlers and
       the commit/rollback session dependency.
How:   HTTPX AsyncClient over ASGITransport against a per-test SQLite file.
       Members are created through db_session and committed first.

What we test:
    ✅ Status codes and error bodies for every ledger error
    ✅ Full request → accept → connections → notification flow
    ✅ Reject / cancel produce no notification
    ✅ A failed notification rolls back the transition it belongs to
    ✅ A failed commit is answered with 500 and leaves nothing behind
    ✅ /health and X-Request-ID propagation
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from guildhall.database import commit_unit_of_work
from guildhall.exceptions import PersistenceError
from guildhall.services.notification_emitter import notification_emitter


def _connection_lost():
    return OperationalError("COMMIT", {}, Exception("server closed the connection unexpectedly"))


@pytest.fixture
def send_request(api_client, auth_headers):
    async def _send(sender, target, message=None):
        body = {"to_member_id": str(target.id)}
        if message is not None:
            body["message"] = message
        return await api_client.post(
            "/api/connections/requests", json=body, headers=auth_headers(sender)
        )

    return _send


@pytest_asyncio.fixture
async def members(db_session, alice, bob, carol):
    await db_session.commit()
    return alice, bob, carol


class TestSendRequest:

    @pytest.mark.asyncio
    async def test_created(self, members, send_request):
        alice, bob, _ = members

        response = await send_request(alice, bob, message="  Let's connect  ")

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Connection request sent successfully"
        assert body["request"]["status"] == "pending"
        assert body["request"]["message"] == "Let's connect"
        assert body["request"]["from_member_id"] == str(alice.id)
        assert body["request"]["to_member_id"] == str(bob.id)

    @pytest.mark.asyncio
    async def test_self_request_is_400(self, members, send_request):
        alice, _, _ = members

        response = await send_request(alice, alice)

        assert response.status_code == 400
        assert response.json()["error"] == "self_reference"

    @pytest.mark.asyncio
    async def test_long_message_is_400(self, members, send_request):
        alice, bob, _ = members

        response = await send_request(alice, bob, message="x" * 1001)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "message"
        assert body["details"]["max_length"] == 1000

    @pytest.mark.asyncio
    async def test_unknown_target_is_404(self, members, api_client, auth_headers):
        alice, _, _ = members

        response = await api_client.post(
            "/api/connections/requests",
            json={"to_member_id": str(uuid.uuid4())},
            headers=auth_headers(alice),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_target_is_422(self, members, api_client, auth_headers):
        alice, _, _ = members

        response = await api_client.post(
            "/api/connections/requests",
            json={"to_member_id": "not-a-uuid"},
            headers=auth_headers(alice),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_in_either_direction_is_409(self, members, send_request):
        alice, bob, _ = members
        assert (await send_request(alice, bob)).status_code == 201

        same_direction = await send_request(alice, bob)
        reverse_direction = await send_request(bob, alice)

        assert same_direction.status_code == 409
        assert same_direction.json()["error"] == "duplicate_pending_request"
        assert reverse_direction.status_code == 409

    @pytest.mark.asyncio
    async def test_already_connected_is_409(self, members, send_request, api_client, auth_headers):
        alice, bob, _ = members
        request_id = (await send_request(alice, bob)).json()["request"]["id"]
        await api_client.put(
            f"/api/connections/requests/{request_id}/accept", headers=auth_headers(bob)
        )

        response = await send_request(bob, alice)

        assert response.status_code == 409
        assert response.json()["error"] == "already_connected"


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_request_accept_flow(self, members, send_request, api_client, auth_headers):
        alice, bob, _ = members
        request_id = (await send_request(alice, bob, message="Let's connect")).json()["request"]["id"]

        # Addressee sees it in the inbox and the badge
        inbox = await api_client.get("/api/connections/requests", headers=auth_headers(bob))
        assert inbox.status_code == 200
        assert inbox.headers["X-Total-Count"] == "1"
        assert inbox.json()["requests"][0]["counterpart"]["full_name"] == "Alice Fernandes"
        count = await api_client.get(
            "/api/connections/requests/pending-count", headers=auth_headers(bob)
        )
        assert count.json() == {"count": 1}

        # Sender sees it in the outbox with the addressee as counterpart
        outbox = await api_client.get(
            "/api/connections/requests", params={"direction": "sent"}, headers=auth_headers(alice)
        )
        assert outbox.json()["requests"][0]["counterpart"]["id"] == str(bob.id)

        accepted = await api_client.put(
            f"/api/connections/requests/{request_id}/accept", headers=auth_headers(bob)
        )
        assert accepted.status_code == 200
        assert accepted.json()["request"]["status"] == "accepted"

        alice_connections = (await api_client.get("/api/connections", headers=auth_headers(alice))).json()
        bob_connections = (await api_client.get("/api/connections", headers=auth_headers(bob))).json()
        assert [c["peer_member_id"] for c in alice_connections] == [str(bob.id)]
        assert [c["peer_member_id"] for c in bob_connections] == [str(alice.id)]
        assert bob_connections[0]["member"]["full_name"] == "Alice Fernandes"

        feed = (await api_client.get("/api/notifications", headers=auth_headers(alice))).json()
        assert feed["unread_count"] == 1
        assert feed["notifications"][0]["type"] == "connection_accepted"
        assert feed["notifications"][0]["related_id"] == request_id

        count = await api_client.get(
            "/api/connections/requests/pending-count", headers=auth_headers(bob)
        )
        assert count.json() == {"count": 0}

    @pytest.mark.asyncio
    async def test_accept_by_sender_is_404(self, members, send_request, api_client, auth_headers):
        alice, bob, _ = members
        request_id = (await send_request(alice, bob)).json()["request"]["id"]

        response = await api_client.put(
            f"/api/connections/requests/{request_id}/accept", headers=auth_headers(alice)
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_reject_sends_no_notification(self, members, send_request, api_client, auth_headers):
        alice, bob, _ = members
        request_id = (await send_request(alice, bob)).json()["request"]["id"]

        response = await api_client.put(
            f"/api/connections/requests/{request_id}/reject", headers=auth_headers(bob)
        )

        assert response.status_code == 200
        assert response.json()["request"]["status"] == "rejected"
        unread = await api_client.get("/api/notifications/unread-count", headers=auth_headers(alice))
        assert unread.json() == {"count": 0}
        assert (await send_request(alice, bob)).status_code == 201

    @pytest.mark.asyncio
    async def test_cancel_only_by_sender(self, members, send_request, api_client, auth_headers):
        alice, bob, _ = members
        request_id = (await send_request(alice, bob)).json()["request"]["id"]

        by_addressee = await api_client.put(
            f"/api/connections/requests/{request_id}/cancel", headers=auth_headers(bob)
        )
        by_sender = await api_client.put(
            f"/api/connections/requests/{request_id}/cancel", headers=auth_headers(alice)
        )
        again = await api_client.put(
            f"/api/connections/requests/{request_id}/cancel", headers=auth_headers(alice)
        )

        assert by_addressee.status_code == 404
        assert by_sender.status_code == 200
        assert by_sender.json()["request"]["status"] == "cancelled"
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_list_filters_are_400(self, members, api_client, auth_headers):
        alice, _, _ = members

        bad_direction = await api_client.get(
            "/api/connections/requests", params={"direction": "both"}, headers=auth_headers(alice)
        )
        bad_status = await api_client.get(
            "/api/connections/requests", params={"status": "archived"}, headers=auth_headers(alice)
        )

        assert bad_direction.status_code == 400
        assert bad_direction.json()["details"]["field"] == "direction"
        assert bad_status.status_code == 400


class TestNotificationsApi:

    @pytest.mark.asyncio
    async def test_request_notification_and_mark_read(
        self, members, send_request, api_client, auth_headers
    ):
        alice, bob, carol = members
        await send_request(alice, bob)

        feed = (await api_client.get("/api/notifications", headers=auth_headers(bob))).json()
        assert feed["unread_count"] == 1
        notification = feed["notifications"][0]
        assert notification["type"] == "connection_request"
        assert notification["message"] == "Alice Fernandes wants to connect with you"

        foreign = await api_client.put(
            f"/api/notifications/{notification['id']}/read", headers=auth_headers(carol)
        )
        assert foreign.status_code == 404

        marked = await api_client.put(
            f"/api/notifications/{notification['id']}/read", headers=auth_headers(bob)
        )
        assert marked.status_code == 200
        assert marked.json()["is_read"] is True

        unread_only = (await api_client.get(
            "/api/notifications", params={"unread_only": "true"}, headers=auth_headers(bob)
        )).json()
        assert unread_only == {"notifications": [], "unread_count": 0}


class TestAtomicity:
    """A transition and its notification commit together or not at all."""

    @pytest.mark.asyncio
    async def test_failed_notification_rolls_back_accept(
        self, members, send_request, api_client, auth_headers
    ):
        alice, bob, _ = members
        request_id = (await send_request(alice, bob)).json()["request"]["id"]

        with patch.object(
            notification_emitter, "emit", AsyncMock(side_effect=PersistenceError())
        ):
            response = await api_client.put(
                f"/api/connections/requests/{request_id}/accept", headers=auth_headers(bob)
            )

        assert response.status_code == 500
        assert response.json()["error"] == "server_error"
        assert "details" not in response.json()

        pending = (await api_client.get(
            "/api/connections/requests", params={"status": "pending"}, headers=auth_headers(bob)
        )).json()
        assert [r["id"] for r in pending["requests"]] == [request_id]
        assert (await api_client.get("/api/connections", headers=auth_headers(alice))).json() == []

    @pytest.mark.asyncio
    async def test_failed_notification_rolls_back_create(
        self, members, send_request, api_client, auth_headers
    ):
        alice, bob, _ = members

        with patch.object(
            notification_emitter, "emit", AsyncMock(side_effect=PersistenceError())
        ):
            response = await send_request(alice, bob)

        assert response.status_code == 500
        outbox = (await api_client.get(
            "/api/connections/requests", params={"direction": "sent"}, headers=auth_headers(alice)
        )).json()
        assert outbox["total_count"] == 0


class TestCommitFailures:
    """A commit that fails is reported to the client; the handler never claims success."""

    @pytest.mark.asyncio
    async def test_commit_failure_on_create_is_500(
        self, members, send_request, api_client, auth_headers
    ):
        alice, bob, _ = members

        with patch.object(AsyncSession, "commit", AsyncMock(side_effect=_connection_lost())):
            response = await send_request(alice, bob)

        assert response.status_code == 500
        assert response.json()["error"] == "server_error"

        outbox = (await api_client.get(
            "/api/connections/requests", params={"direction": "sent"}, headers=auth_headers(alice)
        )).json()
        assert outbox["total_count"] == 0
        unread = await api_client.get("/api/notifications/unread-count", headers=auth_headers(bob))
        assert unread.json() == {"count": 0}

    @pytest.mark.asyncio
    async def test_commit_failure_on_accept_is_500(
        self, members, send_request, api_client, auth_headers
    ):
        alice, bob, _ = members
        request_id = (await send_request(alice, bob)).json()["request"]["id"]

        with patch.object(AsyncSession, "commit", AsyncMock(side_effect=_connection_lost())):
            response = await api_client.put(
                f"/api/connections/requests/{request_id}/accept", headers=auth_headers(bob)
            )

        assert response.status_code == 500
        assert response.json()["error"] == "server_error"

        pending = (await api_client.get(
            "/api/connections/requests", params={"status": "pending"}, headers=auth_headers(bob)
        )).json()
        assert [r["id"] for r in pending["requests"]] == [request_id]
        assert (await api_client.get("/api/connections", headers=auth_headers(alice))).json() == []
        unread = await api_client.get("/api/notifications/unread-count", headers=auth_headers(alice))
        assert unread.json() == {"count": 0}

    @pytest.mark.asyncio
    async def test_commit_failure_on_mark_read_is_500(
        self, members, send_request, api_client, auth_headers
    ):
        alice, bob, _ = members
        await send_request(alice, bob)
        feed = (await api_client.get("/api/notifications", headers=auth_headers(bob))).json()
        notification_id = feed["notifications"][0]["id"]

        with patch.object(AsyncSession, "commit", AsyncMock(side_effect=_connection_lost())):
            response = await api_client.put(
                f"/api/notifications/{notification_id}/read", headers=auth_headers(bob)
            )

        assert response.status_code == 500
        unread = await api_client.get("/api/notifications/unread-count", headers=auth_headers(bob))
        assert unread.json() == {"count": 1}

    @pytest.mark.asyncio
    async def test_commit_unit_of_work_wraps_storage_error(self, mock_db_session):
        mock_db_session.commit.side_effect = _connection_lost()

        with pytest.raises(PersistenceError):
            await commit_unit_of_work(mock_db_session)


class TestPlumbing:

    @pytest.mark.asyncio
    async def test_health(self, api_client):
        response = await api_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "trace-abc"})
        assert response.headers["X-Request-ID"] == "trace-abc"

    @pytest.mark.asyncio
    async def test_request_id_generated_and_in_error_body(self, api_client):
        response = await api_client.get("/api/connections")

        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 8
        assert response.json()["request_id"] == request_id
