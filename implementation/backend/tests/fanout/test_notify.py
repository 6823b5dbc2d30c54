"""Tests for the push side of notification_service against a live registry."""

from __future__ import annotations

from procrastinhate.services import entity_service
from procrastinhate.services import notification_service as ns
from tests.factories import make_entity, make_socket, sent_json

UPDATE = {"type": "UPDATE_DATA"}


def _connect(registry, *identities):
    sockets = {}
    for identity in identities:
        sockets[identity] = make_socket()
        registry.register(identity, "tok", sockets[identity])
    return sockets


class TestNotifyCreated:
    async def test_invitees_get_update_then_notification_creator_gets_notification(
        self, registry
    ):
        sockets = _connect(registry, "A", "B", "C", "D")
        entity = make_entity(creator="A", pending=("B", "C"), title="Plan")

        await ns.notify_created(registry, entity, kind="task", creator_name="Alice")

        invite = {
            "type": "NOTIFICATION",
            "message": 'Alice invited you to collaborate on the task "Plan"',
        }
        assert sent_json(sockets["B"]) == [UPDATE, invite]
        assert sent_json(sockets["C"]) == [UPDATE, invite]
        assert sent_json(sockets["A"]) == [
            {"type": "NOTIFICATION", "message": 'Task "Plan" created'}
        ]
        assert sent_json(sockets["D"]) == []


class TestNotifyChanged:
    async def test_pending_invitees_and_bystanders_are_skipped(self, registry):
        sockets = _connect(registry, "A", "B", "C", "D")
        entity = make_entity(creator="A", accepted=("B",), pending=("C",))

        await ns.notify_changed(registry, entity, "changed")

        notification = {"type": "NOTIFICATION", "message": "changed"}
        assert sent_json(sockets["A"]) == [UPDATE, notification]
        assert sent_json(sockets["B"]) == [UPDATE, notification]
        assert sent_json(sockets["C"]) == []
        assert sent_json(sockets["D"]) == []

    async def test_offline_targets_are_dropped_silently(self, registry):
        sockets = _connect(registry, "B")
        entity = make_entity(creator="A", accepted=("B",))

        await ns.notify_changed(registry, entity, "changed")

        assert len(sent_json(sockets["B"])) == 2


class TestNotifyMembership:
    async def test_affected_user_gets_own_message_once(self, registry):
        sockets = _connect(registry, "A", "B", "C")
        entity = make_entity(creator="A", accepted=("B",), pending=("C",))

        await ns.notify_membership(
            registry, entity, "C", affected_message="you were invited", message="C was invited"
        )

        assert sent_json(sockets["C"]) == [
            UPDATE,
            {"type": "NOTIFICATION", "message": "you were invited"},
        ]
        others = [UPDATE, {"type": "NOTIFICATION", "message": "C was invited"}]
        assert sent_json(sockets["A"]) == others
        assert sent_json(sockets["B"]) == others


class TestNotifyResponse:
    async def test_acting_user_and_accepted_set(self, registry):
        sockets = _connect(registry, "A", "B", "C")
        entity = make_entity(creator="A", accepted=("B",))

        await ns.notify_response(registry, entity, "C", "C declined")

        for identity in ("A", "B", "C"):
            assert sent_json(sockets[identity]) == [
                UPDATE,
                {"type": "NOTIFICATION", "message": "C declined"},
            ]


class TestRefreshPresence:
    async def test_only_live_accepted_collaborators_are_told(
        self, fresh_db, registry, alice, bob, carol
    ):
        task = await entity_service.create_entity(
            fresh_db,
            "task",
            creator_id=alice["id"],
            title="Shared",
            description="",
            label="Work",
            start_date="2024-01-01",
            end_date="2024-01-02",
            collaborator_ids=[bob["id"], carol["id"]],
        )
        await entity_service.respond_to_invitation(
            fresh_db, "task", task["_id"], bob["id"], accept=True
        )
        sockets = _connect(registry, alice["id"], bob["id"], carol["id"])

        reached = await ns.refresh_presence(fresh_db, registry, alice["id"])

        assert reached == 1
        assert sent_json(sockets[bob["id"]]) == [{"type": "COLLABORATOR_UPDATE"}]
        assert sent_json(sockets[alice["id"]]) == []
        assert sent_json(sockets[carol["id"]]) == []
