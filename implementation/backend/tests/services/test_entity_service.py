"""Tests for entity_service: tasks, projects, collaborators and invitations."""

from __future__ import annotations

import pytest

from procrastinhate.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from procrastinhate.services import archive_service, entity_service


async def _create(db, kind, creator, *, invite=(), **overrides):
    fields = {
        "title": "Write report",
        "description": "Quarterly",
        "label": "Work",
        "start_date": "2024-01-01",
        "end_date": "2024-01-31",
        "collaborator_ids": list(invite),
    }
    fields.update(overrides)
    return await entity_service.create_entity(db, kind, creator_id=creator["id"], **fields)


class TestCreate:
    async def test_creator_is_accepted_and_invitees_pending(self, fresh_db, alice, bob):
        task = await _create(fresh_db, "task", alice, invite=[bob["id"], alice["id"]])

        assert task["creatorId"] == alice["id"]
        assert task["collaborators"] == [
            {"_id": alice["id"], "accepted": True},
            {"_id": bob["id"], "accepted": False},
        ]
        assert task["completed"] is False
        assert task["dates"]["start"] == "2024-01-01"

    async def test_task_checklist_and_project(self, fresh_db, alice):
        project = await _create(fresh_db, "project", alice)
        task = await _create(
            fresh_db, "task", alice, checklist=["draft", "review"], project_id=project["_id"]
        )

        assert task["checklist"] == [
            {"id": 1, "item": "draft", "completed": False},
            {"id": 2, "item": "review", "completed": False},
        ]
        assert task["project"] == project["_id"]
        refreshed = await entity_service.require_entity(fresh_db, "project", project["_id"])
        assert refreshed["tasks"] == [task["_id"]]

    async def test_unknown_invitee(self, fresh_db, alice):
        with pytest.raises(NotFoundError, match="User not found"):
            await _create(fresh_db, "task", alice, invite=["ghost"])

    async def test_unknown_project(self, fresh_db, alice):
        with pytest.raises(NotFoundError, match="Project not found"):
            await _create(fresh_db, "task", alice, project_id="ghost")

    async def test_end_before_start(self, fresh_db, alice):
        with pytest.raises(InvalidRequestError):
            await _create(fresh_db, "task", alice, start_date="2024-02-01", end_date="2024-01-01")

    async def test_unknown_kind(self, fresh_db, alice):
        with pytest.raises(InvalidRequestError, match="Unknown type"):
            await _create(fresh_db, "epic", alice)


class TestQueries:
    async def test_list_for_user_excludes_pending(self, fresh_db, alice, bob):
        task = await _create(fresh_db, "task", alice, invite=[bob["id"]])

        assert await entity_service.list_for_user(fresh_db, "task", bob["id"]) == []

        await entity_service.respond_to_invitation(
            fresh_db, "task", task["_id"], bob["id"], accept=True
        )
        listed = await entity_service.list_for_user(fresh_db, "task", bob["id"])
        assert [doc["_id"] for doc in listed] == [task["_id"]]

    async def test_invitations_span_both_kinds(self, fresh_db, alice, bob):
        task = await _create(fresh_db, "task", alice, invite=[bob["id"]])
        project = await _create(fresh_db, "project", alice, invite=[bob["id"]])

        invitations = await entity_service.list_invitations(fresh_db, bob["id"])

        assert {(doc["type"], doc["_id"]) for doc in invitations} == {
            ("task", task["_id"]),
            ("project", project["_id"]),
        }
        assert await entity_service.list_invitations(fresh_db, alice["id"]) == []


class TestMembership:
    async def test_member_checks(self, fresh_db, alice, bob, carol):
        task = await _create(fresh_db, "task", alice, invite=[bob["id"]])

        entity_service.ensure_member(task, alice["id"])
        entity_service.ensure_creator(task, alice["id"])
        with pytest.raises(ForbiddenError):
            entity_service.ensure_member(task, bob["id"])
        with pytest.raises(ForbiddenError):
            entity_service.ensure_creator(task, carol["id"])


class TestUpdate:
    async def test_update_only_given_fields(self, fresh_db, alice):
        task = await _create(fresh_db, "task", alice, checklist=["a"])

        updated = await entity_service.update_entity(
            fresh_db, "task", task["_id"], {"title": "New", "checklist": ["x", "y"]}
        )

        assert updated["title"] == "New"
        assert updated["description"] == "Quarterly"
        assert [item["item"] for item in updated["checklist"]] == ["x", "y"]

    async def test_update_checks_dates_against_stored_values(self, fresh_db, alice):
        task = await _create(fresh_db, "task", alice)
        with pytest.raises(InvalidRequestError):
            await entity_service.update_entity(
                fresh_db, "task", task["_id"], {"end_date": "2023-12-01"}
            )

    async def test_status_and_checklist_item(self, fresh_db, alice):
        task = await _create(fresh_db, "task", alice, checklist=["a", "b"])

        done = await entity_service.set_completed(fresh_db, "task", task["_id"], True)
        assert done["completed"] is True

        ticked = await entity_service.set_checklist_item(fresh_db, task["_id"], 2, True)
        assert [item["completed"] for item in ticked["checklist"]] == [False, True]

        with pytest.raises(NotFoundError, match="Checklist item not found"):
            await entity_service.set_checklist_item(fresh_db, task["_id"], 9, True)


class TestDelete:
    async def test_delete_archives_document(self, fresh_db, alice):
        task = await _create(fresh_db, "task", alice)

        deleted = await entity_service.delete_entity(fresh_db, "task", task["_id"])

        assert deleted == task
        assert await entity_service.get_entity(fresh_db, "task", task["_id"]) is None
        archives = await archive_service.list_archives(fresh_db)
        assert [(a["type"], a["data"]["_id"]) for a in archives] == [("task", task["_id"])]

    async def test_deleting_project_removes_its_tasks(self, fresh_db, alice):
        project = await _create(fresh_db, "project", alice)
        task = await _create(fresh_db, "task", alice, project_id=project["_id"])

        await entity_service.delete_entity(fresh_db, "project", project["_id"])

        assert await entity_service.get_entity(fresh_db, "task", task["_id"]) is None
        types = sorted(a["type"] for a in await archive_service.list_archives(fresh_db))
        assert types == ["project", "task"]

    async def test_restore_round_trip(self, fresh_db, alice, bob):
        task = await _create(fresh_db, "task", alice, invite=[bob["id"]], checklist=["a"])
        await entity_service.delete_entity(fresh_db, "task", task["_id"])

        await entity_service.restore_entity(fresh_db, "task", task)

        restored = await entity_service.require_entity(fresh_db, "task", task["_id"])
        assert restored["collaborators"] == task["collaborators"]
        assert restored["checklist"] == task["checklist"]
        with pytest.raises(ConflictError):
            await entity_service.restore_entity(fresh_db, "task", task)

    async def test_remove_user_everywhere(self, fresh_db, alice, bob):
        own = await _create(fresh_db, "task", bob)
        shared = await _create(fresh_db, "project", alice, invite=[bob["id"]])
        await entity_service.respond_to_invitation(
            fresh_db, "project", shared["_id"], bob["id"], accept=True
        )

        archived = await entity_service.remove_user_everywhere(fresh_db, bob["id"])

        assert archived == 1
        assert await entity_service.get_entity(fresh_db, "task", own["_id"]) is None
        project = await entity_service.require_entity(fresh_db, "project", shared["_id"])
        assert [c["_id"] for c in project["collaborators"]] == [alice["id"]]


class TestCollaborators:
    async def test_add_and_remove(self, fresh_db, alice, bob):
        task = await _create(fresh_db, "task", alice)

        added = await entity_service.add_collaborator(fresh_db, "task", task["_id"], bob["id"])
        assert {"_id": bob["id"], "accepted": False} in added["collaborators"]

        with pytest.raises(ConflictError, match="User already invited"):
            await entity_service.add_collaborator(fresh_db, "task", task["_id"], bob["id"])

        removed = await entity_service.remove_collaborator(
            fresh_db, "task", task["_id"], bob["id"]
        )
        assert [c["_id"] for c in removed["collaborators"]] == [alice["id"]]

        with pytest.raises(NotFoundError, match="Collaborator not found"):
            await entity_service.remove_collaborator(fresh_db, "task", task["_id"], bob["id"])

    async def test_creator_cannot_be_removed(self, fresh_db, alice):
        task = await _create(fresh_db, "task", alice)
        with pytest.raises(InvalidRequestError, match="The creator cannot be removed"):
            await entity_service.remove_collaborator(fresh_db, "task", task["_id"], alice["id"])


class TestInvitations:
    async def test_decline_removes_collaborator(self, fresh_db, alice, bob):
        task = await _create(fresh_db, "task", alice, invite=[bob["id"]])

        after = await entity_service.respond_to_invitation(
            fresh_db, "task", task["_id"], bob["id"], accept=False
        )

        assert [c["_id"] for c in after["collaborators"]] == [alice["id"]]

    async def test_error_cases(self, fresh_db, alice, bob, carol):
        task = await _create(fresh_db, "task", alice, invite=[bob["id"]])

        with pytest.raises(NotFoundError, match="Invitation not found"):
            await entity_service.respond_to_invitation(
                fresh_db, "task", "ghost", bob["id"], accept=True
            )
        with pytest.raises(InvalidRequestError, match="User not invited"):
            await entity_service.respond_to_invitation(
                fresh_db, "task", task["_id"], carol["id"], accept=True
            )
        with pytest.raises(InvalidRequestError, match="User already accepted"):
            await entity_service.respond_to_invitation(
                fresh_db, "task", task["_id"], alice["id"], accept=True
            )
