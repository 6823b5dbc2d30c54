"""Push notifications to live WebSocket connections after a mutation.

Every fan-out runs in two phases:

1. a pure function computes the set of identities to inform from the
   mutated entity document (``creation_targets``, ``mutation_targets`` ...);
2. ``ConnectionRegistry.send_to_identities`` scans the registry and sends the
   frames to whichever of those identities are currently connected.

Delivery is fire-and-forget: identities with no live socket are skipped and
nothing is queued for them.
"""

from __future__ import annotations

import logging

import aiosqlite

from procrastinhate.services import entity_service, ws_messages
from procrastinhate.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Target computation
# ---------------------------------------------------------------------------


def accepted_identities(entity: dict) -> set[str]:
    return {
        collaborator["_id"]
        for collaborator in entity.get("collaborators") or []
        if collaborator["accepted"]
    }


def creation_targets(entity: dict) -> tuple[set[str], str]:
    """Return ``(invitees, creator)`` for a newly created entity.

    Invitees are all listed collaborators except the creator, accepted or not.
    """
    creator = entity["creatorId"]
    invitees = {
        collaborator["_id"]
        for collaborator in entity.get("collaborators") or []
        if collaborator["_id"] != creator
    }
    return invitees, creator


def mutation_targets(entity: dict) -> set[str]:
    """Accepted collaborators plus the creator."""
    return accepted_identities(entity) | {entity["creatorId"]}


def membership_targets(entity: dict, affected: str) -> set[str]:
    """The collaborator being added/removed plus the accepted set."""
    return accepted_identities(entity) | {affected}


def response_targets(entity: dict, acting: str) -> set[str]:
    """The user answering an invitation plus the accepted set."""
    return accepted_identities(entity) | {acting}


def presence_targets(identity: str, tasks: list[dict], projects: list[dict]) -> set[str]:
    """Identities sharing an accepted collaboration with *identity*.

    Only entities *identity* created or accepted count; within those, the
    creator and accepted collaborators are collected. *identity* itself is
    excluded.
    """
    targets: set[str] = set()
    for entity in [*tasks, *projects]:
        members = mutation_targets(entity)
        if identity in members:
            targets |= members
    targets.discard(identity)
    return targets


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


async def push_update(registry: ConnectionRegistry, identities: set[str], message: str) -> int:
    """Send ``UPDATE_DATA`` then ``NOTIFICATION`` to each live identity."""
    return await registry.send_to_identities(
        identities,
        ws_messages.update_data(),
        ws_messages.notification(message=message),
    )


async def notify_created(
    registry: ConnectionRegistry, entity: dict, *, kind: str, creator_name: str
) -> None:
    invitees, creator = creation_targets(entity)
    title = entity["title"]
    invited = await push_update(
        registry,
        invitees,
        f'{creator_name} invited you to collaborate on the {kind} "{title}"',
    )
    await registry.send_to_identities(
        {creator},
        ws_messages.notification(message=f'{kind.capitalize()} "{title}" created'),
    )
    logger.info("Fan-out for new %s %s reached %d invitee sockets", kind, entity["_id"], invited)


async def notify_changed(registry: ConnectionRegistry, entity: dict, message: str) -> None:
    """Update, delete and status-change fan-out."""
    reached = await push_update(registry, mutation_targets(entity), message)
    logger.info("Fan-out for %s reached %d sockets", entity["_id"], reached)


async def notify_membership(
    registry: ConnectionRegistry,
    entity: dict,
    affected: str,
    *,
    affected_message: str,
    message: str,
) -> None:
    """Collaborator added/removed: the affected user gets their own wording."""
    await push_update(registry, {affected}, affected_message)
    others = membership_targets(entity, affected) - {affected}
    await push_update(registry, others, message)


async def notify_response(
    registry: ConnectionRegistry, entity: dict, acting: str, message: str
) -> None:
    """Invitation accepted or declined."""
    await push_update(registry, response_targets(entity, acting), message)


async def refresh_presence(
    db: aiosqlite.Connection, registry: ConnectionRegistry, identity: str
) -> int:
    """Tell live collaborators of *identity* that its online status changed."""
    tasks = await entity_service.list_for_user(db, "task", identity)
    projects = await entity_service.list_for_user(db, "project", identity)
    targets = presence_targets(identity, tasks, projects)
    reached = await registry.send_to_identities(targets, ws_messages.collaborator_update())
    logger.debug("Presence refresh for %s reached %d sockets", identity, reached)
    return reached
