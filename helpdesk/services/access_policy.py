"""
Ticket access policy.

WHAT: Pure predicates deciding who may read, change and reassign a
ticket, and the list/stats scope for each role.

WHY: Every route and bulk action asks the same questions. Keeping the
answers in side-effect-free functions over (actor, ticket) makes the
rules testable without a database or a request.

Rules:
- admins (and super admins) read and change every ticket
- agents read and change tickets assigned to them
- customers read tickets they created and never change them
- only admins reassign, even when the agent could otherwise change the ticket
"""

import logging
from typing import Optional, Protocol

from helpdesk.core.exceptions import AuthorizationError
from helpdesk.dao.ticket import TicketFilter
from helpdesk.models.user import UserRole


logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


class Actor(Protocol):
    id: int
    role: UserRole


class OwnedTicket(Protocol):
    id: int
    assignee_id: Optional[int]
    created_by_id: int


def is_admin(actor: Actor) -> bool:
    return actor.role in ADMIN_ROLES


def can_read(actor: Actor, ticket: OwnedTicket) -> bool:
    if is_admin(actor):
        return True
    if actor.role == UserRole.AGENT:
        return ticket.assignee_id == actor.id
    if actor.role == UserRole.CUSTOMER:
        return ticket.created_by_id == actor.id
    return False


def can_mutate(actor: Actor, ticket: OwnedTicket) -> bool:
    if is_admin(actor):
        return True
    return actor.role == UserRole.AGENT and ticket.assignee_id == actor.id


def can_reassign(actor: Actor) -> bool:
    return is_admin(actor)


def can_post_internal_note(actor: Actor) -> bool:
    return actor.role != UserRole.CUSTOMER


def _deny(actor: Actor, message: str, ticket: Optional[OwnedTicket] = None) -> AuthorizationError:
    ticket_id = ticket.id if ticket is not None else None
    logger.warning("Denied %s (user %s, role %s, ticket %s)", message, actor.id, actor.role.value, ticket_id)
    return AuthorizationError(message, user_id=actor.id, ticket_id=ticket_id)


def ensure_can_read(actor: Actor, ticket: OwnedTicket) -> None:
    """
    Raises:
        AuthorizationError: If the actor may not read the ticket
    """
    if not can_read(actor, ticket):
        raise _deny(actor, "You do not have access to this ticket", ticket)


def ensure_can_mutate(actor: Actor, ticket: OwnedTicket) -> None:
    """
    Raises:
        AuthorizationError: If the actor may not change the ticket
    """
    if not can_mutate(actor, ticket):
        raise _deny(actor, "You do not have permission to update this ticket", ticket)


def ensure_can_reassign(actor: Actor) -> None:
    """
    Raises:
        AuthorizationError: If the actor is not an admin
    """
    if not can_reassign(actor):
        raise _deny(actor, "Only administrators can assign tickets")


def ensure_admin(actor: Actor) -> None:
    if not is_admin(actor):
        raise _deny(actor, "Administrator access required")


def scope_filter(actor: Actor, ticket_filter: TicketFilter) -> TicketFilter:
    """
    Narrow a list/stats filter to what the actor may see.

    Listing never rejects: agents get their assigned tickets, customers
    the tickets they created, admins everything the caller filters allow.
    """
    if is_admin(actor):
        return ticket_filter.narrowed(scope_assignee_id=None, scope_created_by_id=None)
    if actor.role == UserRole.AGENT:
        return ticket_filter.narrowed(scope_assignee_id=actor.id, scope_created_by_id=None)
    if actor.role == UserRole.CUSTOMER:
        return ticket_filter.narrowed(scope_assignee_id=None, scope_created_by_id=actor.id)
    # Unknown roles see nothing: an id that can never match.
    return ticket_filter.narrowed(scope_assignee_id=-1, scope_created_by_id=-1)
