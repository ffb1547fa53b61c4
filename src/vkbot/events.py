from __future__ import annotations

import enum


class EventKind(str, enum.Enum):
    # Callback API
    MESSAGE_NEW = "message_new"
    MESSAGE_REPLY = "message_reply"
    MESSAGE_EDIT = "message_edit"
    MESSAGE_TYPING_STATE = "message_typing_state"
    MESSAGE_ALLOW = "message_allow"
    MESSAGE_DENY = "message_deny"

    # Detected while routing `message_new`
    START = "start"
    SERVICE_ACTION = "service_action"

    # Internal
    NO_MATCH = "no_match"
    HANDLER_ERROR = "handler_error"

    def __str__(self) -> str:
        return self.value


CALLBACK_EVENTS: frozenset[str] = frozenset(
    {
        EventKind.MESSAGE_NEW.value,
        EventKind.MESSAGE_REPLY.value,
        EventKind.MESSAGE_EDIT.value,
        EventKind.MESSAGE_TYPING_STATE.value,
        EventKind.MESSAGE_ALLOW.value,
        EventKind.MESSAGE_DENY.value,
    }
)

# Never arrive as webhooks of their own; synthesized by the router.
INTERNAL_EVENTS: frozenset[str] = frozenset(
    {
        EventKind.START.value,
        EventKind.SERVICE_ACTION.value,
        EventKind.NO_MATCH.value,
        EventKind.HANDLER_ERROR.value,
    }
)

ALL_EVENTS: tuple[str, ...] = tuple(kind.value for kind in EventKind)

# Nobody on the other side is willing to receive a reply.
DENY_EVENTS: frozenset[str] = frozenset({EventKind.MESSAGE_DENY.value})

CONFIRMATION_TYPE = "confirmation"


def event_name(kind: EventKind | str) -> str:
    if isinstance(kind, EventKind):
        return kind.value
    return str(kind)
