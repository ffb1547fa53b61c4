from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .events import DENY_EVENTS, EventKind, event_name
from .keyboard import Keyboard
from .logging import get_logger

if TYPE_CHECKING:
    from .api import VkApi

logger = get_logger(__name__)


class Context:
    """Per-event reply buffer handed to every handler.

    `raw_event` is the `object` of the Callback API request. `message` is
    the incoming text; for command handlers it has the command stripped.
    """

    def __init__(
        self,
        api: VkApi,
        event: EventKind | str,
        raw_event: dict[str, Any],
        message: str | None = None,
    ) -> None:
        self.api = api
        self.event = event_name(event)
        self.raw_event = raw_event
        self.message = message or ""
        self._auto_send = True
        self.clear()

    @property
    def target_id(self) -> Any:
        return self._target_id

    @property
    def reply_text(self) -> str:
        return self._reply_text

    @property
    def attachments(self) -> tuple[str, ...]:
        return tuple(self._attachments)

    @property
    def keyboard_json(self) -> str:
        return self._keyboard

    def set_target_id(self, target_id: int | str) -> None:
        self._target_id = target_id

    def set_text(self, text: str) -> None:
        self._reply_text = text

    def add_attachment(
        self,
        kind: str,
        owner_id: int | str,
        resource_id: int | str,
        access_key: str | None = None,
    ) -> None:
        token = f"{kind}{owner_id}_{resource_id}"
        if access_key:
            token = f"{token}_{access_key}"
        self._attachments.append(token)

    def set_keyboard(self, keyboard: Keyboard) -> None:
        self._keyboard = keyboard.to_json()

    def remove_keyboard(self) -> None:
        self.set_keyboard(Keyboard())

    def suppress_auto_send(self) -> None:
        self._auto_send = False

    @property
    def needs_auto_send(self) -> bool:
        return self._auto_send

    async def flush(self) -> bool:
        """Send the composed reply. Returns whether a send was attempted and succeeded."""
        if self.event in DENY_EVENTS:
            logger.warning(
                "context.send_skipped",
                reason=f"{self.event} event",
                target_id=self._target_id,
            )
            return False
        if not self._reply_text and not self._attachments:
            logger.warning(
                "context.send_skipped",
                reason="text or attachment is required",
                target_id=self._target_id,
            )
            return False
        return await self.api.send(
            self._target_id,
            self._reply_text,
            ",".join(self._attachments),
            self._keyboard,
        )

    def clear(self) -> None:
        """Drop the composed reply and re-derive the target from the event."""
        self._reply_text = ""
        self._attachments: list[str] = []
        self._keyboard = ""
        self._target_id = _derive_target_id(self.event, self.raw_event)


def _derive_target_id(event: str, raw_event: dict[str, Any]) -> Any:
    if event == EventKind.MESSAGE_ALLOW.value:
        return raw_event.get("user_id")
    if event == EventKind.MESSAGE_TYPING_STATE.value:
        return raw_event.get("from_id")
    return raw_event.get("peer_id")
