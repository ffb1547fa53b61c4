from __future__ import annotations

import enum
from typing import Any

import msgspec

from .api_models import encode_json

__all__ = [
    "Button",
    "Color",
    "Keyboard",
    "location_button",
    "open_app_button",
    "text_button",
    "vk_pay_button",
]


class Color(str, enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    NEGATIVE = "negative"
    POSITIVE = "positive"


class TextAction(msgspec.Struct, tag_field="type", tag="text", omit_defaults=True):
    label: str
    payload: str | None = None


class LocationAction(
    msgspec.Struct, tag_field="type", tag="location", omit_defaults=True
):
    payload: str | None = None


class VkPayAction(msgspec.Struct, tag_field="type", tag="vkpay", omit_defaults=True):
    hash: str


class OpenAppAction(
    msgspec.Struct, tag_field="type", tag="open_app", omit_defaults=True
):
    app_id: int
    label: str
    hash: str
    owner_id: int | None = None


Action = TextAction | LocationAction | VkPayAction | OpenAppAction


class Button(msgspec.Struct, omit_defaults=True):
    action: Action
    color: Color | None = None


class Keyboard(msgspec.Struct):
    """Reply keyboard. VK allows at most 10 rows of 4 buttons."""

    buttons: list[list[Button]] = msgspec.field(default_factory=list)
    one_time: bool = False

    def to_json(self) -> str:
        return encode_json(self)


def _encode_payload(payload: Any) -> str | None:
    if payload is None or payload == "":
        return None
    return encode_json(payload)


def text_button(
    label: str = "Button",
    color: Color = Color.SECONDARY,
    payload: Any = None,
) -> Button:
    """A button that sends its label; `payload` arrives JSON-encoded."""
    return Button(
        action=TextAction(label=str(label), payload=_encode_payload(payload)),
        color=color,
    )


def location_button(payload: Any = None) -> Button:
    return Button(action=LocationAction(payload=_encode_payload(payload)))


def vk_pay_button(hash: str) -> Button:
    return Button(action=VkPayAction(hash=hash))


def open_app_button(
    app_id: int,
    label: str,
    hash: str,
    owner_id: int | None = None,
) -> Button:
    return Button(
        action=OpenAppAction(
            app_id=app_id, label=label, hash=hash, owner_id=owner_id or None
        )
    )
