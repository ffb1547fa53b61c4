from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    "ApiErrorBody",
    "TokenPermission",
    "TokenPermissions",
    "WebhookBody",
    "decode_json_or_none",
    "decode_webhook",
    "encode_json",
]


class WebhookBody(msgspec.Struct, forbid_unknown_fields=False):
    type: str
    object: dict[str, Any] = msgspec.field(default_factory=dict)
    group_id: int | str | None = None
    secret: str | None = None
    event_id: str | None = None


class ApiErrorBody(msgspec.Struct, forbid_unknown_fields=False):
    error_code: int
    error_msg: str = ""


class TokenPermission(msgspec.Struct, forbid_unknown_fields=False):
    name: str
    setting: int = 0


class TokenPermissions(msgspec.Struct, forbid_unknown_fields=False):
    mask: int = 0
    permissions: list[TokenPermission] = msgspec.field(default_factory=list)


_encoder = msgspec.json.Encoder()


def encode_json(value: Any) -> str:
    """Compact JSON, keys in insertion order (the form VK echoes back)."""
    return _encoder.encode(value).decode("utf-8")


def decode_json_or_none(text: str | bytes | None) -> Any | None:
    if not text:
        return None
    try:
        return msgspec.json.decode(text)
    except msgspec.DecodeError:
        return None


def decode_webhook(raw: bytes | str | dict[str, Any]) -> WebhookBody:
    if isinstance(raw, dict):
        return msgspec.convert(raw, type=WebhookBody)
    return msgspec.json.decode(raw, type=WebhookBody)
