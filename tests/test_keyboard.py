import msgspec

from vkbot.keyboard import (
    Color,
    Keyboard,
    location_button,
    open_app_button,
    text_button,
    vk_pay_button,
)


def test_text_button_defaults() -> None:
    keyboard = Keyboard(buttons=[[text_button()]])

    assert keyboard.to_json() == (
        '{"buttons":[[{"action":{"type":"text","label":"Button"},'
        '"color":"secondary"}]],"one_time":false}'
    )


def test_text_button_payload_is_json_encoded() -> None:
    button = text_button("Yes", Color.POSITIVE, {"answer": "yes"})

    encoded = msgspec.json.decode(Keyboard(buttons=[[button]]).to_json())

    assert encoded["buttons"][0][0] == {
        "action": {"type": "text", "label": "Yes", "payload": '{"answer":"yes"}'},
        "color": "positive",
    }


def test_empty_payload_is_omitted() -> None:
    button = text_button("No", payload="")

    assert "payload" not in msgspec.json.decode(msgspec.json.encode(button))["action"]


def test_special_buttons_have_no_color() -> None:
    keyboard = Keyboard(
        buttons=[
            [location_button()],
            [vk_pay_button("action=transfer-to-group&group_id=1")],
            [open_app_button(6232540, "Play", "ref", owner_id=-1)],
        ],
        one_time=True,
    )

    encoded = msgspec.json.decode(keyboard.to_json())

    assert encoded["one_time"] is True
    assert encoded["buttons"] == [
        [{"action": {"type": "location"}}],
        [{"action": {"type": "vkpay", "hash": "action=transfer-to-group&group_id=1"}}],
        [
            {
                "action": {
                    "type": "open_app",
                    "app_id": 6232540,
                    "label": "Play",
                    "hash": "ref",
                    "owner_id": -1,
                }
            }
        ],
    ]


def test_open_app_without_owner() -> None:
    button = open_app_button(1, "App", "h")

    assert "owner_id" not in msgspec.json.decode(msgspec.json.encode(button))["action"]


def test_button_payload_matches_exact_router_key() -> None:
    from vkbot.api_models import encode_json

    payload = {"command": "buy", "item": 3}
    button = text_button("Buy", payload=payload)

    assert button.action.payload == encode_json(payload)
