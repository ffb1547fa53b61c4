import logging

from vkbot.logging import (
    RedactTokenFilter,
    redact_token_processor,
    redact_tokens,
    setup_logging,
)

_LEGACY_TOKEN = "0123456789abcdef" * 5 + "01234"


def _record(msg: str, *args: object) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=msg,
        args=args,
        exc_info=None,
    )


class TestRedactTokenFilter:
    def test_redacts_access_token_param(self) -> None:
        record = _record(
            "POST https://api.vk.com/method/messages.send?access_token=vk1.a.abc&v=5.95"
        )

        RedactTokenFilter().filter(record)

        assert "vk1.a.abc" not in record.getMessage()
        assert "access_token=[REDACTED]&v=5.95" in record.getMessage()

    def test_redacts_bare_token(self) -> None:
        record = _record("Token is vk1.a.SECRET_value-123")

        RedactTokenFilter().filter(record)

        assert "SECRET" not in record.getMessage()
        assert "[REDACTED_TOKEN]" in record.getMessage()

    def test_redacts_legacy_token(self) -> None:
        assert len(_LEGACY_TOKEN) == 85
        record = _record(f"token {_LEGACY_TOKEN} loaded")

        RedactTokenFilter().filter(record)

        assert record.getMessage() == "token [REDACTED_TOKEN] loaded"

    def test_no_token_unchanged(self) -> None:
        record = _record("This is a normal message")

        result = RedactTokenFilter().filter(record)

        assert result is True
        assert record.getMessage() == "This is a normal message"

    def test_handles_format_args(self) -> None:
        record = _record("Token: %s%s", "vk1.a.", "abcdef")

        RedactTokenFilter().filter(record)

        assert "abcdef" not in record.getMessage()

    def test_broken_format_args_pass_through(self) -> None:
        record = _record("%d items", "many")

        assert RedactTokenFilter().filter(record) is True


def test_redact_processor() -> None:
    event = {"event": "calling with access_token=abc", "method": "users.get"}

    result = redact_token_processor(None, "info", event)

    assert result["event"] == "calling with access_token=[REDACTED]"
    assert result["method"] == "users.get"
    assert redact_tokens("nothing here") == "nothing here"


class TestSetupLogging:
    def test_setup_debug_mode(self) -> None:
        setup_logging(debug=True, cache_logger_on_first_use=False)
        root = logging.getLogger()
        assert root.level == logging.DEBUG

    def test_setup_info_mode(self) -> None:
        setup_logging(debug=False, cache_logger_on_first_use=False)
        root = logging.getLogger()
        assert root.level == logging.INFO

    def test_silences_noisy_loggers(self) -> None:
        setup_logging(cache_logger_on_first_use=False)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
