from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from .api_models import WebhookBody, decode_json_or_none, decode_webhook, encode_json
from .context import Context
from .events import ALL_EVENTS, EventKind, event_name
from .logging import get_logger

if TYPE_CHECKING:
    from .api import VkApi
    from .stats import Stats

logger = get_logger(__name__)

Handler = Callable[[Context], Awaitable[None] | None]
PayloadPredicate = Callable[[str, Any], bool]


class RouterError(Exception):
    pass


class UnknownEventError(RouterError):
    pass


class DuplicateHandlerError(RouterError):
    pass


@dataclass(frozen=True, slots=True)
class PayloadHandler:
    predicate: PayloadPredicate
    callback: Handler


@dataclass(frozen=True, slots=True)
class CommandHandler:
    command: str
    description: str
    callback: Handler
    pattern: re.Pattern[str]


@dataclass(frozen=True, slots=True)
class RegexHandler:
    pattern: re.Pattern[str]
    callback: Handler


@dataclass(frozen=True, slots=True)
class HandlerCounts:
    on: int
    cmd: int
    regex: int
    payload: int

    @property
    def total(self) -> int:
        return self.on + self.cmd + self.regex + self.payload


def command_pattern(command: str, *, prefix: str, group_id: str) -> re.Pattern[str]:
    """Matches `command` at the start of a message.

    An optional `[club<id>|...]` mention may come first, and the prefixed
    command may repeat (`/help /help`).
    """
    mention = rf"( *\[club{re.escape(group_id)}\|[^\]]*\])?"
    return re.compile(
        rf"^{mention}( *{re.escape(prefix)}{re.escape(command)})+",
        re.IGNORECASE,
    )


async def _invoke(callback: Handler, ctx: Context) -> None:
    result = callback(ctx)
    if inspect.isawaitable(result):
        await result


class Router:
    """Resolves every incoming event to exactly one handler.

    For `message_new` the first match wins, in this order:

    1. `service_action` event handler, if the message is a service action
    2. `start` event handler, if the payload is `{"command": "start"}`
    3. exact payload handlers
    4. dynamic payload handlers, in registration order
    5. command handlers, in registration order
    6. regex handlers, in registration order
    7. `no_match` event handler

    Every other event goes to its named event handler.
    """

    def __init__(
        self,
        api: VkApi,
        stats: Stats,
        *,
        cmd_prefix: str = "",
        group_id: int | str = "",
        event_warnings: bool = True,
    ) -> None:
        self.api = api
        self.stats = stats
        self.cmd_prefix = cmd_prefix
        self._group_id = str(group_id)
        self._event_warnings = True
        if not event_warnings:
            self.no_event_warnings()
        self._locked = False
        self._help_message = ""
        self._event_handlers: dict[str, Handler | None] = {
            name: None for name in ALL_EVENTS
        }
        self._exact_payload_handlers: dict[str, Handler] = {}
        self._dynamic_payload_handlers: list[PayloadHandler] = []
        self._command_handlers: list[CommandHandler] = []
        self._regex_handlers: list[RegexHandler] = []
        self._event_handlers[EventKind.MESSAGE_NEW.value] = self._handle_message_new

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def command_handlers(self) -> tuple[CommandHandler, ...]:
        return tuple(self._command_handlers)

    @property
    def regex_handlers(self) -> tuple[RegexHandler, ...]:
        return tuple(self._regex_handlers)

    @property
    def dynamic_payload_handlers(self) -> tuple[PayloadHandler, ...]:
        return tuple(self._dynamic_payload_handlers)

    @property
    def exact_payloads(self) -> tuple[str, ...]:
        return tuple(self._exact_payload_handlers)

    def no_event_warnings(self) -> None:
        self._event_warnings = False
        logger.info("router.event_warnings_disabled")

    def _check_locked(self) -> bool:
        if self._locked:
            logger.warning(
                "router.locked",
                detail="Registering a handler while the bot is running is not allowed",
            )
        return self._locked

    def register_event(self, kind: EventKind | str, callback: Handler) -> None:
        if self._check_locked():
            return
        name = event_name(kind)
        if name not in self._event_handlers:
            raise UnknownEventError(
                f"Cannot register a handler: unknown event type {name!r}"
            )
        if name == EventKind.MESSAGE_NEW.value:
            raise DuplicateHandlerError(
                "Cannot register a handler: handler for the 'message_new' event "
                "is defined internally"
            )
        if self._event_handlers[name] is not None:
            raise DuplicateHandlerError(
                f"Cannot register a handler: duplicate handler for event {name!r}"
            )
        self._event_handlers[name] = callback

    def register_payload(
        self, payload: PayloadPredicate | Any, callback: Handler
    ) -> None:
        """Register an exact payload, or a `(raw, parsed_or_none) -> bool` predicate.

        Exact payloads are tried before any predicate.
        """
        if self._check_locked():
            return
        if callable(payload):
            self._dynamic_payload_handlers.append(
                PayloadHandler(predicate=payload, callback=callback)
            )
            return
        key = encode_json(payload)
        if key in self._exact_payload_handlers:
            raise DuplicateHandlerError(
                f"Cannot register a handler: duplicate handler for payload {key}"
            )
        self._exact_payload_handlers[key] = callback

    def register_command(
        self, command: str, callback: Handler, description: str = ""
    ) -> None:
        if self._check_locked():
            return
        self._command_handlers.append(
            CommandHandler(
                command=command,
                description=description,
                callback=callback,
                pattern=command_pattern(
                    command, prefix=self.cmd_prefix, group_id=self._group_id
                ),
            )
        )

    def register_regex(self, pattern: re.Pattern[str] | str, callback: Handler) -> None:
        if self._check_locked():
            return
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        self._regex_handlers.append(RegexHandler(pattern=compiled, callback=callback))

    def lock(self) -> None:
        """Freeze registration and build the help message."""
        self._locked = True
        self._help_message = self._build_help_message()

    def help(self) -> str:
        return self._help_message

    def handler_counts(self) -> HandlerCounts:
        named = sum(
            1
            for name, handler in self._event_handlers.items()
            if handler is not None and name != EventKind.MESSAGE_NEW.value
        )
        return HandlerCounts(
            on=named,
            cmd=len(self._command_handlers),
            regex=len(self._regex_handlers),
            payload=len(self._exact_payload_handlers)
            + len(self._dynamic_payload_handlers),
        )

    def _build_help_message(self) -> str:
        lines = [""]
        for handler in self._command_handlers:
            entry = f"{self.cmd_prefix}{handler.command}"
            if handler.description:
                entry = f"{entry} - {handler.description}"
            lines.append(entry)
        return "\n".join(lines) + "\n"

    async def dispatch(self, body: WebhookBody | dict[str, Any]) -> None:
        """Handle one Callback API request body."""
        if not isinstance(body, WebhookBody):
            body = decode_webhook(body)
        raw_event = body.object
        text = raw_event.get("text")
        ctx = Context(
            self.api,
            body.type,
            raw_event,
            text if isinstance(text, str) else "",
        )
        await self._emit(body.type, ctx)

    async def _emit(self, name: str, ctx: Context) -> None:
        self.stats.record_received(name)
        handler = self._event_handlers.get(name)
        if handler is None:
            if self._event_warnings:
                logger.warning("router.no_handler", event_type=name)
            return
        try:
            await _invoke(handler, ctx)
            if ctx.needs_auto_send and name != EventKind.MESSAGE_NEW.value:
                await ctx.flush()
        except Exception as exc:
            logger.warning(
                "router.handler_failed",
                event_type=name,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            if name != EventKind.HANDLER_ERROR.value:
                await self._emit(EventKind.HANDLER_ERROR.value, ctx)

    async def _handle_message_new(self, ctx: Context) -> None:
        if ctx.raw_event.get("action"):
            await self._emit(EventKind.SERVICE_ACTION.value, ctx)
            return

        handled = (
            await self._try_payload(ctx)
            or await self._try_command(ctx)
            or await self._try_regex(ctx)
        )
        if not handled:
            logger.warning(
                "router.no_match",
                message=ctx.message.replace("\n", "\\n"),
            )
            await self._emit(EventKind.NO_MATCH.value, ctx)
            return

        if ctx.needs_auto_send:
            await ctx.flush()

    async def _try_payload(self, ctx: Context) -> bool:
        payload = ctx.raw_event.get("payload")
        if not payload or not isinstance(payload, str):
            return False
        parsed = decode_json_or_none(payload)

        if isinstance(parsed, dict) and parsed.get("command") == "start":
            await self._emit(EventKind.START.value, ctx)
            # already sent by the `start` event
            ctx.suppress_auto_send()
            return True

        exact = self._exact_payload_handlers.get(payload)
        if exact is not None:
            await _invoke(exact, ctx)
            return True

        for handler in self._dynamic_payload_handlers:
            if handler.predicate(payload, parsed):
                await _invoke(handler.callback, ctx)
                return True
        return False

    async def _try_command(self, ctx: Context) -> bool:
        for handler in self._command_handlers:
            match = handler.pattern.match(ctx.message)
            if match is None:
                continue
            ctx.message = ctx.message[match.end() :].lstrip()
            await _invoke(handler.callback, ctx)
            return True
        return False

    async def _try_regex(self, ctx: Context) -> bool:
        for handler in self._regex_handlers:
            if handler.pattern.search(ctx.message):
                await _invoke(handler.callback, ctx)
                return True
        return False
