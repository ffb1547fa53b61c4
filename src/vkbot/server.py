from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

import anyio
import msgspec
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import PlainTextResponse

from .api_models import decode_webhook
from .events import CONFIRMATION_TYPE
from .logging import get_logger

if TYPE_CHECKING:
    from .bot import Bot

logger = get_logger(__name__)


def create_app(bot: Bot, *, run_background: bool = True) -> FastAPI:
    """Callback API endpoint for `bot`.

    Requests are answered right away; dispatching happens after the
    response is sent.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        bot.start()
        if not run_background:
            yield
            return
        async with anyio.create_task_group() as tg:
            await tg.start(bot.run_background)
            logger.info("server.started")
            yield
            tg.cancel_scope.cancel()
        await bot.api.close()

    app = FastAPI(lifespan=lifespan)
    settings = bot.settings

    @app.get("/")
    async def reject_get() -> PlainTextResponse:
        logger.warning("server.get_request")
        return PlainTextResponse("Only POST allowed.", status_code=400)

    @app.post("/")
    async def callback(
        request: Request, background: BackgroundTasks
    ) -> PlainTextResponse:
        raw = await request.body()
        try:
            body = decode_webhook(raw)
        except msgspec.DecodeError as exc:
            logger.warning("server.bad_body", error=str(exc))
            return PlainTextResponse("Invalid request body.", status_code=400)

        if (body.secret or "") != settings.secret:
            logger.warning("server.invalid_secret")
            return PlainTextResponse("Invalid secret key.", status_code=400)

        if str(body.group_id) != settings.group_id:
            logger.warning("server.invalid_group_id", group_id=body.group_id)
            return PlainTextResponse("Invalid group id.", status_code=400)

        if body.type == CONFIRMATION_TYPE:
            logger.info("server.confirmation_sent")
            return PlainTextResponse(settings.confirmation_token)

        background.add_task(bot.router.dispatch, body)
        return PlainTextResponse("ok")

    return app
