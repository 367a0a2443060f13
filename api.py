"""
HTTP entry point: Telegram webhooks for every configured bot plus a cron trigger.

    uvicorn api:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from aiogram.types import Update
from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse

from svitlo.config import CRON_SECRET, LOG_DIR, VERSION, WEBHOOK_BASE_URL
from svitlo.logging_config import setup_logging
from svitlo.tasks import make_notifier, run_cron_alerts

from bezsvitla.bot import bot as bot_module
from bezsvitla.data_source import get_data_source

logger = setup_logging("svitlo_api", LOG_DIR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await bot_module.open_store()
    app.state.bots = bot_module.build_bots()
    if WEBHOOK_BASE_URL:
        for token, bot in app.state.bots.items():
            url = f"{WEBHOOK_BASE_URL.rstrip('/')}/webhook/{token}"
            try:
                await bot.set_webhook(url, drop_pending_updates=False)
                await bot_module.set_default_commands(bot)
            except Exception as e:
                logger.error(f"Failed to set webhook for bot {bot.id}: {e}")
    logger.info(f"API started, {len(app.state.bots)} bot(s), version {VERSION}")
    try:
        yield
    finally:
        for bot in app.state.bots.values():
            await bot.session.close()
        await bot_module.close_store()


app = FastAPI(title="Svitlo Bot API", version=VERSION, lifespan=lifespan)


# --- Endpoints ---

@app.get("/", response_class=PlainTextResponse)
async def root():
    return f"Bot worker is running. VERSION={VERSION}"


@app.get("/version", response_class=PlainTextResponse)
async def version():
    return VERSION


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "service": "Svitlo Bot", "version": VERSION}


@app.post("/webhook/{token}")
async def telegram_webhook(token: str, request: Request):
    bot = request.app.state.bots.get(token)
    if bot is None:
        raise HTTPException(status_code=403, detail="Invalid token")

    try:
        payload = await request.json()
        update = Update.model_validate(payload, context={"bot": bot})
        await bot_module.dp.feed_update(bot, update)
    except Exception as e:
        logger.error(f"Webhook update failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Worker error")
    return PlainTextResponse("OK")


@app.post("/cron")
async def cron(request: Request, x_cron_secret: Optional[str] = Header(default=None)):
    """Runs one alert pass over every subscription."""
    if CRON_SECRET and x_cron_secret != CRON_SECRET:
        raise HTTPException(status_code=403, detail="Forbidden")

    store = bot_module.store
    if store is None:
        raise HTTPException(status_code=503, detail="Store is not ready")

    try:
        result = await run_cron_alerts(store, get_data_source(store=store), make_notifier(request.app.state.bots))
    except Exception as e:
        logger.error(f"Cron pass failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Cron error")
    return {"processed": result.processed, "sent": result.sent}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
