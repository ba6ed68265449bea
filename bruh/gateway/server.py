"""
Gateway Server

FastAPI server receiving Slack events and answering mentions.

Endpoints:
- POST /slack/events: Slack Events API endpoint
- GET /health: Health check

Pipeline (per mention, in a background task):
1. Verify signature and drop redelivered event ids
2. Gather context with the escalation engine
3. Synthesize an answer
4. Reply in the mention's thread
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..common.config import BruhConfig, load_config
from ..common.llm_client import LLMClient
from ..common.slack_client import SlackClient
from ..escalation import (
    ContentFilterPipeline,
    EscalationController,
    PermalinkBuilder,
    Query,
    QueryRefiner,
    SufficiencyOracle,
)
from .event_cache import EventDeduplicator
from .handler import MentionEvent, SlackEventHandler
from .identity import BotIdentity
from .synthesizer import AnswerSynthesizer

logger = logging.getLogger("bruh.gateway.server")

ERROR_REPLY = "Sorry, I encountered an error processing your request."


# Global state
config: Optional[BruhConfig] = None
slack_client: Optional[SlackClient] = None
llm_client: Optional[LLMClient] = None
bot_identity: Optional[BotIdentity] = None
event_handler: Optional[SlackEventHandler] = None
event_cache: Optional[EventDeduplicator] = None
synthesizer: Optional[AnswerSynthesizer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, slack_client, llm_client, bot_identity, event_handler, event_cache, synthesizer

    logger.info("Starting up...")
    load_dotenv()
    config = load_config()

    slack_client = SlackClient.from_config(config)
    llm_client = LLMClient.from_config(config)
    if llm_client.is_available:
        logger.info("LLM client ready (%s: %s)", llm_client.provider, llm_client.model)
    else:
        logger.warning("LLM client not available; sufficiency checks will escalate every level")

    bot_identity = BotIdentity(slack_client, display_name=config.slack.bot_display_name)
    event_handler = SlackEventHandler(signing_secret=config.slack.signing_secret)
    event_cache = EventDeduplicator(ttl_seconds=config.gateway.event_ttl_seconds)
    synthesizer = AnswerSynthesizer(llm_client)

    logger.info("Ready to receive events")

    yield

    logger.info("Shutting down...")
    await slack_client.close()


app = FastAPI(
    title="Bruh",
    description="Slack assistant answering questions from conversation history",
    version="0.1.0",
    lifespan=lifespan
)


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    initialized: bool
    llm_available: bool
    recent_events: int


# =============================================================================
# Background Tasks
# =============================================================================

async def build_controller() -> EscalationController:
    """Escalation controller wired to the live Slack and LLM clients"""
    bot_user_id = await bot_identity.get_user_id()
    return EscalationController(
        slack=slack_client,
        oracle=SufficiencyOracle(llm_client, char_budget=config.escalation.oracle_char_budget),
        refiner=QueryRefiner(llm_client),
        filters=ContentFilterPipeline(bot_user_id=bot_user_id, bot_name=bot_identity.display_name),
        permalinks=PermalinkBuilder(slack_client, workspace_domain=config.slack.workspace_domain),
        config=config.escalation,
    )


async def process_mention(event: MentionEvent):
    """Answer one mention in its thread"""
    logger.info("Received mention in channel %s: %s", event.channel, event.query)

    try:
        controller = await build_controller()
        result = await controller.execute(
            Query(text=event.query, channel_id=event.channel, thread_ts=event.thread_ts)
        )
        logger.info(
            "Escalation reached %s (%d iteration(s), %d message(s))",
            result.level_reached.name, result.iterations_used, result.message_count,
        )
        answer = await asyncio.to_thread(synthesizer.synthesize, event.query, result)
        await slack_client.post_message(event.channel, answer.answer, thread_ts=event.reply_thread_ts)
    except Exception:
        logger.exception("Error handling app mention")
        try:
            await slack_client.post_message(event.channel, ERROR_REPLY, thread_ts=event.reply_thread_ts)
        except Exception:
            logger.exception("Error sending error message")


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        service="bruh",
        initialized=event_handler is not None,
        llm_available=llm_client.is_available if llm_client else False,
        recent_events=len(event_cache) if event_cache is not None else 0,
    )


@app.post("/slack/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    x_slack_signature: Optional[str] = Header(None),
    x_slack_request_timestamp: Optional[str] = Header(None)
):
    """
    Handle Slack webhook events.

    Always acknowledges quickly; the answer is produced in the background.
    """
    if event_handler is None or event_cache is None:
        raise HTTPException(status_code=503, detail="Handler not initialized")

    body = await request.body()

    if not event_handler.verify_signature(
        body,
        x_slack_signature or "",
        x_slack_request_timestamp or ""
    ):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if event_handler.is_url_verification(data):
        return JSONResponse({"challenge": event_handler.get_challenge(data)})

    event = event_handler.parse_event(data)
    if event is None:
        return JSONResponse({"ok": True})

    if not event_cache.check_and_add(event.event_id):
        logger.info("Ignoring duplicate event %s", event.event_id)
        return JSONResponse({"ok": True})

    background_tasks.add_task(process_mention, event)
    return JSONResponse({"ok": True})


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the gateway server"""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()
    port = load_config().gateway.port

    logger.info("Starting server on port %d", port)
    uvicorn.run(
        "bruh.gateway.server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
