"""
Gupshup Webhook Service

FastAPI app hosting the Gupshup channel.

Responsibilities:
- Receive Gupshup webhooks and hand them to the channel
- Expose channel health for load balancers
- Accept outbound envelopes from the gateway
"""

import logging
import os
from collections.abc import Mapping
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from basecore.logging import setup_logging
from messaging_gupshup.contracts.config import DEFAULT_WEBHOOK_PATH, GupshupConfig
from messaging_gupshup.contracts.envelope import MessageEnvelope
from messaging_gupshup.contracts.events import DeliveryStatusEvent, DmPolicy, UserEvent
from messaging_gupshup.providers.gupshup.webhook import extract_signature
from messaging_gupshup.routing.account_resolver import coerce_config
from messaging_gupshup.service.channel import ChannelEvents, ClientFactory, GupshupChannel
from messaging_gupshup.settings import load_config

setup_logging()
logger = logging.getLogger(__name__)


def default_events() -> ChannelEvents:
    """Log-only handlers, for running the service without a gateway attached."""

    def on_message(envelope: MessageEnvelope) -> None:
        logger.info(
            "Received message",
            extra={"from": envelope.sender.id, "type": envelope.content.type.value, "message_id": envelope.id},
        )

    def on_status_update(event: DeliveryStatusEvent) -> None:
        logger.info(
            "Message status update",
            extra={"message_id": event.message_id, "status": event.status.value},
        )

    def on_user_event(event: UserEvent) -> None:
        logger.info("User event", extra={"phone": event.phone, "type": event.type.value})

    def on_access_denied(phone: str, policy: DmPolicy) -> None:
        logger.warning("Access denied", extra={"phone": phone, "policy": policy.value})

    return ChannelEvents(
        on_message=on_message,
        on_status_update=on_status_update,
        on_user_event=on_user_event,
        on_access_denied=on_access_denied,
    )


def create_app(
    config: GupshupConfig | Mapping[str, Any] | None = None,
    events: ChannelEvents | None = None,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """
    Create the webhook app.

    Args:
        config: Channel config. Loaded with load_config() if not given.
        events: Gateway callbacks. Defaults to log-only handlers.
        client_factory: Delivery client per account (tests inject stubs).

    The channel is initialized and started in the app lifespan, so a bad
    configuration fails startup.
    """
    config = coerce_config(config) if config is not None else load_config()
    webhook_path = config.webhook_path or DEFAULT_WEBHOOK_PATH

    channel = GupshupChannel(events=events or default_events(), client_factory=client_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        channel.initialize(config)
        await channel.start()
        logger.info("Gupshup webhook service started", extra={"webhook_path": webhook_path})
        yield
        await channel.stop()
        logger.info("Gupshup webhook service stopped")

    app = FastAPI(
        title="Gupshup Webhook",
        description="Receives Gupshup WhatsApp webhooks and sends outbound messages",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.channel = channel

    @app.post(webhook_path)
    async def receive_webhook(request: Request):
        """
        Receive a Gupshup webhook.

        Always answers quickly; processing errors are acknowledged with 200.
        """
        body = await request.body()
        result = await channel.handle_webhook(body, extract_signature(dict(request.headers)))
        return Response(content=result.body, status_code=result.status, media_type="application/json")

    @app.get(f"{webhook_path.rstrip('/')}/health")
    async def health(check_api: bool = False):
        """Channel health. 503 when no account is connected."""
        status = await channel.check_health(check_api=check_api)
        return JSONResponse(status.to_dict(), status_code=200 if status.healthy else 503)

    @app.post("/send")
    async def send(request: Request):
        """Send an outbound envelope ({id, sender, recipient, content, metadata})."""
        try:
            data = await request.json()
            envelope = MessageEnvelope.from_dict(data)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Invalid envelope: {e}")
            raise HTTPException(status_code=400, detail="Invalid envelope")

        result = await channel.send_message(envelope)
        return result.to_dict()

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gupshup_webhook.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
