"""
Channel router - polling endpoint for lightweight real-time messaging.

    GET  /api/channel?id=<channel>&action=connect|poll|status[&after=<message id>]
    POST /api/channel  {"action": "send|subscribe|unsubscribe", "channelId": ..., "data": ...}

Responses are fixed envelopes `{status, ..., timestamp}`; failures return
`{error, message, timestamp}` with 400 for unusable request bodies and 500 for
anything unexpected. Unlike the rest of the API these envelopes are built
here rather than by the exception handlers.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from telehealth_svc.core.datetime_utils import utc_now_iso
from telehealth_svc.core.dependencies import get_channel_hub
from telehealth_svc.core.exceptions import ChannelRequestError
from telehealth_svc.services.channel_service import ChannelHub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/channel", tags=["Channel"])


def _envelope(status: str, **fields: Any) -> Dict[str, Any]:
    return {"status": status, **fields, "timestamp": utc_now_iso()}


def _failure(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "timestamp": utc_now_iso()},
    )


@router.get("", summary="Connect to, poll or inspect a channel")
async def channel_get(
    channel_id: Optional[str] = Query(None, alias="id"),
    action: Optional[str] = Query(None),
    after: Optional[str] = Query(None, description="Poll only messages after this message id"),
    hub: ChannelHub = Depends(get_channel_hub),
):
    logger.debug("Channel GET request", extra={"channel_id": channel_id, "action": action})
    try:
        if action == "connect":
            if channel_id:
                hub.connect(channel_id)
            return _envelope("connected", channelId=channel_id)
        if action == "poll":
            return _envelope("ok", messages=hub.poll(channel_id, after=after))
        if action == "status":
            return _envelope("active", channelId=channel_id, **hub.status(channel_id))
        return _envelope("ok", message="Channel endpoint is active")
    except Exception as e:
        logger.exception("Channel GET failed", extra={"channel_id": channel_id, "action": action})
        return _failure(500, "Internal server error", str(e) or "Unknown error")


def _require_channel_id(body: Dict[str, Any]) -> str:
    channel_id = body.get("channelId")
    if not isinstance(channel_id, str) or not channel_id:
        raise ChannelRequestError("channelId is required")
    return channel_id


@router.post("", summary="Send to, subscribe to or unsubscribe from a channel")
async def channel_post(request: Request, hub: ChannelHub = Depends(get_channel_hub)):
    try:
        body = await request.json()
        if not isinstance(body, dict):
            raise ChannelRequestError("Request body must be a JSON object")

        action = body.get("action")
        data = body.get("data")
        logger.debug("Channel POST request", extra={"action": action})

        if action == "send":
            channel_id = _require_channel_id(body)
            message = hub.send(channel_id, data)
            return _envelope("sent", channelId=channel_id, messageId=message["id"])
        if action == "subscribe":
            channel_id = _require_channel_id(body)
            return _envelope("subscribed", channelId=channel_id, subscriptionId=hub.subscribe(channel_id))
        if action == "unsubscribe":
            channel_id = _require_channel_id(body)
            subscription_id = data.get("subscriptionId") if isinstance(data, dict) else None
            hub.unsubscribe(channel_id, subscription_id)
            return _envelope("unsubscribed", channelId=channel_id)
        return _envelope("received", data=data)
    except ChannelRequestError as e:
        logger.warning("Channel POST rejected", extra={"error": e.detail})
        return _failure(400, "Bad request", e.detail)
    except ValueError:
        logger.warning("Channel POST with unparseable body")
        return _failure(400, "Bad request", "Invalid request body")
