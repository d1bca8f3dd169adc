from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import PlainTextResponse

from support_bridge.dependencies import get_inbound_relay
from support_bridge.services.inbound_relay import InboundRelay

router = APIRouter()


@router.post("/slack/events", status_code=status.HTTP_200_OK)
async def slack_support_events(
    request: Request,
    x_slack_request_timestamp: Optional[str] = Header(None),
    x_slack_signature: Optional[str] = Header(None),
    relay: InboundRelay = Depends(get_inbound_relay),
):
    """
    Slack Events API endpoint for staff replies.

    The body is read raw because the Slack signature covers the exact bytes
    sent. Responses:
    - 200: event stored or intentionally ignored (plain-text challenge for url_verification)
    - 401: invalid signature
    - 404: no user bound to the thread
    - 409: several users bound to the thread
    - 500: unexpected failure (Slack retries)
    """
    raw_body = await request.body()

    result = await relay.handle(raw_body, x_slack_request_timestamp, x_slack_signature)

    if result.challenge is not None:
        return PlainTextResponse(result.challenge)
    return Response(status_code=status.HTTP_200_OK)
