from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from scribequery.api.deps import Services, get_services
from scribequery.api.sse import sse_events
from scribequery.models import ChatMessageRequest, ChatResponseBody

router = APIRouter(prefix="/chats", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("", response_model=ChatResponseBody)
@router.post("/", response_model=ChatResponseBody, include_in_schema=False)
def chat(payload: ChatMessageRequest, services: Services = Depends(get_services)):
    response = services.chat.chat([payload.to_message()])
    return ChatResponseBody(**asdict(response))


@router.post("/stream")
def chat_stream(payload: ChatMessageRequest, services: Services = Depends(get_services)):
    # Validation and provider checks fail here, before the stream opens
    stream = services.chat.open_stream([payload.to_message()])
    return StreamingResponse(sse_events(stream), media_type="text/event-stream", headers=SSE_HEADERS)
