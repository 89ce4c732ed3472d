"""Server-sent event framing for streamed chat completions."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Iterable, Iterator

from scribequery.api.errors import error_body
from scribequery.chat.base import ChatStreamDelta

logger = logging.getLogger(__name__)

DONE_EVENT = "data: [DONE]\n\n"


def format_data(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def format_error(exc: BaseException) -> str:
    return f"event: error\ndata: {json.dumps(error_body(exc))}\n\n"


def sse_events(deltas: Iterable[ChatStreamDelta]) -> Iterator[str]:
    """Render deltas as SSE frames.

    Each delta becomes one ``data:`` event. A failure mid-stream becomes a
    single ``event: error`` frame; the terminal ``[DONE]`` frame is always
    sent last.
    """
    iterator = iter(deltas)
    try:
        for delta in iterator:
            yield format_data(asdict(delta))
    except Exception as exc:
        logger.warning("chat stream aborted: %s", exc)
        yield format_error(exc)
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
    yield DONE_EVENT
