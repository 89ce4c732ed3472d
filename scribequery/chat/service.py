from __future__ import annotations

import enum
import logging
from typing import Callable, Iterator, List, Optional

from scribequery.chat.base import ChatMessage, ChatProvider, ChatResponse, ChatStreamDelta
from scribequery.config import Settings
from scribequery.errors import BackendUnavailable, ProviderDisabled, ScribeQueryError, StreamAbort, ValidationError

logger = logging.getLogger(__name__)


def get_chat_provider(settings: Settings) -> ChatProvider:
    from scribequery.chat.openai_provider import OpenAIChatProvider

    return OpenAIChatProvider(settings, provider=settings.chat_provider)


class StreamState(str, enum.Enum):
    INIT = "init"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CLOSED = "closed"


class ChatStream:
    """A single streamed completion.

    Iterating yields one ``ChatStreamDelta`` per provider fragment. The last
    fragment is held back one step so it can be delivered with ``done=True``;
    an empty completion yields a single empty ``done`` delta.

    ``state`` walks INIT -> STREAMING -> DONE | ERROR -> CLOSED and
    ``outcome`` keeps DONE or ERROR once the stream is closed. Closing the
    iterator early (caller cancellation) ends in ERROR.
    """

    def __init__(self, provider: ChatProvider, messages: List[ChatMessage]) -> None:
        self._provider = provider
        self._messages = messages
        self.state = StreamState.INIT
        self.outcome: Optional[StreamState] = None
        self.transitions: List[StreamState] = [StreamState.INIT]
        self.delta_count = 0
        self._started = False

    def __iter__(self) -> Iterator[ChatStreamDelta]:
        if self._started:
            raise RuntimeError("chat stream can only be consumed once")
        self._started = True
        return self._run()

    def _run(self) -> Iterator[ChatStreamDelta]:
        fragments: Iterator[str] = iter(())
        pending: Optional[str] = None
        failure: Optional[Exception] = None
        try:
            try:
                fragments = iter(self._provider.stream(self._messages))
            except ScribeQueryError:
                raise
            except Exception as exc:
                raise StreamAbort(f"chat stream failed: {exc}") from exc

            while True:
                try:
                    fragment = next(fragments)
                except StopIteration:
                    break
                except ScribeQueryError:
                    raise
                except Exception as exc:
                    failure = exc
                    break

                if pending is not None:
                    yield self._emit(pending, done=False)
                elif self.state is StreamState.INIT:
                    self._move(StreamState.STREAMING)
                pending = fragment

            if failure is not None:
                # Fragments that arrived before the failure are still delivered
                if pending is not None:
                    yield self._emit(pending, done=False)
                logger.error("chat stream failed after %d deltas: %s", self.delta_count, failure)
                raise StreamAbort(f"chat stream failed: {failure}") from failure

            if self.state is StreamState.INIT:
                self._move(StreamState.STREAMING)
            yield self._emit(pending or "", done=True)
            self._move(StreamState.DONE)
        except BaseException:
            # Includes GeneratorExit when the consumer stops early
            self._move(StreamState.ERROR)
            raise
        finally:
            close = getattr(fragments, "close", None)
            if close is not None:
                close()
            self.outcome = self.state
            self._move(StreamState.CLOSED)

    def _emit(self, content: str, done: bool) -> ChatStreamDelta:
        self.delta_count += 1
        return ChatStreamDelta(content=content, done=done)

    def _move(self, state: StreamState) -> None:
        if self.state is state:
            return
        self.state = state
        self.transitions.append(state)


class ChatService:
    def __init__(self, provider: ChatProvider) -> None:
        self.provider = provider

    def chat(self, messages: List[ChatMessage]) -> ChatResponse:
        self._validate(messages)
        try:
            response = self.provider.complete(messages)
        except ScribeQueryError:
            raise
        except Exception as exc:
            logger.error("chat completion failed: %s", exc)
            raise BackendUnavailable("chat", None, exc) from exc
        logger.debug("chat completion finished", extra={"data": {"finish_reason": response.finish_reason}})
        return response

    def open_stream(self, messages: List[ChatMessage]) -> ChatStream:
        self._validate(messages)
        return ChatStream(self.provider, messages)

    def chat_stream(self, messages: List[ChatMessage], on_delta: Callable[[ChatStreamDelta], None]) -> ChatStream:
        """Relay a streamed completion to ``on_delta``.

        An exception raised by ``on_delta`` stops generation and is re-raised
        unchanged. Returns the finished stream for inspection.
        """
        stream = self.open_stream(messages)
        deltas = iter(stream)
        try:
            for delta in deltas:
                on_delta(delta)
        finally:
            deltas.close()
        return stream

    def _validate(self, messages: List[ChatMessage]) -> None:
        if not messages:
            raise ValidationError("at least one message is required")
        for message in messages:
            if not message.role or not message.role.strip():
                raise ValidationError("message role is required")
        if not self.provider.is_enabled():
            raise ProviderDisabled("chat provider is not enabled")
