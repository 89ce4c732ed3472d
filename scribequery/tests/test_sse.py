import json

from scribequery.api.sse import DONE_EVENT, format_error, sse_events
from scribequery.chat.base import ChatMessage
from scribequery.chat.service import ChatService, StreamState
from scribequery.errors import StreamAbort
from scribequery.tests.fakes import FakeChatProvider


def _data(frame):
    assert frame.startswith("data: ")
    return json.loads(frame[len("data: "):])


def test_three_fragments_become_three_events_and_done():
    stream = ChatService(FakeChatProvider(["a", "b", "c"])).open_stream([ChatMessage("user", "hi")])
    frames = list(sse_events(stream))

    assert len(frames) == 4
    assert [_data(f) for f in frames[:3]] == [
        {"content": "a", "done": False},
        {"content": "b", "done": False},
        {"content": "c", "done": True},
    ]
    assert frames[-1] == DONE_EVENT
    assert stream.outcome is StreamState.DONE


def test_failure_emits_error_frame_then_done():
    provider = FakeChatProvider(["a", "b"], fail_after=1)
    stream = ChatService(provider).open_stream([ChatMessage("user", "hi")])
    frames = list(sse_events(stream))

    assert _data(frames[0]) == {"content": "a", "done": False}
    assert frames[1].startswith("event: error\n")
    body = json.loads(frames[1].split("data: ", 1)[1])
    assert body["kind"] == "StreamAbort"
    assert frames[2] == DONE_EVENT
    assert stream.outcome is StreamState.ERROR


def test_client_disconnect_closes_stream():
    provider = FakeChatProvider(["a", "b", "c"])
    stream = ChatService(provider).open_stream([ChatMessage("user", "hi")])
    events = sse_events(stream)
    next(events)
    events.close()
    assert provider.closed
    assert stream.outcome is StreamState.ERROR


def test_format_error():
    frame = format_error(StreamAbort("boom"))
    assert frame == 'event: error\ndata: {"error": "boom", "kind": "StreamAbort"}\n\n'
