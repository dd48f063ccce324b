"""
streamproto - Frame Protocol Tests

Verifies:
- Wire block format of every event kind
- Deterministic encoding
- Incremental decoding of split streams
"""

import pytest

from streamproto.streaming.errors import FrameDecodeError
from streamproto.streaming.protocol import (
    EventKind,
    Frame,
    FrameParser,
    decode_frames,
    encode_frame,
    encode_frame_bytes,
)


# ============================================================
# Encoder Tests
# ============================================================

class TestEncodeFrame:
    """Test the canonical wire block."""

    def test_text_frame(self):
        """Text data should be a JSON string literal."""
        frame = Frame(correlation_id="1", event=EventKind.TEXT, data="Hello")

        assert encode_frame(frame) == 'id: 1\nevent: text\ndata: "Hello"\n\n'

    def test_stop_frame(self):
        frame = Frame(correlation_id="1", event=EventKind.STOP, data="stop")

        assert encode_frame(frame) == 'id: 1\nevent: stop\ndata: "stop"\n\n'

    def test_tool_calls_frame_is_compact(self):
        """JSON should have no whitespace between tokens."""
        frame = Frame(
            correlation_id="2",
            event=EventKind.TOOL_CALLS,
            data=[{"function": {"name": "tool1", "arguments": "{}"}, "id": "call_1", "index": 0, "type": "function"}],
        )

        assert encode_frame(frame) == (
            "id: 2\n"
            "event: tool_calls\n"
            'data: [{"function":{"name":"tool1","arguments":"{}"},"id":"call_1","index":0,"type":"function"}]\n\n'
        )

    def test_null_data(self):
        frame = Frame(correlation_id="3", event=EventKind.DATA, data={"content": None})

        assert encode_frame(frame) == 'id: 3\nevent: data\ndata: {"content":null}\n\n'

    def test_non_ascii_is_kept(self):
        """Non-ASCII text should not be escaped."""
        frame = Frame(correlation_id="gen-1", event=EventKind.TEXT, data="杭州天气")

        assert encode_frame(frame) == 'id: gen-1\nevent: text\ndata: "杭州天气"\n\n'

    def test_newlines_stay_on_one_data_line(self):
        frame = Frame(correlation_id="1", event=EventKind.TEXT, data="line one\nline two")

        block = encode_frame(frame)

        assert block.count("\n") == 4
        assert 'data: "line one\\nline two"' in block

    def test_encoding_is_idempotent(self):
        """Encoding the same frame twice should be byte-identical."""
        frame = Frame(
            correlation_id="x",
            event=EventKind.ERROR,
            data={"body": {"message": "m"}, "type": "StreamChunkError"},
        )

        assert encode_frame(frame) == encode_frame(frame)
        assert encode_frame_bytes(frame) == encode_frame_bytes(frame)

    def test_bytes_are_utf8(self):
        frame = Frame(correlation_id="1", event=EventKind.TEXT, data="é")

        assert encode_frame_bytes(frame) == encode_frame(frame).encode("utf-8")

    def test_to_sse_matches_encoder(self):
        frame = Frame(correlation_id="1", event=EventKind.DATA, data={"total_tokens": 3})

        assert frame.to_sse() == encode_frame(frame)

    def test_line_break_in_id_rejected(self):
        """An id with a line break would split the block into two frames."""
        frame = Frame(correlation_id="1\nevent: stop", event=EventKind.TEXT, data="a")

        with pytest.raises(ValueError, match="line break"):
            encode_frame(frame)

    def test_closed_event_set(self):
        assert {kind.value for kind in EventKind} == {"text", "tool_calls", "stop", "data", "error"}

    def test_content_events(self):
        """Only text, tool_calls and data frames carry model output."""
        assert Frame("1", EventKind.TEXT, "a").is_content
        assert Frame("1", EventKind.TOOL_CALLS, []).is_content
        assert Frame("1", EventKind.DATA, {}).is_content
        assert not Frame("1", EventKind.STOP, "stop").is_content
        assert not Frame("1", EventKind.ERROR, {}).is_content


# ============================================================
# Decoder Tests
# ============================================================

class TestFrameParser:
    """Test incremental decoding."""

    def test_decodes_encoded_stream(self):
        frames = [
            Frame("1", EventKind.TEXT, "Hello"),
            Frame("1", EventKind.TOOL_CALLS, [{"index": 0, "type": "function", "function": {"arguments": '{"a"'}}]),
            Frame("1", EventKind.STOP, "tool_calls"),
        ]
        body = "".join(encode_frame(f) for f in frames)

        assert decode_frames(body) == frames

    def test_split_at_every_character(self):
        """Blocks split anywhere should still decode once complete."""
        body = encode_frame(Frame("gen-1", EventKind.TEXT, "杭州")) + encode_frame(Frame("gen-1", EventKind.STOP, "stop"))
        parser = FrameParser()

        decoded = []
        for char in body:
            decoded.extend(parser.feed(char))

        assert [f.event for f in decoded] == [EventKind.TEXT, EventKind.STOP]
        assert decoded[0].data == "杭州"
        assert parser.flush() == []

    def test_incomplete_block_waits(self):
        parser = FrameParser()

        assert parser.feed('id: 1\nevent: text\ndata: "Hi"\n') == []
        assert parser.feed("\n") == [Frame("1", EventKind.TEXT, "Hi")]

    def test_flush_parses_trailing_block(self):
        parser = FrameParser()
        parser.feed('id: 1\nevent: stop\ndata: "stop"')

        assert parser.flush() == [Frame("1", EventKind.STOP, "stop")]

    def test_crlf_line_endings(self):
        body = 'id: 1\r\nevent: text\r\ndata: "Hi"\r\n\r\n'

        assert decode_frames(body) == [Frame("1", EventKind.TEXT, "Hi")]

    def test_comment_lines_ignored(self):
        body = ': keep-alive\nid: 1\nevent: text\ndata: "Hi"\n\n'

        assert decode_frames(body) == [Frame("1", EventKind.TEXT, "Hi")]

    def test_missing_id_defaults_to_empty(self):
        assert decode_frames('event: stop\ndata: "stop"\n\n') == [Frame("", EventKind.STOP, "stop")]

    def test_unknown_event_raises(self):
        with pytest.raises(FrameDecodeError, match="Unknown event kind"):
            decode_frames('id: 1\nevent: bogus\ndata: 1\n\n')

    def test_missing_event_raises(self):
        with pytest.raises(FrameDecodeError, match="missing an event"):
            decode_frames('id: 1\ndata: 1\n\n')

    def test_missing_data_raises(self):
        with pytest.raises(FrameDecodeError, match="missing a data"):
            decode_frames('id: 1\nevent: text\n\n')

    def test_invalid_json_raises(self):
        with pytest.raises(FrameDecodeError) as exc_info:
            decode_frames('id: 1\nevent: text\ndata: {not json\n\n')

        assert "data: {not json" in exc_info.value.block
