"""
Tests for frame encoding and incremental decoding.
"""
import sys
from pathlib import Path

import pytest

# Add backend to path for imports (so 'from src.xxx' works)
sys.path.insert(0, str(Path(__file__).parent.parent))


class RecordingCallbacks:
    """Records every callback as (name, argument)."""

    def __init__(self):
        self.calls = []

    def on_token(self, token):
        self.calls.append(("token", token))

    def on_action(self, action):
        self.calls.append(("action", action))

    def on_done(self):
        self.calls.append(("done", None))

    def on_error(self, error):
        self.calls.append(("error", error))

    @property
    def tokens(self):
        return [arg for name, arg in self.calls if name == "token"]

    @property
    def terminals(self):
        return [name for name, _ in self.calls if name != "token"]


def make_decoder():
    from src.client.decoder import FrameDecoder

    callbacks = RecordingCallbacks()
    return FrameDecoder(callbacks), callbacks


def wire(*frames) -> bytes:
    from src.services.streaming.frames import render

    return "".join(render(frame) for frame in frames).encode("utf-8")


class TestEncodeFrame:
    """Tests for the wire layout."""

    def test_layout(self):
        """Test event line, data line and blank-line terminator."""
        from src.services.streaming.frames import encode_frame
        from src.services.streaming.types import EventType

        assert encode_frame(EventType.TEXT, {"token": "Hi"}) == (
            'event: text\ndata: {"token": "Hi"}\n\n'
        )

    def test_payload_stays_on_one_line(self):
        """Test newlines inside the payload are escaped."""
        from src.services.streaming.frames import encode_frame
        from src.services.streaming.types import EventType

        encoded = encode_frame(EventType.TEXT, {"token": "line\n\nbreak"})

        assert encoded.count("\n\n") == 1
        assert encoded.endswith("\n\n")

    def test_error_frame(self):
        """Test error payload carries message and code."""
        from src.services.streaming.frames import error_frame, render

        assert render(error_frame("Something went wrong.", "unknown")) == (
            'event: error\ndata: {"message": "Something went wrong.", "code": "unknown"}\n\n'
        )


class TestParseFrame:
    """Tests for parse_frame."""

    def test_valid_block(self):
        """Test a block yields its event and payload."""
        from src.client.decoder import parse_frame

        assert parse_frame('event: text\ndata: {"token": "a"}') == ("text", {"token": "a"})

    @pytest.mark.parametrize(
        "block",
        [
            'data: {"token": "a"}',
            "event: text",
            "event: text\ndata: {broken",
            ": comment",
        ],
    )
    def test_incomplete_or_malformed_block(self, block):
        """Test missing lines and bad JSON are skipped."""
        from src.client.decoder import parse_frame

        assert parse_frame(block) is None


class TestFrameDecoder:
    """Tests for FrameDecoder."""

    def test_dispatches_in_order(self):
        """Test tokens then the terminal frame."""
        from src.services.streaming.frames import done_frame, text_frame

        decoder, callbacks = make_decoder()

        dispatched = decoder.feed(wire(text_frame("Hel"), text_frame("lo"), done_frame()))

        assert dispatched == 3
        assert callbacks.calls == [("token", "Hel"), ("token", "lo"), ("done", None)]
        assert decoder.terminal_event == "done"
        assert decoder.buffer == ""

    def test_frame_split_across_chunks(self):
        """Test a frame is dispatched only once its delimiter arrives."""
        decoder, callbacks = make_decoder()

        assert decoder.feed(b'event: text\ndata: {"tok') == 0
        assert decoder.buffer == 'event: text\ndata: {"tok'
        assert decoder.feed(b'en": "Hi"}\n') == 0
        assert decoder.feed(b"\n") == 1

        assert callbacks.tokens == ["Hi"]

    def test_every_byte_boundary(self):
        """Test all two-way splits, including inside multi-byte characters."""
        from src.models.directive import Directive
        from src.services.streaming.frames import action_frame, text_frame

        body = wire(
            text_frame("Grüße "),
            text_frame("🎯"),
            action_frame(Directive(text="Ünïcode drill")),
        )

        for split in range(len(body) + 1):
            decoder, callbacks = make_decoder()
            decoder.feed(body[:split])
            decoder.feed(body[split:])
            decoder.finish()

            assert callbacks.tokens == ["Grüße ", "🎯"], f"split at byte {split}"
            assert callbacks.calls[-1] == (
                "action",
                {"type": "start_typing_session", "text": "Ünïcode drill"},
            )
            assert callbacks.terminals == ["action"]

    def test_one_byte_at_a_time(self):
        """Test feeding single bytes yields the same result."""
        from src.services.streaming.frames import done_frame, text_frame

        decoder, callbacks = make_decoder()
        for byte in wire(text_frame("añb"), done_frame()):
            decoder.feed(bytes([byte]))

        assert callbacks.calls == [("token", "añb"), ("done", None)]

    def test_malformed_frames_are_skipped(self):
        """Test a bad frame does not stop later frames."""
        from src.services.streaming.frames import done_frame, text_frame

        decoder, callbacks = make_decoder()
        decoder.feed(
            b"event: text\ndata: {nope\n\n"
            b'data: {"token": "orphan"}\n\n'
            b'event: text\ndata: {"other": 1}\n\n'
            b"event: ping\ndata: {}\n\n"
            + wire(text_frame("ok"), done_frame())
        )

        assert callbacks.calls == [("token", "ok"), ("done", None)]

    def test_error_frame(self):
        """Test error frames reach on_error with their payload."""
        from src.services.streaming.frames import error_frame, text_frame

        decoder, callbacks = make_decoder()
        decoder.feed(wire(text_frame("a"), error_frame("Response took too long. Please try again.", "timeout")))

        assert callbacks.calls[-1] == (
            "error",
            {"message": "Response took too long. Please try again.", "code": "timeout"},
        )
        assert decoder.finish() is False
        assert callbacks.terminals == ["error"]


class TestPrematureClose:
    """Tests for streams that end without a terminal frame."""

    def test_completion_is_synthesized_once(self):
        """Test on_done fires exactly once when the stream just stops."""
        from src.services.streaming.frames import text_frame

        decoder, callbacks = make_decoder()
        decoder.feed(wire(text_frame("partial")))

        assert decoder.finish() is True
        assert decoder.finish() is False

        assert callbacks.calls == [("token", "partial"), ("done", None)]

    def test_incomplete_trailing_frame_is_dropped(self):
        """Test a half-received frame is not dispatched on close."""
        from src.services.streaming.frames import text_frame

        decoder, callbacks = make_decoder()
        decoder.feed(wire(text_frame("a")) + b'event: text\ndata: {"token": "b"}')
        decoder.finish()

        assert callbacks.calls == [("token", "a"), ("done", None)]

    def test_empty_stream(self):
        """Test a stream with no bytes at all still completes."""
        decoder, callbacks = make_decoder()

        assert decoder.finish() is True
        assert callbacks.calls == [("done", None)]
        assert decoder.text_frames == 0

    def test_no_synthesis_after_terminal(self):
        """Test a delivered terminal frame suppresses synthesis."""
        from src.services.streaming.frames import done_frame

        decoder, callbacks = make_decoder()
        decoder.feed(wire(done_frame()))

        assert decoder.finish() is False
        assert callbacks.terminals == ["done"]
