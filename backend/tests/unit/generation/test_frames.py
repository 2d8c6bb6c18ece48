"""
Unit Tests for the worker output frame parser
"""
import json

import pytest

from sandboxforge.modules.generation.frames import (
    Frame,
    FrameKind,
    LineBuffer,
    StreamFrameParser,
    classify_line,
    parse_stream,
)


STREAM = (
    "Sandbox created: 11111111-1111-1111-1111-111111111111\n"
    '__CLAUDE_MESSAGE__{"content": "Créons l\'application 🚀"}\n'
    "Installing dependencies...\n"
    '__TOOL_USE__{"name": "Write", "input": {"file_path": "app/page.tsx"}}\n'
    '__TOOL_RESULT__{"name": "Write", "result": "ok"}\n'
    "\n"
    "Preview URL: https://3000-abc.proxy.daytona.work"
).encode("utf-8")


def parse_in_chunks(data: bytes, boundaries) -> list:
    parser = StreamFrameParser()
    frames = []
    start = 0
    for end in list(boundaries) + [len(data)]:
        frames.extend(parser.feed(data[start:end]))
        start = end
    frames.extend(parser.flush())
    return frames


class TestLineBuffer:
    """Tests for line reassembly"""

    def test_holds_incomplete_line(self):
        """Test an unterminated segment is not returned"""
        buffer = LineBuffer()
        assert buffer.feed(b"hello wor") == []
        assert buffer.pending == "hello wor"
        assert buffer.feed(b"ld\nnext") == ["hello world"]
        assert buffer.pending == "next"

    def test_flush_returns_nonempty_tail(self):
        """Test flush emits the trailing segment once"""
        buffer = LineBuffer()
        buffer.feed(b"a\nb")
        assert buffer.flush() == ["b"]
        assert buffer.flush() == []

    def test_flush_empty_tail(self):
        """Test flush after a terminated line returns nothing"""
        buffer = LineBuffer()
        buffer.feed(b"a\n")
        assert buffer.flush() == []

    def test_multibyte_split(self):
        """Test a UTF-8 sequence split across chunks is decoded intact"""
        data = "é🚀\n".encode("utf-8")
        buffer = LineBuffer()
        lines = []
        for i in range(len(data)):
            lines.extend(buffer.feed(data[i:i + 1]))
        assert lines == ["é🚀"]

    def test_accepts_text_chunks(self):
        """Test str chunks are accepted as-is"""
        buffer = LineBuffer()
        assert buffer.feed("one\ntwo\n") == ["one", "two"]


class TestClassifyLine:
    """Tests for single line classification"""

    def test_message_sentinel(self):
        """Test message tag decodes its payload"""
        frame = classify_line('__CLAUDE_MESSAGE__{"content": "hi"}')
        assert frame == Frame(kind=FrameKind.MESSAGE, payload={"content": "hi"})
        assert frame.is_sentinel

    def test_tool_use_sentinel_with_whitespace(self):
        """Test whitespace around the payload is tolerated"""
        frame = classify_line('  __TOOL_USE__  {"name": "Bash", "input": {"command": "ls"}}  ')
        assert frame.kind == FrameKind.TOOL_USE
        assert frame.payload["input"] == {"command": "ls"}

    def test_tool_result_sentinel(self):
        """Test tool result tag is decoded, not turned into text"""
        frame = classify_line('__TOOL_RESULT__{"name": "Read", "result": [1, 2]}')
        assert frame.kind == FrameKind.TOOL_RESULT

    def test_invalid_json_is_dropped(self):
        """Test malformed sentinel payload yields no frame"""
        assert classify_line('__TOOL_USE__{"name": "Write", ') is None

    def test_non_object_payload_is_dropped(self):
        """Test JSON that is not an object yields no frame"""
        assert classify_line('__CLAUDE_MESSAGE__["a", "b"]') is None

    def test_plain_text_trimmed(self):
        """Test plain text is trimmed"""
        assert classify_line("   building...  ") == Frame(kind=FrameKind.TEXT, text="building...")

    @pytest.mark.parametrize("line", ["", "   ", "\t"])
    def test_blank_lines(self, line):
        """Test blank lines produce no frame"""
        assert classify_line(line) is None

    def test_carriage_return_stripped(self):
        """Test CRLF output does not leak into text"""
        assert classify_line("done\r").text == "done"


class TestStreamFrameParser:
    """Tests for the stateful stream parser"""

    def test_frames_in_order(self):
        """Test a complete stream decodes to ordered frames"""
        frames = parse_stream(STREAM)
        assert [f.kind for f in frames] == [
            FrameKind.TEXT,
            FrameKind.MESSAGE,
            FrameKind.TEXT,
            FrameKind.TOOL_USE,
            FrameKind.TOOL_RESULT,
            FrameKind.TEXT,
        ]
        assert frames[1].payload["content"] == "Créons l'application 🚀"
        assert frames[-1].text == "Preview URL: https://3000-abc.proxy.daytona.work"

    def test_chunk_boundary_independence_single_split(self):
        """Test every two-chunk split yields the same frames"""
        expected = parse_stream(STREAM)
        for split in range(1, len(STREAM)):
            assert parse_in_chunks(STREAM, [split]) == expected, f"split at {split}"

    def test_chunk_boundary_independence_byte_by_byte(self):
        """Test feeding one byte at a time yields the same frames"""
        assert parse_in_chunks(STREAM, range(1, len(STREAM))) == parse_stream(STREAM)

    def test_invalid_sentinel_does_not_affect_following_frames(self):
        """Test a broken sentinel line only drops itself"""
        data = b'__TOOL_USE__{broken\nnext line\n__CLAUDE_MESSAGE__{"content": "ok"}\n'
        frames = parse_stream(data)
        assert frames == [
            Frame(kind=FrameKind.TEXT, text="next line"),
            Frame(kind=FrameKind.MESSAGE, payload={"content": "ok"}),
        ]

    def test_replay_is_idempotent(self):
        """Test parsing the same finalized stream twice gives identical frames"""
        assert parse_stream(STREAM) == parse_stream(STREAM)

    def test_parsers_do_not_share_state(self):
        """Test two parsers keep separate buffers"""
        first, second = StreamFrameParser(), StreamFrameParser()
        first.feed(b"from first ")
        assert second.feed(b"from second\n") == [Frame(kind=FrameKind.TEXT, text="from second")]
        assert first.feed(b"done\n") == [Frame(kind=FrameKind.TEXT, text="from first done")]

    def test_tool_result_never_becomes_text(self):
        """Test tool results with any payload stay out of text frames"""
        for result in ["x", 1, None, {"nested": ["y"]}, [1, 2]]:
            line = "__TOOL_RESULT__" + json.dumps({"name": "Bash", "result": result}) + "\n"
            frames = parse_stream(line.encode())
            assert all(f.kind == FrameKind.TOOL_RESULT for f in frames)

    @pytest.mark.asyncio
    async def test_iter_frames_flushes_at_eof(self):
        """Test the async iterator emits the unterminated last line"""
        async def chunks():
            yield b"first\nsec"
            yield b"ond"

        parser = StreamFrameParser()
        frames = [frame async for frame in parser.iter_frames(chunks())]
        assert [f.text for f in frames] == ["first", "second"]
