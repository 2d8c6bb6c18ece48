"""
Worker Output Frames

Turns the raw stdout of a generation worker into typed frames.

Wire format (one unit per line):
    __CLAUDE_MESSAGE__{"content": "..."}          -> MESSAGE frame
    __TOOL_USE__{"name": "...", "input": {...}}   -> TOOL_USE frame
    __TOOL_RESULT__{"name": "...", "result": ...} -> TOOL_RESULT frame
    anything else, non-empty after trim           -> TEXT frame

Line reassembly is chunk-boundary independent: the same byte stream produces
the same frames no matter how it was split, including splits inside a
multi-byte UTF-8 sequence.
"""

import codecs
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Union

Chunk = Union[bytes, str]

MESSAGE_TAG = "__CLAUDE_MESSAGE__"
TOOL_USE_TAG = "__TOOL_USE__"
TOOL_RESULT_TAG = "__TOOL_RESULT__"


class FrameKind(str, Enum):
    """Kinds of decoded frames"""
    MESSAGE = "message"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    TEXT = "text"


# Checked in order; the first tag found on a line wins
SENTINEL_TAGS = (
    (MESSAGE_TAG, FrameKind.MESSAGE),
    (TOOL_USE_TAG, FrameKind.TOOL_USE),
    (TOOL_RESULT_TAG, FrameKind.TOOL_RESULT),
)


@dataclass(frozen=True)
class Frame:
    """One decoded line of worker output"""
    kind: FrameKind
    text: str = ""
    payload: Optional[Dict[str, Any]] = None

    @property
    def is_sentinel(self) -> bool:
        return self.kind != FrameKind.TEXT


class LineBuffer:
    """
    Reassembles complete lines from arbitrarily split chunks.

    Keeps the trailing, not yet terminated segment until more input arrives
    or the stream ends.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._residual = ""

    @property
    def pending(self) -> str:
        return self._residual

    def feed(self, chunk: Chunk) -> List[str]:
        """Append a chunk and return every line it completed"""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        if not chunk:
            return []

        self._residual += chunk
        *lines, self._residual = self._residual.split("\n")
        return lines

    def flush(self) -> List[str]:
        """End of stream: return the residual segment if it is non-empty"""
        tail = self._residual + self._decoder.decode(b"", final=True)
        self._residual = ""
        self._decoder.reset()
        return [tail] if tail else []


def classify_line(line: str) -> Optional[Frame]:
    """
    Decode one complete line into a frame.

    Returns None for blank lines and for sentinel lines whose payload is not a
    JSON object; malformed instrumentation output is dropped, never raised.
    """
    for tag, kind in SENTINEL_TAGS:
        index = line.find(tag)
        if index == -1:
            continue

        raw_payload = line[index + len(tag):].strip()
        try:
            payload = json.loads(raw_payload)
        except (json.JSONDecodeError, ValueError):
            return None
        if not isinstance(payload, dict):
            return None
        return Frame(kind=kind, payload=payload)

    text = line.strip()
    if not text:
        return None
    return Frame(kind=FrameKind.TEXT, text=text)


class StreamFrameParser:
    """
    Stateful decoder from raw worker stdout chunks to frames.

    Each parser owns its buffer, so one instance serves exactly one stream.

    Example:
        parser = StreamFrameParser()
        frames = parser.feed(b'__TOOL_USE__{"name": "Write", "in')
        frames += parser.feed(b'put": {}}\\nhello\\n')
        frames += parser.flush()
    """

    def __init__(self, encoding: str = "utf-8"):
        self._lines = LineBuffer(encoding)

    def feed(self, chunk: Chunk) -> List[Frame]:
        """Consume a chunk; return frames for every line it completed"""
        return self._decode(self._lines.feed(chunk))

    def flush(self) -> List[Frame]:
        """Consume the end of the stream"""
        return self._decode(self._lines.flush())

    async def iter_frames(self, chunks: AsyncIterable[Chunk]) -> AsyncIterator[Frame]:
        """Lazily decode an async chunk source into frames, flushing at EOF"""
        async for chunk in chunks:
            for frame in self.feed(chunk):
                yield frame
        for frame in self.flush():
            yield frame

    @staticmethod
    def _decode(lines: List[str]) -> List[Frame]:
        frames = []
        for line in lines:
            frame = classify_line(line)
            if frame is not None:
                frames.append(frame)
        return frames


def parse_stream(data: Chunk) -> List[Frame]:
    """Decode a complete, finalized output stream in one pass"""
    parser = StreamFrameParser()
    return parser.feed(data) + parser.flush()
