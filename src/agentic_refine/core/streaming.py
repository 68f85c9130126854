"""Incremental separation of reasoning spans from final-answer text.

Models that "think out loud" wrap their reasoning in <think>...</think>.
Fragments arrive in arbitrary slices, so a marker can be split across two
fragments; the decoder holds back the shortest trailing window that could
still complete a marker.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

from agentic_refine.core.constants import THINK_CLOSE, THINK_OPEN, THINK_PREAMBLE_MAX_CHARS
from agentic_refine.core.models import Narration

logger = logging.getLogger(__name__)

REASONING = "reasoning"
FINAL = "final"


@dataclass(frozen=True)
class StreamEvent:
    channel: str  # REASONING or FINAL
    text: str


def _partial_marker_len(buffer: str, marker: str) -> int:
    """Length of the longest buffer suffix that is a proper prefix of marker."""
    for size in range(min(len(marker) - 1, len(buffer)), 0, -1):
        if marker.startswith(buffer[-size:]):
            return size
    return 0


class ReasoningStreamDecoder:
    """State machine NORMAL -> (open) -> REASONING -> (close) -> NORMAL.

    Text at the start of a stream is held as a preamble until the stream
    shows whether a reasoning span follows. An open marker discards the
    preamble, so only text after the reasoning reaches the final channel.
    Any other marker, the end of the stream, or a preamble longer than
    `preamble_limit` releases it as final text.

    A close marker seen while NORMAL is dropped; the text around it stays
    in the final channel.
    """

    def __init__(self, open_marker: str = THINK_OPEN, close_marker: str = THINK_CLOSE,
                 preamble_limit: int = THINK_PREAMBLE_MAX_CHARS):
        self.open_marker = open_marker
        self.close_marker = close_marker
        self.preamble_limit = preamble_limit
        self.in_reasoning = False
        self._in_preamble = True
        self._preamble = ""
        self._buffer = ""
        self._reasoning: List[str] = []
        self._final: List[str] = []

    @property
    def reasoning(self) -> str:
        return "".join(self._reasoning)

    @property
    def final(self) -> str:
        return "".join(self._final)

    def feed(self, fragment: str) -> List[StreamEvent]:
        """Consume one fragment and return the events it completes."""
        events: List[StreamEvent] = []
        if not fragment:
            return events
        self._buffer += fragment

        while self._buffer:
            if self.in_reasoning:
                idx = self._buffer.find(self.close_marker)
                if idx >= 0:
                    self._emit(events, self._buffer[:idx])
                    self._buffer = self._buffer[idx + len(self.close_marker):]
                    self.in_reasoning = False
                    continue
                keep = _partial_marker_len(self._buffer, self.close_marker)
            else:
                open_idx = self._buffer.find(self.open_marker)
                close_idx = self._buffer.find(self.close_marker)
                if close_idx >= 0 and (open_idx < 0 or close_idx < open_idx):
                    logger.debug("Ignoring close marker outside a reasoning span")
                    self._emit(events, self._buffer[:close_idx])
                    self._buffer = self._buffer[close_idx + len(self.close_marker):]
                    if self._in_preamble:
                        self._release_preamble(events)
                    continue
                if open_idx >= 0:
                    self._emit(events, self._buffer[:open_idx])
                    self._buffer = self._buffer[open_idx + len(self.open_marker):]
                    if self._in_preamble:
                        self._discard_preamble()
                    self.in_reasoning = True
                    continue
                keep = max(
                    _partial_marker_len(self._buffer, self.open_marker),
                    _partial_marker_len(self._buffer, self.close_marker),
                )

            cut = len(self._buffer) - keep
            self._emit(events, self._buffer[:cut])
            self._buffer = self._buffer[cut:]
            break

        return events

    def flush(self) -> List[StreamEvent]:
        """Release any held-back text at end of stream."""
        events: List[StreamEvent] = []
        if self._buffer:
            self._emit(events, self._buffer)
            self._buffer = ""
        if self._in_preamble:
            self._release_preamble(events)
        return events

    def _emit(self, events: List[StreamEvent], text: str) -> None:
        if not text:
            return
        if self.in_reasoning:
            self._reasoning.append(text)
            events.append(StreamEvent(channel=REASONING, text=text))
            return
        if self._in_preamble:
            self._preamble += text
            if len(self._preamble) > self.preamble_limit:
                self._release_preamble(events)
            return
        self._final.append(text)
        events.append(StreamEvent(channel=FINAL, text=text))

    def _release_preamble(self, events: List[StreamEvent]) -> None:
        self._in_preamble = False
        text, self._preamble = self._preamble, ""
        self._emit(events, text)

    def _discard_preamble(self) -> None:
        if self._preamble.strip():
            logger.debug(f"Dropping {len(self._preamble)} chars before reasoning span")
        self._in_preamble = False
        self._preamble = ""


def split_reasoning(text: str) -> Tuple[str, str]:
    """Decode a complete response in one pass. Returns (reasoning, final)."""
    decoder = ReasoningStreamDecoder()
    decoder.feed(text or "")
    decoder.flush()
    return decoder.reasoning, decoder.final


def iter_sse_fragments(lines: Iterable) -> Iterator[str]:
    """Turn OpenAI-style `data:` lines into text fragments.

    `delta.reasoning_content` is wrapped in think markers so downstream
    decoding sees a single marked-up stream. `[DONE]` and malformed lines
    are skipped.
    """
    in_think = False
    for raw in lines:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        line = (line or "").strip()
        if not line.startswith("data:"):
            continue
        data = line[5:].strip()
        if not data or data == "[DONE]":
            continue
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed stream line: {data[:80]}")
            continue
        if not isinstance(parsed, dict):
            continue
        choices = parsed.get("choices") or [{}]
        delta = (choices[0] or {}).get("delta") or {}
        reasoning = delta.get("reasoning_content") or ""
        content = delta.get("content") or ""
        if reasoning:
            if not in_think:
                in_think = True
                yield THINK_OPEN
            yield reasoning
        if content:
            if in_think:
                in_think = False
                yield THINK_CLOSE
            yield content
    if in_think:
        yield THINK_CLOSE


def to_narration(response) -> Narration:
    """Normalise a narration response (str or Narration) into separate channels.

    Inline <think> spans in the text are moved to the reasoning channel.
    """
    if isinstance(response, Narration):
        text, reasoning = response.text or "", response.reasoning or ""
    else:
        text, reasoning = str(response or ""), ""
    inline_reasoning, final = split_reasoning(text)
    if inline_reasoning:
        reasoning = f"{reasoning}\n{inline_reasoning}".strip() if reasoning else inline_reasoning
    return Narration(text=final.strip(), reasoning=reasoning.strip())
