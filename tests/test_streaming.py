import json

import pytest

from agentic_refine.core.models import Narration
from agentic_refine.core.streaming import (
    FINAL,
    REASONING,
    ReasoningStreamDecoder,
    iter_sse_fragments,
    split_reasoning,
    to_narration,
)


def decode(fragments):
    decoder = ReasoningStreamDecoder()
    events = []
    for fragment in fragments:
        events.extend(decoder.feed(fragment))
    events.extend(decoder.flush())
    return decoder, events


def test_single_fragment():
    assert split_reasoning("<think>plan it</think>The answer") == ("plan it", "The answer")


def test_marker_split_across_fragments():
    decoder, _ = decode(["<thi", "nk>reasoning</th", "ink>answer"])
    assert decoder.reasoning == "reasoning"
    assert decoder.final == "answer"


def test_text_before_split_open_marker_is_dropped():
    decoder, events = decode(["he<th", "ink>reasoning</think>answer"])
    assert decoder.reasoning == "reasoning"
    assert decoder.final == "answer"
    assert [(e.channel, e.text) for e in events] == [(REASONING, "reasoning"), (FINAL, "answer")]


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7])
def test_any_fragmentation_gives_same_channels(size):
    text = "intro <think>step one, step two</think> final <think>more</think>end"
    fragments = [text[i:i + size] for i in range(0, len(text), size)]
    decoder, _ = decode(fragments)
    assert (decoder.reasoning, decoder.final) == split_reasoning(text)
    assert decoder.reasoning == "step one, step twomore"
    assert decoder.final == " final end"


def test_events_are_tagged_by_channel():
    _, events = decode(["a<think>b</think>c"])
    assert [(e.channel, e.text) for e in events] == [(REASONING, "b"), (FINAL, "c")]


def test_stray_close_marker_is_dropped():
    assert split_reasoning("one</think>two") == ("", "onetwo")


def test_unterminated_reasoning_is_released_on_flush():
    decoder, _ = decode(["<think>still thinking"])
    assert decoder.in_reasoning is True
    assert decoder.reasoning == "still thinking"
    assert decoder.final == ""


def test_held_back_partial_marker_is_released_on_flush():
    decoder, events = decode(["value <"])
    assert decoder.final == "value <"
    assert [(e.channel, e.text) for e in events] == [(FINAL, "value <")]


def sse(delta):
    return "data: " + json.dumps({"choices": [{"delta": delta}]})


def test_sse_reasoning_deltas_are_wrapped_in_markers():
    lines = [
        sse({"reasoning_content": "Let me "}),
        sse({"reasoning_content": "look."}),
        b"",
        sse({"content": "A red hat."}),
        "data: not-json",
        "data: [DONE]",
    ]
    fragments = list(iter_sse_fragments(lines))
    assert fragments == ["<think>", "Let me ", "look.", "</think>", "A red hat."]
    assert split_reasoning("".join(fragments)) == ("Let me look.", "A red hat.")


def test_sse_closes_reasoning_left_open():
    assert list(iter_sse_fragments([sse({"reasoning_content": "hmm"})])) == ["<think>", "hmm", "</think>"]


def test_to_narration_moves_inline_reasoning():
    narration = to_narration("<think>inner</think>  outer ")
    assert narration == Narration(text="outer", reasoning="inner")

    merged = to_narration(Narration(text="<think>b</think>c", reasoning="a"))
    assert merged.text == "c"
    assert merged.reasoning == "a\nb"


def test_preamble_is_held_until_the_stream_decides():
    decoder = ReasoningStreamDecoder(preamble_limit=10)
    assert decoder.feed("Sure") == []
    events = decoder.feed(", here is a longer answer")
    assert [(e.channel, e.text) for e in events] == [(FINAL, "Sure, here is a longer answer")]
    # Once released, later markers behave normally and nothing is retracted.
    decoder.feed("<think>late</think> tail")
    decoder.flush()
    assert decoder.reasoning == "late"
    assert decoder.final == "Sure, here is a longer answer tail"


def test_plain_answer_without_markers():
    assert split_reasoning("Just an answer.") == ("", "Just an answer.")


def test_stray_close_releases_preamble():
    decoder = ReasoningStreamDecoder()
    events = decoder.feed("one</think>two")
    assert [(e.channel, e.text) for e in events] == [(FINAL, "one"), (FINAL, "two")]
