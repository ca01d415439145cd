import json

import pytest

from dsegrader.errors import ExtractionError
from dsegrader.feedback.extraction import (
    extract,
    extract_array,
    extract_quoted_strings,
    recover_feedback_objects,
    recover_scores,
    try_extract,
)


def test_bare_json_object_is_parsed_directly() -> None:
    result = try_extract('{"content": 5, "language": 4}')

    assert result.ok
    assert result.strategy == "direct"
    assert result.value == {"content": 5, "language": 4}


def test_chat_completion_envelope_is_unwrapped() -> None:
    envelope = {
        "object": "chat.completion",
        "choices": [{"message": {"role": "assistant", "content": '```json\n{"content": 6}\n```'}}],
    }

    result = try_extract(json.dumps(envelope))

    assert result.value == {"content": 6}
    assert result.strategy == "code_block"


def test_fenced_code_block_is_found_inside_chatter() -> None:
    reply = 'Here are the scores you asked for:\n```json\n{"content": 5, "language": 4}\n```\nHope that helps!'

    assert extract(reply) == {"content": 5, "language": 4}


def test_untagged_fence_works_too() -> None:
    assert extract('```\n{"overall": 14}\n```') == {"overall": 14}


def test_boundaries_strategy_takes_outermost_braces() -> None:
    reply = 'Sure! {"content": 5, "nested": {"a": 1}} Let me know if you need more.'

    result = try_extract(reply)

    assert result.strategy == "boundaries"
    assert result.value == {"content": 5, "nested": {"a": 1}}


def test_array_shape_uses_square_brackets() -> None:
    reply = 'The segments are: ["I went to school", "it was raining"] as requested.'

    assert extract_array(reply) == ["I went to school", "it was raining"]


def test_object_requested_but_only_array_present_is_an_error() -> None:
    result = try_extract('["a", "b"]', "object")

    assert not result.ok
    assert "object" in result.error


@pytest.mark.parametrize("reply", ["", "   ", "no json here at all", "{broken: json"])
def test_extract_raises_when_nothing_parses(reply: str) -> None:
    with pytest.raises(ExtractionError) as excinfo:
        extract(reply)

    assert excinfo.value.raw == reply


def test_extract_quoted_strings_recovers_segments_from_broken_arrays() -> None:
    reply = 'Segments: "I go to school yesterday", "The weather are nice", and more'

    assert extract_quoted_strings(reply) == ["I go to school yesterday", "The weather are nice"]


def test_recover_feedback_objects_from_truncated_array() -> None:
    reply = (
        '[{"type": "Grammar", "segment": "I go yesterday", "suggestion": "Use the past tense here."},'
        ' {"category": "Spelling", "segment": "recieve", "suggestion": "Spell it receive."},'
        ' {"type": "Style", "segment": "cut off'
    )

    recovered = recover_feedback_objects(reply)

    assert recovered == [
        {"type": "Grammar", "segment": "I go yesterday", "suggestion": "Use the past tense here."},
        {"type": "Spelling", "segment": "recieve", "suggestion": "Spell it receive."},
    ]


def test_recover_scores_reads_surviving_fields() -> None:
    reply = 'Scores: {"content": 5, "language": 4.5, "organization": 6, "overall": 15 (sum)'

    assert recover_scores(reply) == {"content": 5.0, "language": 4.5, "organization": 6.0, "overall": 15.0}
    assert recover_scores("") == {}


def test_scores_and_feedback_artifact_survives_each_wrapper() -> None:
    artifact = {"scores": {"content": 70, "language": 65, "organization": 60, "overall": 65}, "feedbackItems": []}
    body = json.dumps(artifact)

    assert try_extract(f"```json\n{body}\n```").strategy == "code_block"
    assert try_extract(f"prefix {body} suffix").strategy == "boundaries"
    assert extract(f"prefix {body} suffix") == artifact
