# tests/test_prompts.py

from __future__ import annotations

import pytest

from pending_choice.choice.extractor import build_candidates
from pending_choice.choice.prompts import (
    compose_option_prompt,
    format_options_listing,
    parse_json_object_from_text,
)
from pending_choice.tasks.task_models import TaskOption, normalize_option, normalize_options

from .fakes import make_task


def test_prompt_enumerates_tasks_options_and_abort() -> None:
    candidates = build_candidates(
        [
            make_task(10, "Confirm Post", [{"name": "post", "description": "Publish the tweet"}, "cancel"]),
            make_task(11, "Send Newsletter", ["send"]),
        ]
    )

    prompt = compose_option_prompt(candidates, "  post it please  ")

    assert prompt.startswith("# Task: Extract selected task and option from user message")
    assert (
        "Task 1: Confirm Post\n"
        "Available options:\n"
        "- post: Publish the tweet\n"
        "- cancel: cancel\n"
        "- ABORT: Cancel this task\n"
    ) in prompt
    assert "Task 2: Send Newsletter\nAvailable options:\n- send: send\n- ABORT: Cancel this task\n" in prompt
    assert "# Recent Messages:\npost it please\n" in prompt
    assert '"taskId": number | null' in prompt
    assert '"selectedOption": "OPTION_NAME" | null' in prompt
    assert "```json\n{" in prompt
    # Persisted ids never leak into the prompt; positions do.
    assert "Task 10" not in prompt


def test_listing_format() -> None:
    candidates = build_candidates(
        [
            make_task(1, "Confirm Post", ["post", {"name": "cancel", "description": "Drop the draft"}]),
            make_task(2, "Send Newsletter", ["send"]),
        ]
    )

    assert format_options_listing(candidates) == (
        "Please select a valid option from one of these tasks:\n"
        "\n"
        "1. **Confirm Post**:\n"
        "- post\n"
        "- cancel: Drop the draft\n"
        "- ABORT\n"
        "\n"
        "2. **Send Newsletter**:\n"
        "- send\n"
        "- ABORT\n"
    )


def test_bare_string_and_equivalent_object_render_identically() -> None:
    as_strings = build_candidates([make_task(1, "Confirm Post", ["post", "cancel"])])
    as_objects = build_candidates(
        [
            make_task(
                1,
                "Confirm Post",
                [{"name": "post", "description": "post"}, {"name": "cancel", "description": "cancel"}],
            )
        ]
    )

    assert format_options_listing(as_strings) == format_options_listing(as_objects)
    assert compose_option_prompt(as_strings, "x") == compose_option_prompt(as_objects, "x")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("post", TaskOption("post", "post")),
        ("  post ", TaskOption("post", "post")),
        ({"name": "post"}, TaskOption("post", "post")),
        ({"name": "post", "description": ""}, TaskOption("post", "post")),
        ({"name": "post", "description": "Publish"}, TaskOption("post", "Publish")),
        ("", None),
        ({"description": "x"}, None),
        (42, None),
        (["post"], None),
        (None, None),
    ],
)
def test_normalize_option(raw, expected) -> None:
    assert normalize_option(raw) == expected


def test_normalize_options_drops_malformed_and_rejects_non_lists() -> None:
    assert normalize_options(["a", 3, {"name": "b"}, None]) == (TaskOption("a", "a"), TaskOption("b", "b"))
    assert normalize_options("abc") == ()
    assert normalize_options({"name": "a"}) == ()
    assert normalize_options(None) == ()
    assert normalize_options(17) == ()


def test_parse_json_prefers_fenced_block() -> None:
    text = 'Sure {"taskId": 9}\n```json\n{"taskId": 1, "selectedOption": "post"}\n```'
    assert parse_json_object_from_text(text) == {"taskId": 1, "selectedOption": "post"}


def test_parse_json_first_object_in_free_text() -> None:
    text = 'I think {"taskId": 2, "selectedOption": "send"} and later {"taskId": 3}'
    assert parse_json_object_from_text(text) == {"taskId": 2, "selectedOption": "send"}


def test_parse_json_skips_broken_candidates() -> None:
    text = 'noise {broken and then {"taskId": null, "selectedOption": null}'
    assert parse_json_object_from_text(text) == {"taskId": None, "selectedOption": None}


def test_parse_json_unlabelled_fence() -> None:
    assert parse_json_object_from_text('```\n{"a": 1}\n```') == {"a": 1}


@pytest.mark.parametrize("text", [None, "", "no json here", "[1, 2]", "```json\n[1]\n```", "{'a': 1}"])
def test_parse_json_none_when_nothing_parses(text) -> None:
    assert parse_json_object_from_text(text) is None
