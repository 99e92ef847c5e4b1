"""Unit tests for roomchat.conversation.loop.ConversationOrchestrator."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from roomchat.conversation.loop import (
    ConversationOrchestrator,
    OrchestratorConfig,
    OrchestratorState,
)
from roomchat.conversation.providers import (
    CompletionChoice,
    CompletionResult,
    ToolCall,
    ToolDefinition,
)
from roomchat.conversation.tools import build_room_registry
from roomchat.errors import RoundTripLimitExceeded, TransportConnectionError
from roomchat.rooms.dataset import RoomDataset

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

DATASET = RoomDataset(
    {
        "R1": {"Level": "Level 3", "Room Status": "Occupied", "Area": 10},
        "R2": {"Level": "Level 3", "Room Status": "Available", "Area": 20},
        "R3": {"Level": "Level 1", "Room Status": "Occupied", "Area": 20},
    }
)


def _stop_choice(text: str | None) -> CompletionChoice:
    return CompletionChoice(
        finish_reason="stop",
        content=text,
        raw_message={"role": "assistant", "content": text},
    )


def _stop_result(text: str) -> CompletionResult:
    """Build a CompletionResult that ends the loop (no tool calls)."""
    return CompletionResult(choices=[_stop_choice(text)])


def _tool_choice(calls: list[tuple[str, str, Any]]) -> CompletionChoice:
    """Build a choice requesting tool calls.

    Args:
        calls: List of (id, name, arguments) tuples.
    """
    tool_calls = [ToolCall(id=id_, name=name, arguments=args) for id_, name, args in calls]
    raw_tc = [
        {
            "id": tc.id,
            "type": "function",
            "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
        }
        for tc in tool_calls
    ]
    return CompletionChoice(
        finish_reason="tool_calls",
        content=None,
        tool_calls=tool_calls,
        raw_message={"role": "assistant", "tool_calls": raw_tc},
    )


def _tool_call_result(calls: list[tuple[str, str, Any]]) -> CompletionResult:
    return CompletionResult(choices=[_tool_choice(calls)])


def _make_provider(*results: CompletionResult) -> MagicMock:
    """Return a mock ModelProvider that yields results in sequence."""
    mock = MagicMock()
    mock.complete = AsyncMock(side_effect=list(results))
    return mock


def _orchestrator(provider: MagicMock, **config: Any) -> ConversationOrchestrator:
    registry = build_room_registry()
    return ConversationOrchestrator(
        provider,
        registry,
        OrchestratorConfig(tool_catalog=tuple(registry.get_definitions()), **config),
    )


def _messages_of_call(provider: MagicMock, index: int) -> list[dict[str, Any]]:
    return provider.complete.call_args_list[index][0][0]


# ---------------------------------------------------------------------------
# Direct response (no tool calls)
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_stop_returns_content_verbatim() -> None:
    provider = _make_provider(_stop_result("  There are 3 rooms.\n"))
    orchestrator = _orchestrator(provider)

    result = await orchestrator.run("How many rooms?", DATASET, MagicMock())

    assert result == "  There are 3 rooms.\n"
    provider.complete.assert_awaited_once()
    assert orchestrator.state is OrchestratorState.DONE


@pytest.mark.anyio
async def test_stop_with_null_content_returns_empty_string() -> None:
    provider = _make_provider(CompletionResult(choices=[_stop_choice(None)]))
    assert await _orchestrator(provider).run("Hi", DATASET, MagicMock()) == ""


@pytest.mark.anyio
async def test_conversation_is_seeded_with_system_and_user_prompt() -> None:
    provider = _make_provider(_stop_result("Done"))
    orchestrator = _orchestrator(provider, system_prompt="You know rooms.")

    await orchestrator.run("Test", DATASET, MagicMock())

    assert _messages_of_call(provider, 0) == [
        {"role": "system", "content": "You know rooms."},
        {"role": "user", "content": "Test"},
    ]


@pytest.mark.anyio
async def test_tool_catalog_is_sent_on_every_round_trip() -> None:
    provider = _make_provider(_stop_result("ok"))
    await _orchestrator(provider).run("test", DATASET, MagicMock())

    _, tools_arg = provider.complete.call_args[0]
    assert [t.name for t in tools_arg] == ["query_rooms", "select_rooms"]


@pytest.mark.anyio
async def test_default_config_uses_registry_definitions() -> None:
    provider = _make_provider(_stop_result("ok"))
    orchestrator = ConversationOrchestrator(provider, build_room_registry())

    await orchestrator.run("test", DATASET, MagicMock())

    _, tools_arg = provider.complete.call_args[0]
    assert all(isinstance(t, ToolDefinition) for t in tools_arg)
    assert len(tools_arg) == 2


# ---------------------------------------------------------------------------
# Tool dispatch
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_select_rooms_reaches_sink_once() -> None:
    sink = MagicMock()
    provider = _make_provider(
        _tool_call_result([("call_1", "select_rooms", {"names": ["R1", "R2"]})]),
        _stop_result("Selected."),
    )

    result = await _orchestrator(provider).run("Select R1 and R2", DATASET, sink)

    assert result == "Selected."
    sink.assert_called_once_with(["R1", "R2"])
    second = _messages_of_call(provider, 1)
    tool_messages = [m for m in second if m["role"] == "tool"]
    assert tool_messages == [{"role": "tool", "tool_call_id": "call_1", "content": '"success"'}]


@pytest.mark.anyio
async def test_query_result_is_fed_back_to_model() -> None:
    provider = _make_provider(
        _tool_call_result(
            [("call_1", "query_rooms", {"type": "count", "filter": {"level": "level 3", "status": "occupied"}, "parameter": None})]
        ),
        _stop_result("One room is occupied on level 3."),
    )

    await _orchestrator(provider).run("How many occupied on level 3?", DATASET, MagicMock())

    second = _messages_of_call(provider, 1)
    assert second[2]["role"] == "assistant"
    assert second[2]["tool_calls"][0]["id"] == "call_1"
    assert json.loads(second[3]["content"]) == {"value": 1, "rooms": ["R1"]}


@pytest.mark.anyio
async def test_batch_runs_in_order_with_one_assistant_message() -> None:
    sink = MagicMock()
    provider = _make_provider(
        _tool_call_result(
            [
                ("c1", "query_rooms", {"type": "max", "parameter": "area"}),
                ("c2", "select_rooms", {"names": ["R2", "R3"]}),
            ]
        ),
        _stop_result("R2 and R3 are the largest."),
    )

    await _orchestrator(provider).run("Largest rooms?", DATASET, sink)

    second = _messages_of_call(provider, 1)
    assert [m["role"] for m in second] == ["system", "user", "assistant", "tool", "tool"]
    assert [m["tool_call_id"] for m in second[3:]] == ["c1", "c2"]
    assert json.loads(second[3]["content"]) == {"value": 20, "rooms": ["R2", "R3"]}
    sink.assert_called_once_with(["R2", "R3"])


@pytest.mark.anyio
async def test_multiple_round_trips() -> None:
    provider = _make_provider(
        _tool_call_result([("c1", "query_rooms", {"type": "count"})]),
        _tool_call_result([("c2", "select_rooms", {"names": ["R1"]})]),
        _stop_result("Done."),
    )

    result = await _orchestrator(provider, max_round_trips=5).run("Go", DATASET, MagicMock())

    assert result == "Done."
    assert provider.complete.await_count == 3
    third = _messages_of_call(provider, 2)
    assert [m.get("tool_call_id") for m in third if m["role"] == "tool"] == ["c1", "c2"]


# ---------------------------------------------------------------------------
# Unknown tools and invalid arguments
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_unknown_tool_is_inert_and_loop_continues() -> None:
    sink = MagicMock()
    provider = _make_provider(
        _tool_call_result([("c1", "open_doors", {"names": ["R1"]})]),
        _stop_result("I can't do that."),
    )

    result = await _orchestrator(provider).run("Open the doors", DATASET, sink)

    assert result == "I can't do that."
    sink.assert_not_called()
    assert provider.complete.await_count == 2
    second = _messages_of_call(provider, 1)
    assert len(second) == 2


@pytest.mark.anyio
async def test_unknown_tool_is_dropped_from_assistant_message() -> None:
    provider = _make_provider(
        _tool_call_result(
            [
                ("c1", "open_doors", {}),
                ("c2", "select_rooms", {"names": ["R3"]}),
            ]
        ),
        _stop_result("ok"),
    )

    await _orchestrator(provider).run("Select R3", DATASET, MagicMock())

    second = _messages_of_call(provider, 1)
    assistant = second[2]
    assert [tc["id"] for tc in assistant["tool_calls"]] == ["c2"]
    assert [m["tool_call_id"] for m in second if m["role"] == "tool"] == ["c2"]


@pytest.mark.anyio
async def test_invalid_arguments_are_reported_to_model() -> None:
    provider = _make_provider(
        _tool_call_result([("c1", "query_rooms", {"type": "sum", "parameter": None})]),
        _stop_result("Which value should I sum?"),
    )

    result = await _orchestrator(provider).run("Sum it", DATASET, MagicMock())

    assert result == "Which value should I sum?"
    tool_msg = next(m for m in _messages_of_call(provider, 1) if m["role"] == "tool")
    assert "error" in json.loads(tool_msg["content"])


@pytest.mark.anyio
async def test_failing_sink_is_reported_not_raised() -> None:
    sink = MagicMock(side_effect=RuntimeError("viewer not ready"))
    provider = _make_provider(
        _tool_call_result([("c1", "select_rooms", {"names": ["R1"]})]),
        _stop_result("Selection failed."),
    )

    result = await _orchestrator(provider).run("Select R1", DATASET, sink)

    assert result == "Selection failed."
    tool_msg = next(m for m in _messages_of_call(provider, 1) if m["role"] == "tool")
    assert json.loads(tool_msg["content"]) == {"error": "viewer not ready"}


# ---------------------------------------------------------------------------
# Choice handling
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_stop_after_tool_choice_in_same_response() -> None:
    sink = MagicMock()
    provider = _make_provider(
        CompletionResult(
            choices=[
                _tool_choice([("c1", "select_rooms", {"names": ["R1"]})]),
                _stop_choice("Selected R1."),
            ]
        )
    )

    result = await _orchestrator(provider).run("Select R1", DATASET, sink)

    assert result == "Selected R1."
    sink.assert_called_once_with(["R1"])
    provider.complete.assert_awaited_once()


@pytest.mark.anyio
async def test_first_stop_choice_wins() -> None:
    provider = _make_provider(
        CompletionResult(choices=[_stop_choice("first"), _stop_choice("second")])
    )
    assert await _orchestrator(provider).run("Hi", DATASET, MagicMock()) == "first"


@pytest.mark.anyio
async def test_unexpected_finish_reason_is_skipped() -> None:
    provider = _make_provider(
        CompletionResult(choices=[CompletionChoice(finish_reason="length", content="trunc")]),
        _stop_result("Complete answer."),
    )

    result = await _orchestrator(provider).run("Hi", DATASET, MagicMock())

    assert result == "Complete answer."
    assert provider.complete.await_count == 2


# ---------------------------------------------------------------------------
# Failures and limits
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_transport_failure_propagates_without_retry() -> None:
    provider = MagicMock()
    provider.complete = AsyncMock(side_effect=TransportConnectionError("down"))

    with pytest.raises(TransportConnectionError):
        await _orchestrator(provider).run("Hi", DATASET, MagicMock())

    provider.complete.assert_awaited_once()


@pytest.mark.anyio
async def test_raises_when_round_trip_limit_exceeded() -> None:
    """The loop must stop if the model never stops calling tools."""
    provider = MagicMock()
    provider.complete = AsyncMock(
        return_value=_tool_call_result([("c1", "query_rooms", {"type": "count"})])
    )

    with pytest.raises(RoundTripLimitExceeded, match="max_round_trips"):
        await _orchestrator(provider, max_round_trips=3).run("Loop forever", DATASET, MagicMock())

    assert provider.complete.await_count == 3


def test_config_rejects_non_positive_round_trips() -> None:
    with pytest.raises(ValueError, match="max_round_trips"):
        OrchestratorConfig(max_round_trips=0)


@pytest.mark.anyio
async def test_each_run_starts_with_fresh_history() -> None:
    provider = _make_provider(_stop_result("one"), _stop_result("two"))
    orchestrator = _orchestrator(provider)

    await orchestrator.run("first question", DATASET, MagicMock())
    await orchestrator.run("second question", DATASET, MagicMock())

    assert _messages_of_call(provider, 1)[-1] == {"role": "user", "content": "second question"}
    assert len(_messages_of_call(provider, 1)) == 2
