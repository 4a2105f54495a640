from types import SimpleNamespace

import pytest

from conductor.providers.response import (
  FinishReason,
  Usage,
  field_of,
  infer_finish_reason,
  tool_calls_from_raw,
)


class TestFinishReason:
  """Vendor stop reasons map onto one vocabulary."""

  @pytest.mark.parametrize(
    "raw, expected",
    [
      ("stop", FinishReason.STOP),
      ("end_turn", FinishReason.STOP),
      ("max_tokens", FinishReason.LENGTH),
      ("length", FinishReason.LENGTH),
      ("tool_use", FinishReason.TOOL_CALLS),
      ("function_call", FinishReason.TOOL_CALLS),
      ("content_filter", FinishReason.CONTENT_FILTER),
      ("refusal", FinishReason.CONTENT_FILTER),
      ("failed", FinishReason.ERROR),
      ("LENGTH", FinishReason.LENGTH),
    ],
  )
  def test_aliases(self, raw, expected):
    assert FinishReason.normalize(raw) == expected

  def test_missing_and_unknown_reasons_are_stop(self):
    assert FinishReason.normalize(None) == FinishReason.STOP
    assert FinishReason.normalize("something_new") == FinishReason.STOP

  def test_enum_passes_through(self):
    assert FinishReason.normalize(FinishReason.LENGTH) is FinishReason.LENGTH


class TestUsage:
  """Token accounting from both usage shapes."""

  def test_chat_usage(self):
    usage = Usage.from_raw({"prompt_tokens": 12, "completion_tokens": 8, "total_tokens": 20})
    assert (usage.input_tokens, usage.output_tokens, usage.total_tokens) == (12, 8, 20)

  def test_responses_usage_with_details(self):
    usage = Usage.from_raw(
      SimpleNamespace(
        input_tokens=30,
        output_tokens=10,
        total_tokens=None,
        input_tokens_details=SimpleNamespace(cached_tokens=4),
        output_tokens_details=SimpleNamespace(reasoning_tokens=6),
      )
    )
    assert usage.input_tokens == 30
    assert usage.output_tokens == 10
    assert usage.total_tokens == 40
    assert usage.cached_tokens == 4
    assert usage.reasoning_tokens == 6

  def test_missing_usage_is_zero(self):
    usage = Usage.from_raw(None)
    assert usage == Usage()
    assert usage.reasoning_tokens is None

  def test_addition(self):
    total = Usage(1, 2, 3, reasoning_tokens=1) + Usage(10, 20, 30)
    assert total == Usage(11, 22, 33, reasoning_tokens=1, cached_tokens=None)


class TestInferFinishReason:
  """Responses style replies carry a status instead of a finish reason."""

  def test_completed_message(self):
    raw = {"status": "completed", "output": [{"type": "message"}]}
    assert infer_finish_reason(raw) == FinishReason.STOP

  def test_incomplete_on_output_tokens_is_length(self):
    raw = {"status": "incomplete", "incomplete_details": {"reason": "max_output_tokens"}, "output": []}
    assert infer_finish_reason(raw) == FinishReason.LENGTH

  def test_incomplete_on_content_filter(self):
    raw = {"status": "incomplete", "incomplete_details": {"reason": "content_filter"}}
    assert infer_finish_reason(raw) == FinishReason.CONTENT_FILTER

  def test_incomplete_for_other_reasons(self):
    raw = {"status": "incomplete", "incomplete_details": {"reason": "interrupted"}}
    assert infer_finish_reason(raw) == FinishReason.INCOMPLETE

  def test_failed_status_is_error(self):
    assert infer_finish_reason({"status": "failed", "output": []}) == FinishReason.ERROR

  def test_function_call_output_is_tool_calls(self):
    raw = {"status": "completed", "output": [{"type": "function_call", "name": "add"}]}
    assert infer_finish_reason(raw) == FinishReason.TOOL_CALLS

  def test_explicit_finish_reason_wins(self):
    raw = {"finish_reason": "length", "status": "completed"}
    assert infer_finish_reason(raw) == FinishReason.LENGTH


class TestToolCallsFromRaw:
  def test_dicts_and_objects(self):
    raw = [
      {"id": "a", "type": "function", "function": {"name": "add", "arguments": '{"a": 1}'}},
      SimpleNamespace(id="b", type="function", function=SimpleNamespace(name="sub", arguments={"b": 2})),
    ]
    calls = tool_calls_from_raw(raw)
    assert [c.id for c in calls] == ["a", "b"]
    assert calls[0].function.arguments == '{"a": 1}'
    assert calls[1].function.arguments == '{"b": 2}'

  def test_field_of_reads_dicts_and_attributes(self):
    assert field_of({"a": 1}, "a") == 1
    assert field_of(SimpleNamespace(a=2), "a") == 2
    assert field_of(None, "a", "default") == "default"
