"""
Unit tests for the Extract -> Write -> Merge orchestrator.

The completion provider is a scripted MagicMock; no network calls.
"""

import json

import pytest

from domain.models import ExtractFacts
from services.pipeline_service import (
    PipelineOrchestrator,
    decode_json,
    merge_outputs,
    parse_json_object,
)
from shared_utils.error_handler import ExtractFailure, MergeFailure, StageOutputError, WriteFailure


class TestParseJsonObject:
    def test_whitespace_trimmed(self) -> None:
        assert parse_json_object('  \n{"a": 1}\n ') == {"a": 1}

    def test_markdown_fence_not_stripped(self) -> None:
        with pytest.raises(StageOutputError):
            parse_json_object('```json\n{"a": 1}\n```')

    def test_decode_accepts_any_json(self) -> None:
        assert decode_json(" [1, 2] ") == [1, 2]

    def test_non_object_rejected(self) -> None:
        with pytest.raises(WriteFailure, match="JSON object"):
            parse_json_object("[1, 2]", WriteFailure)

    def test_none_rejected(self) -> None:
        with pytest.raises(ExtractFailure):
            parse_json_object(None, ExtractFailure)

    def test_raw_preview_kept(self) -> None:
        with pytest.raises(ExtractFailure) as exc_info:
            parse_json_object("Sure! Here is the JSON", ExtractFailure)
        assert exc_info.value.context["raw_preview"] == "Sure! Here is the JSON"


class TestMergeOutputs:
    def test_combines_summary_and_action_items(self, write_reply, extract_reply) -> None:
        facts = ExtractFacts.model_validate(json.loads(extract_reply))
        merged = merge_outputs(facts, json.loads(write_reply))
        assert merged["schema_version"] == "1.0"
        assert merged["summary"]["title"] == "Launch sync"
        assert merged["action_items"] == [
            {
                "task": "Email the team",
                "owner": "Alex",
                "due_date": None,
                "evidence": {"start_s": 12.0, "end_s": 19.0},
            }
        ]

    def test_decisions_not_in_result(self, write_reply, extract_reply) -> None:
        facts = ExtractFacts.model_validate(json.loads(extract_reply))
        merged = merge_outputs(facts, json.loads(write_reply))
        assert set(merged) == {"schema_version", "summary", "action_items"}

    def test_non_object_write_output(self) -> None:
        with pytest.raises(MergeFailure):
            merge_outputs(ExtractFacts(), ["not", "a", "dict"])

    def test_missing_summary_passed_through(self) -> None:
        merged = merge_outputs(ExtractFacts(), {"schema_version": "write-1.0"})
        assert merged["summary"] is None


class TestPipelineOrchestrator:
    def test_run_produces_candidate(self, make_provider, extract_reply, write_reply, sample_transcript_text) -> None:
        provider = make_provider([extract_reply, write_reply])
        candidate = PipelineOrchestrator(provider).run(sample_transcript_text)

        assert provider.complete.call_count == 2
        assert candidate["summary"]["tldr"].startswith("Launch ships Friday")
        assert candidate["action_items"][0]["owner"] == "Alex"

    def test_extract_receives_transcript(self, make_provider, extract_reply, write_reply, sample_transcript_text) -> None:
        provider = make_provider([extract_reply, write_reply])
        PipelineOrchestrator(provider).run(sample_transcript_text)

        extract_messages = provider.complete.call_args_list[0].args[0]
        assert [m.role for m in extract_messages] == ["system", "user"]
        assert sample_transcript_text in extract_messages[1].content

    def test_write_never_sees_transcript(self, make_provider, extract_reply, write_reply, sample_transcript_text) -> None:
        provider = make_provider([extract_reply, write_reply])
        PipelineOrchestrator(provider).run(sample_transcript_text)

        write_messages = provider.complete.call_args_list[1].args[0]
        joined = "\n".join(m.content for m in write_messages)
        assert "Quick sync on the launch" not in joined
        assert "Email the team" in joined

    def test_non_json_extract_stops_pipeline(self, make_provider, write_reply) -> None:
        provider = make_provider(["I could not find any facts.", write_reply])
        with pytest.raises(ExtractFailure):
            PipelineOrchestrator(provider).run("hello")
        assert provider.complete.call_count == 1

    def test_extract_array_stops_pipeline(self, make_provider, write_reply) -> None:
        provider = make_provider(["[]", write_reply])
        with pytest.raises(ExtractFailure, match="JSON object"):
            PipelineOrchestrator(provider).run("hello")
        assert provider.complete.call_count == 1

    def test_wrong_shaped_items_passed_through(self, make_provider, write_reply) -> None:
        items = [
            {"task": "Email the team", "owner": 42, "due_date": None, "evidence": None},
            {"task": "Book room", "owner": None, "due_date": None, "evidence": {"start_s": "12", "end_s": None}},
        ]
        provider = make_provider([json.dumps({"action_items": items}), write_reply])

        candidate = PipelineOrchestrator(provider).run("hello")

        assert provider.complete.call_count == 2
        assert candidate["action_items"] == items

    def test_missing_action_items_defaults_empty(self, make_provider, write_reply) -> None:
        provider = make_provider([json.dumps({"decisions": []}), write_reply])
        assert PipelineOrchestrator(provider).run("hello")["action_items"] == []

    def test_non_json_write(self, make_provider, extract_reply) -> None:
        provider = make_provider([extract_reply, "Title: Launch sync"])
        with pytest.raises(WriteFailure):
            PipelineOrchestrator(provider).run("hello")

    def test_write_array_cannot_be_merged(self, make_provider, extract_reply) -> None:
        provider = make_provider([extract_reply, "[]"])
        with pytest.raises(MergeFailure):
            PipelineOrchestrator(provider).run("hello")

    def test_provider_error_propagates(self, make_provider) -> None:
        provider = make_provider([RuntimeError("connection reset")])
        with pytest.raises(RuntimeError, match="connection reset"):
            PipelineOrchestrator(provider).run("hello")
