"""
Pipeline orchestrator: Extract -> Write -> Merge.

Flow:  transcript text -> extract facts (provider) -> write summary from the
facts only (provider) -> merge into a candidate v1.0 result (pure).

The candidate is NOT validated here; that is the repair stage's job.
Depends only on the completion provider port.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict

from domain.models import ExtractFacts
from ports.completion_provider import CompletionProviderPort
from services.prompts import build_extract_messages, build_write_messages
from shared_utils.constants import LogScope, SCHEMA_VERSION
from shared_utils.error_handler import ExtractFailure, MergeFailure, StageOutputError, WriteFailure
from shared_utils.logging_utils import get_scoped_logger, log_execution

logger = get_scoped_logger(LogScope.PIPELINE)


def decode_json(raw: str, error_cls: type = StageOutputError) -> Any:
    """Strictly decode provider text as JSON.

    Only surrounding whitespace is trimmed; markdown fences or prose around
    the JSON raise *error_cls*.
    """
    try:
        return json.loads((raw or "").strip())
    except (TypeError, ValueError) as e:
        raise error_cls(f"Output is not valid JSON: {e}", raw=raw)


def parse_json_object(raw: str, error_cls: type = StageOutputError) -> Dict[str, Any]:
    """Like decode_json, but the value must also be a JSON object."""
    value = decode_json(raw, error_cls)
    if not isinstance(value, dict):
        raise error_cls(
            f"Output must be a JSON object, got {type(value).__name__}", raw=raw
        )
    return value


def merge_outputs(facts: ExtractFacts, write_output: Any) -> Dict[str, Any]:
    """Combine extracted action items with the written summary.

    Summary and action items are passed through as produced so that schema
    validation (and repair) sees exactly what the stages returned.
    """
    if not isinstance(write_output, dict):
        raise MergeFailure("Write output is not a JSON object")

    return {
        "schema_version": SCHEMA_VERSION,
        "summary": write_output.get("summary"),
        "action_items": copy.deepcopy(facts.action_items),
    }


class PipelineOrchestrator:
    """Runs the three pipeline stages against a completion provider."""

    def __init__(self, provider: CompletionProviderPort) -> None:
        self.provider = provider

    def run(self, transcript_text: str) -> Dict[str, Any]:
        """Produce a candidate result from transcript text.

        Raises:
            ExtractFailure: Extract output is not a JSON object.
            WriteFailure: Write output is not JSON.
            MergeFailure: Write output is not a JSON object.
        """
        facts = self.extract(transcript_text)
        write_output = self.write(facts)
        candidate = merge_outputs(facts, write_output)
        logger.info(
            "pipeline_candidate_ready",
            action_items=facts.count("action_items"),
            decisions=facts.count("decisions"),
            open_questions=facts.count("open_questions"),
        )
        return candidate

    @log_execution(scope=LogScope.PIPELINE, event="extract")
    def extract(self, transcript_text: str) -> ExtractFacts:
        raw = self.provider.complete(build_extract_messages(transcript_text))
        return ExtractFacts.model_validate(parse_json_object(raw, ExtractFailure))

    @log_execution(scope=LogScope.PIPELINE, event="write")
    def write(self, facts: ExtractFacts) -> Any:
        # Only the facts are sent; the transcript never reaches this stage.
        raw = self.provider.complete(build_write_messages(facts.model_dump()))
        return decode_json(raw, WriteFailure)
