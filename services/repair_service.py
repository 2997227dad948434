"""
Repair stage: validate a candidate result and, when invalid, ask the
completion provider once to fix it.

The repair budget comes from RepairPolicy (default: exactly one attempt).
A repaired candidate that is still invalid, or that is not JSON at all,
ends the job with RepairExhausted. The budget is never exceeded.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.models import PipelineResult, SchemaViolation
from ports.completion_provider import CompletionProviderPort
from services.pipeline_service import parse_json_object
from services.prompts import build_repair_messages
from services.schema_validator import SchemaValidator
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import RepairExhausted, SchemaValidationFailure, StageOutputError
from shared_utils.logging_utils import get_scoped_logger

logger = get_scoped_logger(LogScope.REPAIR)


class RepairPolicy(BaseModel):
    """How many repair calls a single job may spend."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=Defaults.REPAIR_MAX_ATTEMPTS, ge=0)


class RepairResult(BaseModel):
    """Validated result plus whether a repair call produced it."""

    result: PipelineResult
    repaired: bool = False


class RepairStage:
    """Schema gate with a bounded, provider-backed repair step."""

    def __init__(
        self,
        provider: CompletionProviderPort,
        validator: SchemaValidator,
        policy: Optional[RepairPolicy] = None,
    ) -> None:
        self.provider = provider
        self.validator = validator
        self.policy = policy if policy is not None else RepairPolicy()

    def repair(self, candidate: Any, violations: List[SchemaViolation]) -> Dict[str, Any]:
        """Send the invalid candidate and its violations to the provider.

        Raises:
            RepairExhausted: The reply is not a JSON object.
        """
        bad_json = json.dumps(candidate, indent=2, ensure_ascii=False, default=str)
        raw = self.provider.complete(build_repair_messages(bad_json, violations))
        try:
            return parse_json_object(raw)
        except StageOutputError as e:
            raise RepairExhausted(
                f"Repair output unusable: {e.message}",
                violations=violations,
                context={"raw_preview": (raw or "")[:300]},
            )

    def validate_and_repair(self, candidate: Any) -> RepairResult:
        """Return a schema-valid result, repairing within the policy budget.

        Raises:
            SchemaValidationFailure: Invalid and the policy allows no repair.
            RepairExhausted: Still invalid after the allowed repair attempts.
        """
        outcome = self.validator.validate(candidate)
        if outcome.ok:
            return RepairResult(result=PipelineResult.model_validate(candidate))

        logger.warning(
            "schema_validation_failed",
            violation_count=len(outcome.violations),
            violations=[v.model_dump() for v in outcome.violations[:10]],
        )

        if self.policy.max_attempts == 0:
            raise SchemaValidationFailure(
                f"Result failed schema validation ({len(outcome.violations)} violation(s))",
                violations=outcome.violations,
            )

        current = candidate
        for attempt in range(1, self.policy.max_attempts + 1):
            logger.info("repair_attempted", attempt=attempt, max_attempts=self.policy.max_attempts)
            current = self.repair(current, outcome.violations)
            outcome = self.validator.validate(current)
            if outcome.ok:
                logger.info("repair_succeeded", attempt=attempt)
                return RepairResult(
                    result=PipelineResult.model_validate(current), repaired=True
                )
            logger.warning(
                "repair_still_invalid",
                attempt=attempt,
                violation_count=len(outcome.violations),
            )

        raise RepairExhausted(
            f"Result still invalid after {self.policy.max_attempts} repair attempt(s)",
            violations=outcome.violations,
        )
