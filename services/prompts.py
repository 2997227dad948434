"""
Prompt builders for the pipeline stages.

Each builder returns the ordered, role-tagged message list sent to the
completion provider. The Write stage only ever sees the extracted facts,
never the transcript.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

from domain.models import ChatMessage, SchemaViolation


EXTRACT_SYSTEM_PROMPT = """
You are MeetIQ AI: extract structured facts from a meeting transcript.

Return VALID JSON ONLY. No markdown. No explanations. No extra keys.

Schema:
{
  "schema_version": "extract-1.0",
  "action_items": [
    {
      "task": string,
      "owner": string|null,
      "due_date": string|null,
      "evidence": { "start_s": number|null, "end_s": number|null }
    }
  ],
  "decisions": [
    { "decision": string, "evidence": { "start_s": number|null, "end_s": number|null } }
  ],
  "open_questions": [
    { "question": string, "assigned_to": string|null, "evidence": { "start_s": number|null, "end_s": number|null } }
  ]
}

Rules:
- Only include facts explicitly stated in the transcript. Do NOT guess or infer.
- If unknown, use null.
- due_date is null unless an explicit calendar date is stated.
- If timestamps are not present, use null for start_s/end_s. Never invent timestamps.
- Keep tasks concise and actionable (verb-first).
""".strip()

WRITE_SYSTEM_PROMPT = """
You write a clear meeting summary from extracted facts only.

Return VALID JSON ONLY. No markdown. No explanations. No extra keys.

Schema:
{
  "schema_version": "write-1.0",
  "summary": {
    "title": string,
    "tldr": string,
    "bullets": string[]
  }
}

Rules:
- Use ONLY the extracted facts provided.
- If there are no facts, produce a neutral title and empty or short bullets.
""".strip()

REPAIR_SYSTEM_PROMPT = """
You are MeetIQ AI. You MUST output valid JSON only.
You are given:
- A JSON document that FAILED schema validation
- The validation errors describing what is wrong

Your task:
- Return a FIXED JSON object that matches the required schema exactly.

Required schema:
{
  "schema_version": "1.0",
  "summary": { "title": string, "tldr": string, "bullets": string[] },
  "action_items": [
    { "task": string, "owner": string|null, "due_date": string|null,
      "evidence": { "start_s": number|null, "end_s": number|null } }
  ]
}

Rules:
- Output JSON only (no markdown, no explanation).
- Do not add extra keys.
- If a field is missing, add it with null or empty values as appropriate.
- If a field has the wrong type, coerce it to the correct type if possible, otherwise use null.
""".strip()


def build_extract_messages(transcript_text: str) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=EXTRACT_SYSTEM_PROMPT),
        ChatMessage(role="user", content=f'Transcript:\n"""\n{transcript_text}\n"""'),
    ]


def build_write_messages(facts: Dict[str, Any]) -> List[ChatMessage]:
    """Write-stage prompt. *facts* is the extracted facts payload."""
    return [
        ChatMessage(role="system", content=WRITE_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=f"Extracted facts JSON:\n{json.dumps(facts, ensure_ascii=False)}",
        ),
    ]


def build_repair_messages(
    bad_json_text: str, violations: Sequence[SchemaViolation]
) -> List[ChatMessage]:
    errors = json.dumps([v.model_dump() for v in violations], indent=2, ensure_ascii=False)
    return [
        ChatMessage(role="system", content=REPAIR_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=f"Bad JSON:\n{bad_json_text}\n\nValidation errors:\n{errors}",
        ),
    ]
