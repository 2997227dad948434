"""
Root conftest.py — shared fixtures for the entire test suite.

Guidelines:
    • No __init__.py in test sub-directories (avoids shadowing root packages).
    • pytest.ini_options lives in pyproject.toml with pythonpath=["."].
    • Markers: integration.
    • Required settings get safe defaults here, before any module that calls
      get_settings() at import time (the API app) is collected.
"""

import copy
import json
import os
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest

os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("JOB_STORE_BACKEND", "memory")

from adapters.in_memory_job_store import InMemoryJobStoreAdapter  # noqa: E402
from domain.models import Job, MeetingArtifact, PipelineResult  # noqa: E402


# ---------------------------------------------------------------------------
# Marker registration
# ---------------------------------------------------------------------------

def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ---------------------------------------------------------------------------
# Minimal required settings kwargs for Settings(**BASE_SETTINGS_KWARGS)
# ---------------------------------------------------------------------------

BASE_SETTINGS_KWARGS: Dict[str, str] = {
    "llm_provider": "bedrock",
    "bedrock_region": "eu-west-2",
    "bedrock_llm_model_id": "anthropic.claude-3-haiku-20240307-v1:0",
    "environment": "development",
}


@pytest.fixture()
def base_settings_kwargs() -> Dict[str, str]:
    """Provide the minimal kwargs needed to instantiate ``Settings``."""
    return {**BASE_SETTINGS_KWARGS}


# ---------------------------------------------------------------------------
# Sample transcript and stage outputs
# ---------------------------------------------------------------------------

SAMPLE_TRANSCRIPT_TEXT = (
    "[00:00:05] Sam: Quick sync on the launch.\n"
    "[00:00:12] Alex: Alex will email the team by tomorrow.\n"
    "[00:00:20] Sam: We decided to ship on Friday.\n"
)

EXTRACT_OUTPUT: Dict[str, Any] = {
    "schema_version": "extract-1.0",
    "action_items": [
        {
            "task": "Email the team",
            "owner": "Alex",
            "due_date": None,
            "evidence": {"start_s": 12, "end_s": 19},
        }
    ],
    "decisions": [
        {"decision": "Ship on Friday", "evidence": {"start_s": 20, "end_s": 25}}
    ],
    "open_questions": [],
}

WRITE_OUTPUT: Dict[str, Any] = {
    "schema_version": "write-1.0",
    "summary": {
        "title": "Launch sync",
        "tldr": "Launch ships Friday; Alex emails the team.",
        "bullets": ["Ship on Friday", "Alex to email the team"],
    },
}


def valid_result_dict() -> Dict[str, Any]:
    """A schema-valid v1.0 pipeline result."""
    return {
        "schema_version": "1.0",
        "summary": copy.deepcopy(WRITE_OUTPUT["summary"]),
        "action_items": [copy.deepcopy(EXTRACT_OUTPUT["action_items"][0])],
    }


@pytest.fixture()
def sample_transcript_text() -> str:
    return SAMPLE_TRANSCRIPT_TEXT


@pytest.fixture()
def extract_reply() -> str:
    return json.dumps(EXTRACT_OUTPUT)


@pytest.fixture()
def write_reply() -> str:
    return json.dumps(WRITE_OUTPUT)


@pytest.fixture()
def valid_result() -> Dict[str, Any]:
    return valid_result_dict()


# ---------------------------------------------------------------------------
# Mock adapter / provider factories
# ---------------------------------------------------------------------------

def scripted_provider(replies: List[str]) -> MagicMock:
    """Completion provider mock that returns *replies* in order."""
    mock = MagicMock()
    mock.complete.side_effect = list(replies)
    return mock


@pytest.fixture()
def make_provider():
    """Factory fixture: ``make_provider([reply1, reply2, ...])``."""
    return scripted_provider


@pytest.fixture()
def job_store() -> InMemoryJobStoreAdapter:
    """Fresh in-memory job store."""
    return InMemoryJobStoreAdapter()


@pytest.fixture()
def mock_audio_store() -> MagicMock:
    """Audio store mock that writes a few bytes to the destination."""
    mock = MagicMock()
    mock.create_signed_url.return_value = "https://signed.example/audio.m4a?sig=1"

    def _download(url: str, destination: str) -> int:
        with open(destination, "wb") as fh:
            fh.write(b"RIFF")
        return 4

    mock.download.side_effect = _download
    return mock


@pytest.fixture()
def mock_transcriber() -> MagicMock:
    mock = MagicMock()
    mock.transcribe.return_value = SAMPLE_TRANSCRIPT_TEXT
    return mock


# ---------------------------------------------------------------------------
# Domain object factories
# ---------------------------------------------------------------------------

@pytest.fixture()
def queued_text_job() -> Job:
    return Job(transcript_text=SAMPLE_TRANSCRIPT_TEXT)


@pytest.fixture()
def sample_artifact() -> MeetingArtifact:
    """A stored meeting artifact useful for export and API tests."""
    return MeetingArtifact(
        job_id="job-1",
        title="Launch sync",
        result=PipelineResult.model_validate(valid_result_dict()),
        transcript_text=SAMPLE_TRANSCRIPT_TEXT,
        created_at="2026-01-15T10:00:00.000000+00:00",
    )
