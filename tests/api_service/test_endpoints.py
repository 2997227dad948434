"""
Tests for the job API endpoints.

Runs the FastAPI app through TestClient against a real in-memory job store
injected via a patched DI container. The rate limiter is disabled.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from api_service.src.main import app, limiter
from domain.models import Job, JobStatus
from shared_utils.constants import APIEndpoints

client = TestClient(app)


@pytest.fixture(autouse=True)
def _no_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture()
def store(job_store):
    container = MagicMock()
    container.get_job_store.return_value = job_store
    with patch("api_service.src.main.get_di_container", return_value=container):
        yield job_store


def _failed_job(store, **fields) -> Job:
    job = store.insert_job(Job(**fields))
    store.claim_job(job.id)
    store.fail_job(job.id, "WriteFailure: Output is not valid JSON")
    return store.get_job(job.id)


def _done_meeting(store, sample_artifact):
    job = store.insert_job(Job(transcript_text=sample_artifact.transcript_text))
    store.claim_job(job.id)
    artifact = sample_artifact.model_copy(update={"job_id": job.id})
    store.complete_job(job.id, artifact)
    return artifact


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health_returns_200(self) -> None:
        response = client.get(APIEndpoints.HEALTH)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert "llm_provider" in body
        assert "job_store_backend" in body


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


class TestSubmitJob:
    def test_text_job_queued(self, store) -> None:
        response = client.post(APIEndpoints.JOBS, json={"transcript_text": "  Alex will email the team. "})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "queued"
        job = store.get_job(body["job_id"])
        assert job.transcript_text == "Alex will email the team."
        assert job.meeting_mode == "Default"

    def test_audio_job_queued(self, store) -> None:
        response = client.post(
            APIEndpoints.JOBS, json={"input_ref": "uploads/rec.m4a", "meeting_mode": "Standup"}
        )

        assert response.status_code == 202
        job = store.get_job(response.json()["job_id"])
        assert job.input_ref == "uploads/rec.m4a"
        assert job.transcript_text is None
        assert job.meeting_mode == "Standup"

    @pytest.mark.parametrize("body", [{}, {"transcript_text": "   "}, {"meeting_mode": "Standup"}])
    def test_missing_input_rejected(self, store, body) -> None:
        response = client.post(APIEndpoints.JOBS, json=body)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"
        assert store.next_queued_job() is None

    def test_bad_input_ref_rejected(self, store) -> None:
        response = client.post(APIEndpoints.JOBS, json={"input_ref": "../etc/passwd"})
        assert response.status_code == 400

    def test_store_failure_is_500(self) -> None:
        container = MagicMock()
        container.get_job_store.return_value.insert_job.side_effect = RuntimeError("store down")
        with patch("api_service.src.main.get_di_container", return_value=container):
            response = client.post(APIEndpoints.JOBS, json={"transcript_text": "hi"})
        assert response.status_code == 500
        assert "store down" in response.json()["error"]["message"]


# ---------------------------------------------------------------------------
# Status / resubmit
# ---------------------------------------------------------------------------


class TestGetJob:
    def test_queued_job(self, store) -> None:
        job = store.insert_job(Job(transcript_text="secret words"))

        response = client.get(f"/api/v2/jobs/{job.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "queued"
        assert body["has_transcript"] is True
        assert "transcript_text" not in body
        assert body["output_ref"] is None

    def test_failed_job_exposes_error(self, store) -> None:
        job = _failed_job(store, transcript_text="x")
        body = client.get(f"/api/v2/jobs/{job.id}").json()
        assert body["status"] == "error"
        assert body["error"].startswith("WriteFailure:")

    def test_unknown_job_404(self, store) -> None:
        response = client.get(f"/api/v2/jobs/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "JOB_NOT_FOUND"

    def test_malformed_id_400(self, store) -> None:
        assert client.get("/api/v2/jobs/not-a-uuid").status_code == 400


class TestResubmitJob:
    def test_failed_job_requeued_as_new_job(self, store) -> None:
        failed = _failed_job(store, input_ref="uploads/rec.m4a", meeting_mode="Standup")

        response = client.post(f"/api/v2/jobs/{failed.id}/resubmit")

        assert response.status_code == 202
        body = response.json()
        assert body["previous_job_id"] == failed.id
        assert body["job_id"] != failed.id
        new_job = store.get_job(body["job_id"])
        assert new_job.status == JobStatus.QUEUED
        assert (new_job.input_ref, new_job.meeting_mode) == ("uploads/rec.m4a", "Standup")
        assert store.get_job(failed.id).status == JobStatus.ERROR

    def test_queued_job_cannot_be_resubmitted(self, store) -> None:
        job = store.insert_job(Job(transcript_text="x"))
        response = client.post(f"/api/v2/jobs/{job.id}/resubmit")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_JOB_STATE"


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------


class TestMeetings:
    def test_get_meeting(self, store, sample_artifact) -> None:
        artifact = _done_meeting(store, sample_artifact)

        response = client.get(f"/api/v2/meetings/{artifact.meeting_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Launch sync"
        assert body["result"]["schema_version"] == "1.0"
        assert body["result"]["action_items"][0]["owner"] == "Alex"

    def test_unknown_meeting_404(self, store) -> None:
        response = client.get(f"/api/v2/meetings/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MEETING_NOT_FOUND"

    def test_export_json(self, store, sample_artifact) -> None:
        artifact = _done_meeting(store, sample_artifact)

        response = client.get(f"/api/v2/meetings/{artifact.meeting_id}/export")

        assert response.status_code == 200
        assert response.json()["meeting"]["id"] == artifact.meeting_id
        assert 'filename="Launch-sync-meeting.json"' in response.headers["content-disposition"]

    def test_export_markdown(self, store, sample_artifact) -> None:
        artifact = _done_meeting(store, sample_artifact)

        response = client.get(f"/api/v2/meetings/{artifact.meeting_id}/export", params={"format": "markdown"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert response.text.startswith("# Launch sync (2026-01-15)")
        assert 'filename="Launch-sync-meeting.md"' in response.headers["content-disposition"]

    def test_export_bad_format(self, store, sample_artifact) -> None:
        artifact = _done_meeting(store, sample_artifact)
        response = client.get(f"/api/v2/meetings/{artifact.meeting_id}/export", params={"format": "pdf"})
        assert response.status_code == 400
