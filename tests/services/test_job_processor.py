"""
Unit tests for JobProcessor.

Uses the in-memory job store with a scripted provider and mocked audio
ports. No network or AWS calls.
"""

import json
import os
from unittest.mock import MagicMock, patch

import pytest

from domain.models import Job, JobStatus
from services.job_processor import JobProcessor, temporary_audio_file
from services.pipeline_service import PipelineOrchestrator
from services.repair_service import RepairPolicy, RepairStage
from services.schema_validator import SchemaValidator
from shared_utils.error_handler import (
    DownloadFailure,
    ExtractFailure,
    InputMissing,
    PersistenceFailure,
    TranscriptionEmpty,
)


def _processor(job_store, provider, audio_store=None, transcriber=None) -> JobProcessor:
    return JobProcessor(
        job_store=job_store,
        orchestrator=PipelineOrchestrator(provider),
        repair_stage=RepairStage(provider, SchemaValidator(), RepairPolicy()),
        audio_store=audio_store,
        transcriber=transcriber,
        signed_url_ttl_seconds=600,
    )


def _claimed(job_store, job: Job) -> Job:
    job_store.insert_job(job)
    assert job_store.claim_job(job.id)
    return job_store.get_job(job.id)


class TestTemporaryAudioFile:
    def test_file_removed_after_use(self) -> None:
        with temporary_audio_file("audio/a.m4a") as path:
            assert os.path.exists(path)
            assert os.path.basename(path).startswith("meetiq_")
            assert path.endswith(".m4a")
        assert not os.path.exists(path)

    def test_file_removed_on_error(self) -> None:
        with pytest.raises(RuntimeError):
            with temporary_audio_file("audio/a") as path:
                raise RuntimeError("boom")
        assert not os.path.exists(path)


class TestTextJobs:
    def test_text_job_completes(self, job_store, make_provider, extract_reply, write_reply, sample_transcript_text) -> None:
        job = _claimed(job_store, Job(transcript_text=sample_transcript_text, meeting_mode="Standup"))
        provider = make_provider([extract_reply, write_reply])

        report = _processor(job_store, provider).process(job)

        assert report.status == JobStatus.DONE
        assert report.repaired is False
        stored = job_store.get_job(job.id)
        assert stored.status == JobStatus.DONE
        assert stored.output_ref == report.output_ref
        assert stored.error is None

        meeting = job_store.get_meeting(report.output_ref)
        assert meeting.job_id == job.id
        assert meeting.title == "Launch sync"
        assert meeting.meeting_mode == "Standup"
        assert meeting.transcript_text == sample_transcript_text

    def test_alex_will_email_the_team(self, job_store, make_provider, write_reply) -> None:
        extract = {
            "action_items": [
                {
                    "task": "Email the team",
                    "owner": "Alex",
                    "due_date": None,
                    "evidence": {"start_s": None, "end_s": None},
                }
            ],
            "decisions": [],
            "open_questions": [],
        }
        job = _claimed(job_store, Job(transcript_text="Alex will email the team by tomorrow."))
        provider = make_provider([json.dumps(extract), write_reply])

        report = _processor(job_store, provider).process(job)

        item = job_store.get_meeting(report.output_ref).result.action_items[0]
        assert item.owner == "Alex"
        assert item.due_date is None
        assert item.evidence.start_s is None

    def test_repaired_result_reported(self, job_store, make_provider, extract_reply, valid_result) -> None:
        job = _claimed(job_store, Job(transcript_text="hello"))
        bad_write = json.dumps({"summary": {"title": "Launch sync", "tldr": "x"}})
        provider = make_provider([extract_reply, bad_write, json.dumps(valid_result)])

        report = _processor(job_store, provider).process(job)

        assert report.repaired is True
        assert provider.complete.call_count == 3

    def test_stage_failure_leaves_job_for_caller(self, job_store, make_provider) -> None:
        job = _claimed(job_store, Job(transcript_text="hello"))
        provider = make_provider(["not json"])

        with pytest.raises(ExtractFailure):
            _processor(job_store, provider).process(job)
        assert job_store.get_job(job.id).status == JobStatus.PROCESSING

    def test_missing_input(self, job_store, make_provider) -> None:
        job = _claimed(job_store, Job(transcript_text="  "))
        provider = make_provider([])

        with pytest.raises(InputMissing):
            _processor(job_store, provider).process(job)
        provider.complete.assert_not_called()

    def test_input_check_uses_job_model(self, job_store, make_provider) -> None:
        job = _claimed(job_store, Job(transcript_text="hello"))
        provider = make_provider([])

        with patch.object(Job, "has_input", return_value=False) as mock_has_input:
            with pytest.raises(InputMissing):
                _processor(job_store, provider).process(job)
        mock_has_input.assert_called_once()
        provider.complete.assert_not_called()

    def test_blank_ref_and_blank_text_is_missing(self, job_store, make_provider, mock_audio_store) -> None:
        job = _claimed(job_store, Job(transcript_text="\n", input_ref="   "))

        with pytest.raises(InputMissing):
            _processor(job_store, make_provider([]), mock_audio_store, MagicMock()).process(job)
        mock_audio_store.create_signed_url.assert_not_called()


class TestAudioJobs:
    def test_audio_job_transcribed_and_stored(
        self, job_store, make_provider, extract_reply, write_reply,
        mock_audio_store, mock_transcriber, sample_transcript_text,
    ) -> None:
        job = _claimed(job_store, Job(input_ref="uploads/u1/standup.m4a"))
        provider = make_provider([extract_reply, write_reply])

        report = _processor(job_store, provider, mock_audio_store, mock_transcriber).process(job)

        mock_audio_store.create_signed_url.assert_called_once_with("uploads/u1/standup.m4a", 600)
        temp_path = mock_audio_store.download.call_args.args[1]
        assert mock_transcriber.transcribe.call_args.args[0] == temp_path
        assert not os.path.exists(temp_path)

        meeting = job_store.get_meeting(report.output_ref)
        assert meeting.transcript_text == sample_transcript_text
        assert job_store.get_job(job.id).transcript_text == sample_transcript_text

    def test_audio_logs_bound_to_input_ref(
        self, job_store, make_provider, extract_reply, write_reply, mock_audio_store, mock_transcriber,
    ) -> None:
        job = _claimed(job_store, Job(input_ref=" uploads/a.m4a "))
        provider = make_provider([extract_reply, write_reply])

        with patch("services.job_processor.ContextualLogger") as mock_logger_cls:
            _processor(job_store, provider, mock_audio_store, mock_transcriber).process(job)

        log = mock_logger_cls.return_value
        log.bind.assert_called_once_with(input_ref="uploads/a.m4a")
        events = [c.args[0] for c in log.bind.return_value.info.call_args_list]
        assert events == ["audio_downloaded", "transcript_stored"]

    def test_blank_transcription(self, job_store, make_provider, mock_audio_store, mock_transcriber) -> None:
        mock_transcriber.transcribe.return_value = "   \n"
        job = _claimed(job_store, Job(input_ref="uploads/a.m4a"))
        provider = make_provider([])

        with pytest.raises(TranscriptionEmpty):
            _processor(job_store, provider, mock_audio_store, mock_transcriber).process(job)

        temp_path = mock_audio_store.download.call_args.args[1]
        assert not os.path.exists(temp_path)
        provider.complete.assert_not_called()

    def test_download_failure_cleans_up(self, job_store, make_provider, mock_transcriber) -> None:
        audio = MagicMock()
        audio.create_signed_url.return_value = "https://signed"
        audio.download.side_effect = DownloadFailure("HTTP 403")
        job = _claimed(job_store, Job(input_ref="uploads/a.m4a"))

        with pytest.raises(DownloadFailure):
            _processor(job_store, make_provider([]), audio, mock_transcriber).process(job)

        assert not os.path.exists(audio.download.call_args.args[1])
        mock_transcriber.transcribe.assert_not_called()

    def test_audio_without_storage_configured(self, job_store, make_provider) -> None:
        job = _claimed(job_store, Job(input_ref="uploads/a.m4a"))
        with pytest.raises(DownloadFailure, match="not configured"):
            _processor(job_store, make_provider([])).process(job)

    def test_existing_transcript_skips_download(
        self, job_store, make_provider, extract_reply, write_reply, mock_audio_store, mock_transcriber,
    ) -> None:
        job = _claimed(job_store, Job(input_ref="uploads/a.m4a", transcript_text="already done"))
        provider = make_provider([extract_reply, write_reply])

        _processor(job_store, provider, mock_audio_store, mock_transcriber).process(job)

        mock_audio_store.download.assert_not_called()
        mock_transcriber.transcribe.assert_not_called()


class TestPersistence:
    def test_store_error_wrapped(self, make_provider, extract_reply, write_reply, queued_text_job) -> None:
        store = MagicMock()
        store.complete_job.side_effect = ConnectionError("table unavailable")
        provider = make_provider([extract_reply, write_reply])

        with pytest.raises(PersistenceFailure, match="table unavailable"):
            _processor(store, provider).process(queued_text_job)

    def test_condition_failure_propagates(self, job_store, make_provider, extract_reply, write_reply) -> None:
        job = _claimed(job_store, Job(transcript_text="hello"))
        job_store.fail_job(job.id, "StaleProcessing: test")
        provider = make_provider([extract_reply, write_reply])

        with pytest.raises(PersistenceFailure):
            _processor(job_store, provider).process(job)
        assert job_store.get_job(job.id).status == JobStatus.ERROR
