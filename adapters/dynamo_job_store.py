"""
DynamoDB-backed job store adapter.

Implements JobStorePort using boto3 for two tables:

* jobs:     partition key ``id``; GSI ``status-created_at-index``
              (partition ``status``, sort ``created_at``) serves the FIFO
              queue lookup.
* meetings: partition key ``meeting_id``; one item per produced artifact.

Every status change is an ``UpdateItem`` guarded by a ``ConditionExpression``
on the current status, so racing workers resolve to a single winner. The
``done`` commit writes the meeting item and the job update in one
``TransactWriteItems`` call.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from domain.models import (
    Job, JobStatus, MeetingArtifact, PipelineResult, to_iso, transition_source, utc_now
)
from shared_utils.constants import Defaults, DynamoConfig, LogScope
from shared_utils.error_handler import PersistenceFailure
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)

_CONDITION_FAILED = "ConditionalCheckFailedException"
_TRANSACTION_CANCELED = "TransactionCanceledException"


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class DynamoJobStoreAdapter:
    """Amazon DynamoDB implementation of JobStorePort."""

    def __init__(
        self,
        jobs_table: str = DynamoConfig.JOBS_TABLE,
        meetings_table: str = DynamoConfig.MEETINGS_TABLE,
        status_index: str = DynamoConfig.STATUS_INDEX,
        region: str = "eu-west-2",
        endpoint_url: str = "",
        dynamodb_resource: Optional[object] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._jobs_table_name = jobs_table
        self._meetings_table_name = meetings_table
        self._status_index = status_index
        resource_kwargs: dict = {"region_name": region}
        if endpoint_url:
            resource_kwargs["endpoint_url"] = endpoint_url
        self._dynamo = dynamodb_resource or boto3.resource(
            "dynamodb", **resource_kwargs
        )
        self._jobs = self._dynamo.Table(jobs_table)
        self._meetings = self._dynamo.Table(meetings_table)
        self._client = self._dynamo.meta.client
        self._serializer = TypeSerializer()
        self._clock = clock

    # ------------------------------------------------------------------
    # JobStorePort implementation
    # ------------------------------------------------------------------

    def insert_job(self, job: Job) -> Job:
        """Put a new job item; refuses to overwrite an existing id."""
        try:
            self._jobs.put_item(
                Item=self._to_job_item(job),
                ConditionExpression=Attr("id").not_exists(),
            )
            logger.info("dynamo_job_inserted", job_id=job.id, status=job.status.value)
            return job
        except ClientError as exc:
            logger.error("dynamo_insert_job_failed", job_id=job.id, error=str(exc))
            raise PersistenceFailure(
                f"Failed to insert job: {exc}", context={"job_id": job.id}
            ) from exc

    def get_job(self, job_id: str) -> Optional[Job]:
        try:
            response = self._jobs.get_item(Key={"id": job_id}, ConsistentRead=True)
        except ClientError as exc:
            logger.error("dynamo_get_job_failed", job_id=job_id, error=str(exc))
            raise PersistenceFailure(
                f"Failed to get job: {exc}", context={"job_id": job_id}
            ) from exc
        item = response.get("Item")
        return self._from_job_item(item) if item else None

    def next_queued_job(self) -> Optional[Job]:
        """Query the status index for the oldest queued job.

        The index is eventually consistent; a stale hit simply loses the
        subsequent conditional claim.
        """
        try:
            response = self._jobs.query(
                IndexName=self._status_index,
                KeyConditionExpression=Key("status").eq(JobStatus.QUEUED.value),
                ScanIndexForward=True,
                Limit=1,
            )
        except ClientError as exc:
            logger.error("dynamo_next_queued_failed", error=str(exc))
            raise PersistenceFailure(f"Failed to query queued jobs: {exc}") from exc
        items = response.get("Items", [])
        return self._from_job_item(items[0]) if items else None

    def claim_job(self, job_id: str) -> bool:
        try:
            self._jobs.update_item(
                Key={"id": job_id},
                UpdateExpression="SET #status = :processing, updated_at = :t",
                ConditionExpression="#status = :queued",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":processing": JobStatus.PROCESSING.value,
                    ":queued": transition_source(JobStatus.PROCESSING).value,
                    ":t": self._now(),
                },
            )
        except ClientError as exc:
            if _error_code(exc) == _CONDITION_FAILED:
                logger.info("dynamo_claim_lost", job_id=job_id)
                return False
            logger.error("dynamo_claim_failed", job_id=job_id, error=str(exc))
            raise PersistenceFailure(
                f"Failed to claim job: {exc}", context={"job_id": job_id}
            ) from exc
        logger.info("dynamo_job_claimed", job_id=job_id)
        return True

    def set_transcript(self, job_id: str, transcript_text: str) -> None:
        try:
            self._jobs.update_item(
                Key={"id": job_id},
                UpdateExpression="SET transcript_text = :text, updated_at = :t",
                ConditionExpression="#status = :processing",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":text": transcript_text,
                    ":processing": JobStatus.PROCESSING.value,
                    ":t": self._now(),
                },
            )
        except ClientError as exc:
            logger.error("dynamo_set_transcript_failed", job_id=job_id, error=str(exc))
            raise PersistenceFailure(
                f"Failed to store transcript: {exc}", context={"job_id": job_id}
            ) from exc

    def complete_job(self, job_id: str, artifact: MeetingArtifact) -> Job:
        now = self._now()
        meeting_item = self._serialize(self._to_meeting_item(artifact))
        try:
            self._client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self._meetings_table_name,
                            "Item": meeting_item,
                            "ConditionExpression": "attribute_not_exists(meeting_id)",
                        }
                    },
                    {
                        "Update": {
                            "TableName": self._jobs_table_name,
                            "Key": self._serialize({"id": job_id}),
                            "UpdateExpression": (
                                "SET #status = :done, output_ref = :ref, updated_at = :t "
                                "REMOVE #error"
                            ),
                            "ConditionExpression": "#status = :processing",
                            "ExpressionAttributeNames": {
                                "#status": "status",
                                "#error": "error",
                            },
                            "ExpressionAttributeValues": self._serialize(
                                {
                                    ":done": JobStatus.DONE.value,
                                    ":processing": transition_source(JobStatus.DONE).value,
                                    ":ref": artifact.meeting_id,
                                    ":t": now,
                                }
                            ),
                        }
                    },
                ]
            )
        except ClientError as exc:
            reason = (
                "job no longer processing or meeting id taken"
                if _error_code(exc) == _TRANSACTION_CANCELED
                else str(exc)
            )
            logger.error("dynamo_complete_job_failed", job_id=job_id, error=reason)
            raise PersistenceFailure(
                f"Failed to commit job result: {reason}",
                context={"job_id": job_id, "meeting_id": artifact.meeting_id},
            ) from exc

        logger.info(
            "dynamo_job_completed",
            job_id=job_id,
            meeting_id=artifact.meeting_id,
        )
        job = self.get_job(job_id)
        if job is None:
            raise PersistenceFailure(
                f"Job {job_id} vanished after commit", context={"job_id": job_id}
            )
        return job

    def fail_job(self, job_id: str, error_message: str) -> bool:
        try:
            self._jobs.update_item(
                Key={"id": job_id},
                UpdateExpression="SET #status = :error, #error = :msg, updated_at = :t REMOVE output_ref",
                ConditionExpression="#status = :processing",
                ExpressionAttributeNames={"#status": "status", "#error": "error"},
                ExpressionAttributeValues={
                    ":error": JobStatus.ERROR.value,
                    ":processing": transition_source(JobStatus.ERROR).value,
                    ":msg": error_message,
                    ":t": self._now(),
                },
            )
        except ClientError as exc:
            if _error_code(exc) == _CONDITION_FAILED:
                logger.warning("dynamo_fail_skipped", job_id=job_id)
                return False
            logger.error("dynamo_fail_job_failed", job_id=job_id, error=str(exc))
            raise PersistenceFailure(
                f"Failed to record job error: {exc}", context={"job_id": job_id}
            ) from exc
        logger.info("dynamo_job_failed", job_id=job_id)
        return True

    def fail_stale_jobs(self, older_than: datetime, error_message: str) -> List[str]:
        cutoff = to_iso(older_than)
        query_kwargs: Dict[str, Any] = {
            "IndexName": self._status_index,
            "KeyConditionExpression": Key("status").eq(JobStatus.PROCESSING.value),
            "FilterExpression": Attr("updated_at").lt(cutoff),
        }
        candidates: List[str] = []
        try:
            while True:
                response = self._jobs.query(**query_kwargs)
                candidates.extend(item["id"] for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if last_key is None:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as exc:
            logger.error("dynamo_stale_query_failed", error=str(exc))
            raise PersistenceFailure(f"Failed to query stale jobs: {exc}") from exc

        failed: List[str] = []
        for job_id in candidates:
            try:
                self._jobs.update_item(
                    Key={"id": job_id},
                    UpdateExpression="SET #status = :error, #error = :msg, updated_at = :t",
                    ConditionExpression="#status = :processing AND updated_at < :cutoff",
                    ExpressionAttributeNames={"#status": "status", "#error": "error"},
                    ExpressionAttributeValues={
                        ":error": JobStatus.ERROR.value,
                        ":processing": transition_source(JobStatus.ERROR).value,
                        ":msg": error_message,
                        ":cutoff": cutoff,
                        ":t": self._now(),
                    },
                )
                failed.append(job_id)
            except ClientError as exc:
                if _error_code(exc) != _CONDITION_FAILED:
                    raise PersistenceFailure(
                        f"Failed to fail stale job: {exc}", context={"job_id": job_id}
                    ) from exc
        if failed:
            logger.warning("dynamo_stale_jobs_failed", job_ids=failed)
        return failed

    def get_meeting(self, meeting_id: str) -> Optional[MeetingArtifact]:
        try:
            response = self._meetings.get_item(Key={"meeting_id": meeting_id})
        except ClientError as exc:
            logger.error("dynamo_get_meeting_failed", meeting_id=meeting_id, error=str(exc))
            raise PersistenceFailure(
                f"Failed to get meeting: {exc}", context={"meeting_id": meeting_id}
            ) from exc
        item = response.get("Item")
        return self._from_meeting_item(item) if item else None

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def _now(self) -> str:
        return to_iso(self._clock())

    def _serialize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Plain dict → low-level attribute-value dict for the client API."""
        return {k: self._serializer.serialize(v) for k, v in values.items()}

    @staticmethod
    def _to_job_item(job: Job) -> Dict[str, Any]:
        """Convert domain Job → DynamoDB item (null attributes omitted)."""
        item: Dict[str, Any] = {
            "id": job.id,
            "status": job.status.value,
            "meeting_mode": job.meeting_mode,
            "created_at": job.created_at,
            "updated_at": job.updated_at,
        }
        for field in ("input_ref", "transcript_text", "output_ref", "error"):
            value = getattr(job, field)
            if value is not None:
                item[field] = value
        return item

    @staticmethod
    def _from_job_item(item: Dict[str, Any]) -> Job:
        return Job(
            id=item["id"],
            status=JobStatus(item.get("status", JobStatus.QUEUED.value)),
            input_ref=item.get("input_ref"),
            transcript_text=item.get("transcript_text"),
            meeting_mode=item.get("meeting_mode", Defaults.MEETING_MODE),
            output_ref=item.get("output_ref"),
            error=item.get("error"),
            created_at=item.get("created_at", ""),
            updated_at=item.get("updated_at", ""),
        )

    @staticmethod
    def _to_meeting_item(artifact: MeetingArtifact) -> Dict[str, Any]:
        # The result is stored as a JSON string: DynamoDB rejects Python
        # floats, and the artifact is only ever read back whole.
        return {
            "meeting_id": artifact.meeting_id,
            "job_id": artifact.job_id,
            "title": artifact.title,
            "summary_json": artifact.result.model_dump_json(),
            "transcript_text": artifact.transcript_text,
            "meeting_mode": artifact.meeting_mode,
            "created_at": artifact.created_at,
        }

    @staticmethod
    def _from_meeting_item(item: Dict[str, Any]) -> MeetingArtifact:
        return MeetingArtifact(
            meeting_id=item["meeting_id"],
            job_id=item.get("job_id", ""),
            title=item.get("title", ""),
            result=PipelineResult.model_validate(json.loads(item["summary_json"])),
            transcript_text=item.get("transcript_text", ""),
            meeting_mode=item.get("meeting_mode", Defaults.MEETING_MODE),
            created_at=item.get("created_at", ""),
        )
