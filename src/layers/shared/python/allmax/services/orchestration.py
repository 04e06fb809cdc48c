"""Hand-off from the intake gate to the AI orchestration service.

Validated, rate-limited submissions are queued on SQS; the orchestration
workers that call the generative-AI provider consume from that queue.
"""

import json
import os
from datetime import datetime, timezone

import boto3
import structlog
from botocore.exceptions import ClientError
from ulid import ULID

from allmax.utils.exceptions import ExternalServiceError
from allmax.validation.blueprint import SaveBlueprintRequest

logger = structlog.get_logger()


def generate_problem_id() -> str:
    """Generate a new ULID string for a submitted problem."""
    return str(ULID())


class OrchestrationQueue:
    """Publishes intake events for the AI orchestration workers."""

    def __init__(self, queue_url: str | None = None):
        """Initialize the queue publisher.

        Args:
            queue_url: SQS queue URL (defaults to AI_QUEUE_URL).
        """
        self.queue_url = queue_url or os.environ.get("AI_QUEUE_URL")
        self._sqs = None

    @property
    def sqs(self):
        """Get SQS client (lazy init)."""
        if self._sqs is None:
            self._sqs = boto3.client("sqs")
        return self._sqs

    def _send(self, message_type: str, payload: dict, group_key: str) -> str:
        if not self.queue_url:
            raise ExternalServiceError(
                service="ai_orchestration",
                message="AI orchestration queue is not configured",
            )

        body = {
            "type": message_type,
            "queued_at": datetime.now(timezone.utc).isoformat(),
            **payload,
        }

        try:
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(body),
                MessageAttributes={
                    "type": {"StringValue": message_type, "DataType": "String"},
                    "visitor": {"StringValue": group_key, "DataType": "String"},
                },
            )
        except ClientError as e:
            logger.error("Failed to queue intake message", type=message_type, error=str(e))
            raise ExternalServiceError(
                service="ai_orchestration",
                original_error=str(e),
            ) from e

        message_id = response.get("MessageId")
        logger.info("Intake message queued", type=message_type, message_id=message_id)
        return message_id

    def enqueue_problem(
        self,
        visitor_id: str,
        problem_text: str,
        domain: str | None = None,
        language: str = "en",
        problem_id: str | None = None,
    ) -> tuple[str, str]:
        """Queue a validated problem description for blueprint generation.

        Returns:
            Tuple of (problem_id, SQS message id).
        """
        problem_id = problem_id or generate_problem_id()
        message_id = self._send(
            "problem_submitted",
            {
                "problem_id": problem_id,
                "visitor_id": visitor_id,
                "problem_text": problem_text.strip(),
                "domain": domain,
                "language": language,
            },
            group_key=visitor_id,
        )
        return problem_id, message_id

    def enqueue_blueprint(self, request: SaveBlueprintRequest) -> str:
        """Queue a blueprint for saving and delivery to the lead."""
        return self._send(
            "blueprint_requested",
            request.model_dump(mode="json", by_alias=True),
            group_key=str(request.session_id),
        )
