"""Tests for OrchestrationQueue."""

import json
import os
import uuid
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from allmax.services.orchestration import OrchestrationQueue, generate_problem_id
from allmax.utils.exceptions import ExternalServiceError
from allmax.validation.blueprint import validate_blueprint


def _make_queue(sqs_mock=None):
    queue = OrchestrationQueue(queue_url="https://sqs/test")
    queue._sqs = sqs_mock or MagicMock()
    queue._sqs.send_message.return_value = {"MessageId": "msg-123"}
    return queue


class TestEnqueueProblem:
    """Tests for queuing validated problems."""

    def test_enqueue_problem(self):
        queue = _make_queue()

        problem_id, message_id = queue.enqueue_problem(
            visitor_id="v_1",
            problem_text="  Our stock counts drift every single day  ",
            domain="business",
            language="pt-BR",
        )

        assert message_id == "msg-123"
        assert len(problem_id) == 26

        kwargs = queue.sqs.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == "https://sqs/test"
        body = json.loads(kwargs["MessageBody"])
        assert body["type"] == "problem_submitted"
        assert body["problem_id"] == problem_id
        assert body["visitor_id"] == "v_1"
        assert body["problem_text"] == "Our stock counts drift every single day"
        assert body["domain"] == "business"
        assert body["language"] == "pt-BR"
        assert kwargs["MessageAttributes"]["type"]["StringValue"] == "problem_submitted"

    def test_explicit_problem_id(self):
        queue = _make_queue()

        problem_id, _ = queue.enqueue_problem("v_1", "text", problem_id="p-1")

        assert problem_id == "p-1"

    @patch.dict(os.environ, {"AI_QUEUE_URL": ""})
    def test_no_queue_configured(self):
        queue = OrchestrationQueue()

        with pytest.raises(ExternalServiceError) as exc_info:
            queue.enqueue_problem("v_1", "text")

        assert exc_info.value.status_code == 502
        assert exc_info.value.details["service"] == "ai_orchestration"

    @patch.dict(os.environ, {"AI_QUEUE_URL": "https://sqs/from-env"})
    def test_queue_url_from_env(self):
        assert OrchestrationQueue().queue_url == "https://sqs/from-env"

    def test_sqs_error_wrapped(self):
        queue = _make_queue()
        queue.sqs.send_message.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}},
            "SendMessage",
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            queue.enqueue_problem("v_1", "text")

        assert "AccessDenied" in exc_info.value.details["original_error"]


class TestEnqueueBlueprint:
    """Tests for queuing blueprint deliveries."""

    def test_enqueue_blueprint(self):
        session_id = str(uuid.uuid4())
        request, _ = validate_blueprint({
            "session_id": session_id,
            "email": "lead@example.com",
            "name": "Ana",
            "blueprint": {
                "title": "Blueprint",
                "executive_summary": "A summary long enough.",
                "problem_statement": "A problem long enough.",
                "architecture_layers": [{"name": "API"}],
                "technical_architecture": "Serverless",
            },
        })
        queue = _make_queue()

        message_id = queue.enqueue_blueprint(request)

        assert message_id == "msg-123"
        body = json.loads(queue.sqs.send_message.call_args.kwargs["MessageBody"])
        assert body["type"] == "blueprint_requested"
        assert body["session_id"] == session_id
        assert body["email"] == "lead@example.com"
        assert body["blueprint"]["technicalArchitecture"] == "Serverless"


def test_generate_problem_id_unique():
    assert generate_problem_id() != generate_problem_id()
