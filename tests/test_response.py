import json

import httpx
import pytest

from conftest import FakeContext, make_event
from container_build.errors import ReportDeliveryError
from container_build.models import Invocation, Outcome
from container_build.response import CompletionReporter, EchoReporter, build_response


def _reporter(status_code: int = 200):
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=status_code)

    client = httpx.Client(transport=httpx.MockTransport(_handler))
    return CompletionReporter(client), requests


def test_success_document_is_put_to_response_url():
    reporter, requests = _reporter()
    invocation = Invocation.from_event(make_event("Create"), FakeContext())

    reporter.report(invocation, Outcome.success({"Arn": "arn:aws:ecr:us-east-1:1:repository/app"}))

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "PUT"
    assert str(request.url) == invocation.response_url
    assert request.headers["content-type"] == ""
    body = json.loads(request.content)
    assert body == {
        "Status": "SUCCESS",
        "Reason": f"See the details in CloudWatch Log Stream: {FakeContext.log_stream_name}",
        "PhysicalResourceId": "app",
        "StackId": invocation.stack_id,
        "RequestId": "request-1",
        "LogicalResourceId": "ECRRepositoryHandler",
        "NoEcho": False,
        "Data": {"Arn": "arn:aws:ecr:us-east-1:1:repository/app"},
    }


def test_failure_document_carries_reason_and_empty_data():
    invocation = Invocation.from_event(make_event("Delete"))

    body = build_response(invocation, Outcome.failure("Repository 'app' not deleted after 5 attempts"))

    assert body["Status"] == "FAILED"
    assert body["Reason"].startswith("Repository 'app' not deleted after 5 attempts. ")
    assert body["Data"] == {}


@pytest.mark.parametrize(
    ("physical_id", "name", "expected"),
    [
        ("existing-id", "app", "existing-id"),
        (None, "app", "app"),
        (None, None, FakeContext.log_stream_name),
    ],
)
def test_physical_resource_id_fallbacks(physical_id, name, expected):
    event = make_event("Create", name=name)
    if physical_id:
        event["PhysicalResourceId"] = physical_id
    invocation = Invocation.from_event(event, FakeContext())

    assert build_response(invocation, Outcome.success())["PhysicalResourceId"] == expected


def test_rejected_delivery_raises():
    reporter, requests = _reporter(status_code=403)
    invocation = Invocation.from_event(make_event("Create"))

    with pytest.raises(ReportDeliveryError):
        reporter.report(invocation, Outcome.success())

    assert len(requests) == 1


def test_echo_reporter_prints_document(capsys):
    invocation = Invocation.from_event(make_event("Create"))

    EchoReporter().report(invocation, Outcome.success())

    printed = json.loads(capsys.readouterr().out)
    assert printed["Status"] == "SUCCESS"
    assert printed["PhysicalResourceId"] == "app"


def test_default_client_is_closed_after_report(monkeypatch):
    real_client = httpx.Client
    created: list[httpx.Client] = []

    def _client(**kwargs) -> httpx.Client:
        client = real_client(transport=httpx.MockTransport(lambda request: httpx.Response(200)), **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(httpx, "Client", _client)
    invocation = Invocation.from_event(make_event("Create"))

    CompletionReporter(timeout=3.0).report(invocation, Outcome.success())

    assert len(created) == 1
    assert created[0].is_closed
    assert created[0].timeout.connect == 3.0
