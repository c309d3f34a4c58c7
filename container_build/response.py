"""Completion signal for CloudFormation custom resources.

CloudFormation waits for a JSON document PUT to the pre-signed ResponseURL
carried by each event. The URL is signed without a content type, so the
request must send an empty one.
"""

from __future__ import annotations

import json
import logging

import click
import httpx

from container_build.errors import ReportDeliveryError
from container_build.models import Invocation, Outcome

logger = logging.getLogger(__name__)


def physical_resource_id(invocation: Invocation) -> str:
    """Keep the id CloudFormation already knows; a new id means replacement."""
    return (
        invocation.physical_resource_id
        or invocation.repository_name
        or invocation.log_stream_name
    )


def build_response(invocation: Invocation, outcome: Outcome) -> dict:
    reason = f"See the details in CloudWatch Log Stream: {invocation.log_stream_name}"
    if outcome.reason:
        reason = f"{outcome.reason}. {reason}"
    return {
        "Status": outcome.status.value,
        "Reason": reason,
        "PhysicalResourceId": physical_resource_id(invocation),
        "StackId": invocation.stack_id,
        "RequestId": invocation.request_id,
        "LogicalResourceId": invocation.logical_resource_id,
        "NoEcho": False,
        "Data": outcome.data or {},
    }


class CompletionReporter:
    """Deliver one completion document per invocation.

    Without an injected client, each report opens its own client and closes
    it once the PUT is done.
    """

    def __init__(self, http_client: httpx.Client | None = None, *, timeout: float = 10.0) -> None:
        self.http_client = http_client
        self.timeout = timeout

    def report(self, invocation: Invocation, outcome: Outcome) -> None:
        body = json.dumps(build_response(invocation, outcome))
        logger.info("Reporting %s for %s", outcome.status.value, invocation.logical_resource_id)
        try:
            if self.http_client is not None:
                response = self._put(self.http_client, invocation.response_url, body)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = self._put(client, invocation.response_url, body)
        except httpx.HTTPError as exc:
            logger.error("Failed to deliver completion signal: %s", exc)
            raise ReportDeliveryError(f"Unable to deliver completion signal: {exc}") from exc
        logger.debug("Completion signal accepted with status %s", response.status_code)

    @staticmethod
    def _put(client: httpx.Client, url: str, body: str) -> httpx.Response:
        response = client.put(url, content=body.encode("utf-8"), headers={"content-type": ""})
        response.raise_for_status()
        return response


class EchoReporter(CompletionReporter):
    """Print the completion document instead of sending it (local runs)."""

    def report(self, invocation: Invocation, outcome: Outcome) -> None:
        click.echo(json.dumps(build_response(invocation, outcome), indent=2))
