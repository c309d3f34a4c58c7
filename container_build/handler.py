"""
Lambda entry point for the ECR repository custom resource.

Environment variables:
  - POLL_INTERVAL_SECONDS: Seconds between ECR consistency polls (default 1)
  - MAX_ATTEMPTS: Polls before a wait gives up (default 25)
  - RESPONSE_TIMEOUT_SECONDS: Timeout for the completion PUT (default 10)
  - HANDLER_TIMEOUT_SECONDS: Lambda timeout the polling must fit in (default 60)
  - LOG_LEVEL: Logging level for the handler (default INFO)
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from botocore.exceptions import BotoCoreError

from container_build.config import Settings
from container_build.ecr import EcrRepositoryStore
from container_build.errors import ConfigurationError, ContainerBuildError
from container_build.models import Invocation, Outcome
from container_build.reconciler import RepositoryReconciler
from container_build.response import CompletionReporter
from container_build.waiter import ConsistencyWaiter

logger = logging.getLogger(__name__)


class RepositoryHandler:
    """Run one reconciliation and report its outcome exactly once."""

    def __init__(self, reconciler: RepositoryReconciler, reporter: CompletionReporter) -> None:
        self.reconciler = reconciler
        self.reporter = reporter

    @classmethod
    def from_settings(cls, settings: Settings) -> "RepositoryHandler":
        store = EcrRepositoryStore.from_region(settings.region)
        waiter = ConsistencyWaiter(
            store,
            poll_interval=settings.poll_interval,
            max_attempts=settings.max_attempts,
        )
        return cls(
            RepositoryReconciler(store, waiter),
            CompletionReporter(timeout=settings.response_timeout),
        )

    def handle(self, event: Mapping[str, Any], context: Any = None) -> Outcome:
        # Without a ResponseURL there is nowhere to report; let this raise.
        invocation = Invocation.from_event(event, context)

        outcome = Outcome.failure("Reconciliation did not complete")
        try:
            data = self.reconciler.reconcile(invocation)
            outcome = Outcome.success(data)
        except ContainerBuildError as exc:
            logger.error("%s %s failed: %s", invocation.request_type, invocation.logical_resource_id, exc)
            outcome = Outcome.failure(str(exc))
        except Exception as exc:
            logger.exception("Unexpected error handling %s", invocation.logical_resource_id)
            outcome = Outcome.failure(f"Unexpected error: {exc}")
        finally:
            self.reporter.report(invocation, outcome)
        return outcome


class _Unconfigured:
    """Stands in for the reconciler when the handler cannot be set up, so the failure is still reported."""

    def __init__(self, error: ConfigurationError) -> None:
        self.error = error

    def reconcile(self, invocation: Invocation) -> None:
        raise self.error


def build_handler(environ: Mapping[str, str] | None = None) -> RepositoryHandler:
    try:
        settings = Settings.from_env(environ)
    except ConfigurationError as exc:
        logger.error("Invalid handler settings: %s", exc)
        return RepositoryHandler(_Unconfigured(exc), CompletionReporter())
    configure_logging(settings.log_level)
    try:
        return RepositoryHandler.from_settings(settings)
    except BotoCoreError as exc:
        logger.error("Unable to create ECR client: %s", exc)
        error = ConfigurationError(f"Unable to create ECR client: {exc}")
        return RepositoryHandler(_Unconfigured(error), CompletionReporter())


def configure_logging(level: str) -> None:
    logging.getLogger("container_build").setLevel(level)
    # The Lambda runtime installs a root handler; add one for local runs.
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def handler(event, context):
    """Main Lambda handler for Custom::ECRRepositoryHandler events."""
    outcome = build_handler().handle(event, context)
    return {"Status": outcome.status.value}
