#!/usr/bin/env python3
"""
Click-based CLI for the container build pipeline.

Runs the ECR repository reconciler outside Lambda (printing the completion
document instead of sending it, unless asked), inspects repositories, starts
CodeBuild image builds, and prints image URIs.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

import boto3
import click
from botocore.exceptions import BotoCoreError, ClientError

from container_build.codebuild import BuildRunner
from container_build.config import Settings
from container_build.ecr import EcrRepositoryStore
from container_build.errors import ContainerBuildError
from container_build.handler import RepositoryHandler, configure_logging
from container_build.images import default_lifecycle_policy_text, image_uri
from container_build.models import Operation, Status
from container_build.reconciler import RepositoryReconciler
from container_build.response import CompletionReporter, EchoReporter
from container_build.waiter import ConsistencyWaiter


def _resolve_region(explicit: str | None) -> str:
    region = (
        explicit or os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
    )
    if not region:
        raise click.UsageError(
            "AWS region not configured. Pass --region or export AWS_REGION."
        )
    return region


def _store(region: str) -> EcrRepositoryStore:
    return EcrRepositoryStore.from_region(region)


def _build_runner(region: str) -> BuildRunner:
    return BuildRunner.from_region(region)


def _account_id(region: str) -> str:
    sts = boto3.Session(region_name=region).client("sts")
    try:
        return sts.get_caller_identity()["Account"]
    except (BotoCoreError, ClientError) as exc:
        raise click.ClickException(f"Unable to resolve AWS account: {exc}") from exc


def _synthetic_event(
    *,
    request_type: str,
    repository_name: str,
    delete_policy: str | None,
    update_replace_policy: str | None,
    lifecycle_policy_text: str | None,
) -> dict:
    props: dict = {"RepositoryName": repository_name}
    if delete_policy:
        props["DeletePolicy"] = delete_policy
    if update_replace_policy:
        props["UpdateReplacePolicy"] = update_replace_policy
    if lifecycle_policy_text:
        props["LifecyclePolicy"] = {"LifecyclePolicyText": lifecycle_policy_text}
    return {
        "RequestType": request_type,
        "ResponseURL": "local",
        "StackId": "local",
        "RequestId": str(uuid.uuid4()),
        "LogicalResourceId": "ECRRepositoryHandler",
        "PhysicalResourceId": repository_name if request_type != "Create" else None,
        "ResourceProperties": props,
    }


@click.group(help="Container build pipeline helpers (ECR, CodeBuild).")
@click.option("--log-level", default="INFO", show_default=True, help="Logging level.")
def cli(log_level: str) -> None:
    """Create the root Click command group."""
    configure_logging(log_level.upper())


@cli.command("reconcile", help="Run one ECR repository reconciliation locally.")
@click.option(
    "--region", help="AWS region (defaults to AWS_REGION/AWS_DEFAULT_REGION)."
)
@click.option(
    "--event",
    "event_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Custom resource event JSON. Overrides the request options below.",
)
@click.option(
    "--request-type",
    type=click.Choice([op.value for op in Operation]),
    default="Create",
    show_default=True,
    help="Request type for a synthetic event.",
)
@click.option("--repository-name", help="Repository name for a synthetic event.")
@click.option("--delete-policy", help="DeletePolicy property (Retain keeps the repository).")
@click.option(
    "--update-replace-policy",
    help="UpdateReplacePolicy property (Retain skips replacement).",
)
@click.option(
    "--lifecycle-policy",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Lifecycle policy JSON file.",
)
@click.option(
    "--default-lifecycle-policy/--no-lifecycle-policy",
    default=True,
    show_default=True,
    help="Apply the keep-one-untagged-image policy when --lifecycle-policy is not given.",
)
@click.option(
    "--send/--echo",
    default=False,
    show_default=True,
    help="PUT the completion document to the event's ResponseURL instead of printing it.",
)
@click.option("--poll-interval", type=float, default=1.0, show_default=True)
@click.option("--max-attempts", type=int, default=25, show_default=True)
def reconcile(
    *,
    region: str | None,
    event_file: Path | None,
    request_type: str,
    repository_name: str | None,
    delete_policy: str | None,
    update_replace_policy: str | None,
    lifecycle_policy: Path | None,
    default_lifecycle_policy: bool,
    send: bool,
    poll_interval: float,
    max_attempts: int,
) -> None:
    """Reconcile once and exit non-zero on failure."""
    if event_file:
        event = json.loads(event_file.read_text(encoding="utf-8"))
    else:
        if not repository_name:
            raise click.UsageError("Pass --event or --repository-name.")
        if lifecycle_policy:
            policy_text = lifecycle_policy.read_text(encoding="utf-8")
        elif default_lifecycle_policy:
            policy_text = default_lifecycle_policy_text()
        else:
            policy_text = None
        event = _synthetic_event(
            request_type=request_type,
            repository_name=repository_name,
            delete_policy=delete_policy,
            update_replace_policy=update_replace_policy,
            lifecycle_policy_text=policy_text,
        )

    try:
        settings = Settings(
            poll_interval=poll_interval,
            max_attempts=max_attempts,
            region=_resolve_region(region),
            # No Lambda timeout applies to a local run.
            handler_timeout=float("inf"),
        )
        store = _store(settings.region)
        waiter = ConsistencyWaiter(
            store,
            poll_interval=settings.poll_interval,
            max_attempts=settings.max_attempts,
        )
        reporter = (
            CompletionReporter(timeout=settings.response_timeout) if send else EchoReporter()
        )
        outcome = RepositoryHandler(RepositoryReconciler(store, waiter), reporter).handle(event)
    except ContainerBuildError as exc:
        raise click.ClickException(str(exc)) from exc

    if outcome.status is not Status.SUCCESS:
        raise click.ClickException(outcome.reason or "Reconciliation failed")


@cli.command("status", help="Show whether a repository exists and its lifecycle policy.")
@click.argument("repository_name")
@click.option(
    "--region", help="AWS region (defaults to AWS_REGION/AWS_DEFAULT_REGION)."
)
def show_status(*, repository_name: str, region: str | None) -> None:
    store = _store(_resolve_region(region))
    try:
        if not store.exists(repository_name):
            click.echo(f"Repository {repository_name}: absent")
            return
        repository = store.describe(repository_name)
        policy = store.lifecycle_policy(repository_name)
    except ContainerBuildError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Repository {repository_name}: exists")
    click.echo(f"  ARN: {repository.get('repositoryArn', '?')}")
    click.echo(f"  URI: {repository.get('repositoryUri', '?')}")
    if policy:
        click.echo("  Lifecycle policy:")
        for line in json.dumps(json.loads(policy), indent=2).splitlines():
            click.echo(f"    {line}")
    else:
        click.echo("  Lifecycle policy: none")


@cli.command("build", help="Start a CodeBuild build for an image project and wait for it.")
@click.argument("project")
@click.option(
    "--region", help="AWS region (defaults to AWS_REGION/AWS_DEFAULT_REGION)."
)
@click.option("--source-version", help="Branch, tag, or commit to build.")
@click.option(
    "--wait/--no-wait", default=True, show_default=True, help="Wait for the build to finish."
)
def run_build(*, project: str, region: str | None, source_version: str | None, wait: bool) -> None:
    runner = _build_runner(_resolve_region(region))

    def echo_phase(build: dict) -> None:
        click.echo(f"  {build.get('currentPhase', '?'):<20} {build['buildStatus']}")

    try:
        build_id = runner.start(project, source_version=source_version)
        click.echo(f"Started build {build_id}")
        if not wait:
            return
        build = runner.wait(build_id, on_poll=echo_phase)
    except ContainerBuildError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Build succeeded at {_fmt_timestamp(build.get('endTime'))}")


@cli.command("image-uri", help="Print the ECR image URI for an image name and tag.")
@click.argument("image_name")
@click.argument("image_tag", required=False)
@click.option(
    "--region", help="AWS region (defaults to AWS_REGION/AWS_DEFAULT_REGION)."
)
@click.option("--account-id", help="AWS account ID (defaults to the caller's account).")
def show_image_uri(
    *, image_name: str, image_tag: str | None, region: str | None, account_id: str | None
) -> None:
    resolved_region = _resolve_region(region)
    click.echo(image_uri(account_id or _account_id(resolved_region), resolved_region, image_name, image_tag))


def _fmt_timestamp(value: datetime | None) -> str:
    if not value:
        return "n/a"
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
