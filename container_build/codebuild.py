"""Start a CodeBuild build for a container image and wait for it to finish."""

from __future__ import annotations

import logging
import time
from typing import Callable

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from container_build.errors import BuildFailed, ContainerBuildError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"SUCCEEDED", "FAILED", "FAULT", "TIMED_OUT", "STOPPED"}


class BuildRunner:
    """Submit and monitor CodeBuild builds for an image project."""

    def __init__(
        self,
        client: BaseClient,
        *,
        poll_seconds: float = 15,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.poll_seconds = poll_seconds
        self.sleep = sleep

    @classmethod
    def from_region(cls, region: str | None = None, **kwargs) -> "BuildRunner":
        session = boto3.Session(region_name=region or None)
        return cls(session.client("codebuild"), **kwargs)

    def start(self, project: str, *, source_version: str | None = None) -> str:
        """Start a build and return its ID."""
        params = {"projectName": project}
        if source_version:
            params["sourceVersion"] = source_version
        try:
            response = self.client.start_build(**params)
        except (BotoCoreError, ClientError) as exc:
            raise ContainerBuildError(f"Unable to start build for {project}: {exc}") from exc
        build_id = response["build"]["id"]
        logger.info("Started build %s", build_id)
        return build_id

    def wait(self, build_id: str, *, on_poll: Callable[[dict], None] | None = None) -> dict:
        """Poll until the build reaches a terminal state; raise BuildFailed unless it succeeded."""
        while True:
            build = self._describe_build(build_id)
            if on_poll:
                on_poll(build)
            status = build["buildStatus"]
            if status in TERMINAL_STATUSES:
                if status != "SUCCEEDED":
                    raise BuildFailed(build_id, status)
                logger.info("Build %s succeeded", build_id)
                return build
            self.sleep(self.poll_seconds)

    def run(self, project: str, *, source_version: str | None = None, **kwargs) -> dict:
        build_id = self.start(project, source_version=source_version)
        return self.wait(build_id, **kwargs)

    def _describe_build(self, build_id: str) -> dict:
        try:
            builds = self.client.batch_get_builds(ids=[build_id])["builds"]
        except (BotoCoreError, ClientError) as exc:
            raise ContainerBuildError(f"Unable to describe build {build_id}: {exc}") from exc
        if not builds:
            raise ContainerBuildError(f"Unable to describe build {build_id}")
        return builds[0]
