"""
Lifecycle reconciler for the ECR repository custom resource.

CloudFormation's AWS::ECR::Repository cannot retain a repository on delete
or on replacement, so the repository is managed here instead:

    Create  create (or adopt an existing repository), then apply the
            lifecycle policy
    Update  UpdateReplacePolicy=Retain: reapply the lifecycle policy only;
            otherwise run Delete followed by Create
    Delete  DeletePolicy=Retain: leave the repository alone; otherwise force
            delete and wait until it is gone

Nothing is remembered between invocations. Every decision is made from the
event and a fresh read of ECR.
"""

from __future__ import annotations

import logging
from typing import Protocol

from container_build.errors import AlreadyExists, NotFound
from container_build.models import DesiredProperties, Invocation, Operation, RepositoryState
from container_build.waiter import ConsistencyWaiter

logger = logging.getLogger(__name__)


class RepositoryStore(Protocol):
    def exists(self, name: str) -> bool: ...

    def describe(self, name: str) -> dict: ...

    def create(self, name: str) -> dict: ...

    def delete(self, name: str, force: bool = True) -> None: ...

    def apply_retention_policy(self, name: str, policy_text: str) -> None: ...


class RepositoryReconciler:
    def __init__(self, store: RepositoryStore, waiter: ConsistencyWaiter) -> None:
        self.store = store
        self.waiter = waiter

    def reconcile(self, invocation: Invocation) -> dict[str, str] | None:
        """Converge ECR toward the invocation; return result data for the response.

        Raises a ContainerBuildError subclass on any failure. An unknown
        request type is rejected before ECR is touched.
        """
        operation = Operation.parse(invocation.request_type)
        desired = invocation.desired
        logger.info(
            "%s repository %s (DeletePolicy=%s, UpdateReplacePolicy=%s)",
            operation.value,
            desired.repository_name,
            desired.delete_policy,
            desired.update_replace_policy,
        )

        if operation is Operation.CREATE:
            return self.create(desired)
        elif operation is Operation.UPDATE:
            return self.update(desired)
        elif operation is Operation.DELETE:
            self.delete(desired)
            return None
        raise AssertionError(f"unhandled operation {operation}")

    def create(self, desired: DesiredProperties) -> dict[str, str]:
        name = desired.repository_name
        try:
            self.store.create(name)
        except AlreadyExists:
            logger.info("Repository '%s' already exists - CREATE ignored", name)
        else:
            self.waiter.wait_until(name, RepositoryState.EXISTS)

        self._put_lifecycle_policy(desired)
        return self._result_data(name)

    def update(self, desired: DesiredProperties) -> dict[str, str] | None:
        if desired.retain_on_replace:
            self._put_lifecycle_policy(desired)
            try:
                return self._result_data(desired.repository_name)
            except NotFound:
                logger.info(
                    "Repository '%s' not found - retained UPDATE returns no data",
                    desired.repository_name,
                )
                return None

        logger.info("Replacing repository %s", desired.repository_name)
        self.delete(desired)
        return self.create(desired)

    def delete(self, desired: DesiredProperties) -> None:
        name = desired.repository_name
        if desired.retain_on_delete:
            logger.info("Retaining repository '%s' - DELETE ignored", name)
            return

        try:
            self.store.delete(name, force=True)
        except NotFound:
            logger.info("Repository '%s' already absent", name)
            return
        self.waiter.wait_until(name, RepositoryState.ABSENT)

    def _put_lifecycle_policy(self, desired: DesiredProperties) -> None:
        if desired.lifecycle_policy_text:
            self.store.apply_retention_policy(
                desired.repository_name, desired.lifecycle_policy_text
            )

    def _result_data(self, name: str) -> dict[str, str]:
        repository = self.store.describe(name)
        return {
            "Arn": repository.get("repositoryArn", ""),
            "RepositoryUri": repository.get("repositoryUri", ""),
        }
