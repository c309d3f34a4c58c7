from __future__ import annotations

import pytest

from container_build.errors import AlreadyExists, NotFound
from container_build.handler import RepositoryHandler
from container_build.reconciler import RepositoryReconciler
from container_build.waiter import ConsistencyWaiter

ACCOUNT_ID = "123456789012"
REGION = "us-east-1"

POLICY_TEXT = '{"rules": [{"rulePriority": 1, "action": {"type": "expire"}}]}'


class FakeRepositoryStore:
    """In-memory ECR with optional read-after-write lag.

    `create_lag`/`delete_lag` is the number of `exists` polls that still see
    the old state after a create/delete. `creations` counts every repository
    ever created, so a replacement shows up as a new generation.
    """

    def __init__(self, *, create_lag: int = 0, delete_lag: int = 0) -> None:
        self.repositories: dict[str, dict] = {}
        self.policies: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.creations = 0
        self.create_lag = create_lag
        self.delete_lag = delete_lag
        self.fail_on: dict[str, Exception] = {}
        self._stale: dict[str, int] = {}

    def add(self, name: str) -> None:
        """Seed a repository that was created out of band."""
        self.repositories[name] = self._record(name, generation=0)

    def mutations(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in {"create", "delete", "apply_retention_policy"}]

    def count(self, method: str) -> int:
        return sum(1 for called, _ in self.calls if called == method)

    def exists(self, name: str) -> bool:
        self._call("exists", name)
        actual = name in self.repositories
        remaining = self._stale.get(name, 0)
        if remaining:
            self._stale[name] = remaining - 1
            return not actual
        return actual

    def describe(self, name: str) -> dict:
        self._call("describe", name)
        if name not in self.repositories:
            raise NotFound(name)
        return dict(self.repositories[name])

    def create(self, name: str) -> dict:
        self._call("create", name)
        if name in self.repositories:
            raise AlreadyExists(name)
        self.creations += 1
        self.repositories[name] = self._record(name, generation=self.creations)
        self._stale[name] = self.create_lag
        return dict(self.repositories[name])

    def delete(self, name: str, force: bool = True) -> None:
        self._call("delete", name)
        if name not in self.repositories:
            raise NotFound(name)
        del self.repositories[name]
        self.policies.pop(name, None)
        self._stale[name] = self.delete_lag

    def apply_retention_policy(self, name: str, policy_text: str) -> None:
        self._call("apply_retention_policy", name)
        if name not in self.repositories:
            raise NotFound(name)
        self.policies[name] = policy_text

    def lifecycle_policy(self, name: str) -> str | None:
        self._call("lifecycle_policy", name)
        return self.policies.get(name)

    def _call(self, method: str, name: str) -> None:
        self.calls.append((method, name))
        if method in self.fail_on:
            raise self.fail_on[method]

    @staticmethod
    def _record(name: str, *, generation: int) -> dict:
        return {
            "repositoryName": name,
            "repositoryArn": f"arn:aws:ecr:{REGION}:{ACCOUNT_ID}:repository/{name}",
            "repositoryUri": f"{ACCOUNT_ID}.dkr.ecr.{REGION}.amazonaws.com/{name}",
            "generation": generation,
        }


class FakeReporter:
    def __init__(self) -> None:
        self.reports: list[tuple] = []

    def report(self, invocation, outcome) -> None:
        self.reports.append((invocation, outcome))

    @property
    def outcomes(self):
        return [outcome for _, outcome in self.reports]


class FakeContext:
    log_stream_name = "2024/01/01/[$LATEST]abc123"


def make_event(request_type: str = "Create", name: str | None = "app", **props) -> dict:
    properties: dict = {"ServiceToken": "arn:aws:lambda:us-east-1:123456789012:function:handler"}
    if name is not None:
        properties["RepositoryName"] = name
    if "policy" in props:
        properties["LifecyclePolicy"] = {"LifecyclePolicyText": props.pop("policy")}
    properties.update(props)
    event = {
        "RequestType": request_type,
        "ResponseURL": "https://cloudformation-custom-resource-response.example.test/signed",
        "StackId": "arn:aws:cloudformation:us-east-1:123456789012:stack/container-app/guid",
        "RequestId": "request-1",
        "LogicalResourceId": "ECRRepositoryHandler",
        "ResourceType": "Custom::ECRRepositoryHandler",
        "ResourceProperties": properties,
    }
    if request_type != "Create" and name is not None:
        event["PhysicalResourceId"] = name
    return event


@pytest.fixture
def store() -> FakeRepositoryStore:
    return FakeRepositoryStore()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def waiter(store, sleeps) -> ConsistencyWaiter:
    return ConsistencyWaiter(store, poll_interval=1.0, max_attempts=5, sleep=sleeps.append)


@pytest.fixture
def reconciler(store, waiter) -> RepositoryReconciler:
    return RepositoryReconciler(store, waiter)


@pytest.fixture
def reporter() -> FakeReporter:
    return FakeReporter()


@pytest.fixture
def repository_handler(reconciler, reporter) -> RepositoryHandler:
    return RepositoryHandler(reconciler, reporter)
