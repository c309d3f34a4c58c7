"""Data types for CloudFormation custom resource invocations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from container_build.errors import InvalidInvocation, UnrecognizedOperation

RETAIN = "retain"


class Operation(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"

    @classmethod
    def parse(cls, request_type: object) -> "Operation":
        """Map a RequestType value to an operation, rejecting anything else."""
        for operation in cls:
            if request_type == operation.value:
                return operation
        raise UnrecognizedOperation(request_type)


class RepositoryState(str, Enum):
    EXISTS = "exists"
    ABSENT = "deleted"


class Status(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


def _is_retain(policy: object) -> bool:
    return isinstance(policy, str) and policy.strip().lower() == RETAIN


@dataclass(frozen=True)
class DesiredProperties:
    """The ResourceProperties of an ECR repository custom resource."""

    repository_name: str
    lifecycle_policy_text: str | None = None
    delete_policy: str | None = None
    update_replace_policy: str | None = None

    @property
    def retain_on_delete(self) -> bool:
        return _is_retain(self.delete_policy)

    @property
    def retain_on_replace(self) -> bool:
        return _is_retain(self.update_replace_policy)

    @classmethod
    def from_mapping(cls, props: Mapping[str, Any]) -> "DesiredProperties":
        name = props.get("RepositoryName")
        if not name or not isinstance(name, str):
            raise InvalidInvocation("ResourceProperties.RepositoryName is required")

        policy_text = None
        lifecycle = props.get("LifecyclePolicy")
        if lifecycle:
            if not isinstance(lifecycle, Mapping):
                raise InvalidInvocation("ResourceProperties.LifecyclePolicy must be an object")
            policy_text = lifecycle.get("LifecyclePolicyText") or None

        return cls(
            repository_name=name,
            lifecycle_policy_text=policy_text,
            delete_policy=props.get("DeletePolicy"),
            update_replace_policy=props.get("UpdateReplacePolicy"),
        )


@dataclass(frozen=True)
class Invocation:
    """One custom resource event plus the Lambda context fields it needs.

    Only the ResponseURL is required up front. The request type and the
    resource properties are kept as received; the reconciler decides whether
    they describe something it understands, so a bad value is still reported.
    """

    request_type: Any
    response_url: str
    stack_id: str = ""
    request_id: str = ""
    logical_resource_id: str = ""
    resource_properties: Any = field(default_factory=dict)
    physical_resource_id: str | None = None
    log_stream_name: str = "local"

    @property
    def repository_name(self) -> str | None:
        if not isinstance(self.resource_properties, Mapping):
            return None
        name = self.resource_properties.get("RepositoryName")
        return name if isinstance(name, str) and name else None

    @property
    def desired(self) -> DesiredProperties:
        if not isinstance(self.resource_properties, Mapping):
            raise InvalidInvocation("ResourceProperties must be an object")
        return DesiredProperties.from_mapping(self.resource_properties)

    @classmethod
    def from_event(cls, event: Mapping[str, Any], context: Any = None) -> "Invocation":
        response_url = event.get("ResponseURL")
        if not response_url:
            raise InvalidInvocation("Event is missing ResponseURL; nowhere to report")

        props = event.get("ResourceProperties")
        return cls(
            request_type=event.get("RequestType"),
            response_url=response_url,
            stack_id=event.get("StackId") or "",
            request_id=event.get("RequestId") or "",
            logical_resource_id=event.get("LogicalResourceId") or "",
            resource_properties={} if props is None else props,
            physical_resource_id=event.get("PhysicalResourceId") or None,
            log_stream_name=getattr(context, "log_stream_name", None) or "local",
        )


@dataclass(frozen=True)
class Outcome:
    """Terminal result of one invocation."""

    status: Status
    reason: str | None = None
    data: dict[str, str] | None = None

    @classmethod
    def success(cls, data: dict[str, str] | None = None) -> "Outcome":
        return cls(Status.SUCCESS, data=data)

    @classmethod
    def failure(cls, reason: str) -> "Outcome":
        return cls(Status.FAILED, reason=reason)
