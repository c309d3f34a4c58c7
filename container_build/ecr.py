"""ECR repository operations used by the repository handler."""

from __future__ import annotations

import logging

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from container_build.errors import AlreadyExists, NotFound, TransportError

logger = logging.getLogger(__name__)

NOT_FOUND_CODE = "RepositoryNotFoundException"
ALREADY_EXISTS_CODE = "RepositoryAlreadyExistsException"


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class EcrRepositoryStore:
    """Synchronous ECR calls with errors translated to the handler's types.

    Nothing here retries; polling and idempotency live in the waiter and the
    reconciler.
    """

    def __init__(self, client: BaseClient) -> None:
        self.client = client

    @classmethod
    def from_region(cls, region: str | None = None) -> "EcrRepositoryStore":
        session = boto3.Session(region_name=region or None)
        return cls(session.client("ecr"))

    def exists(self, name: str) -> bool:
        try:
            self.describe(name)
        except NotFound:
            return False
        return True

    def describe(self, name: str) -> dict:
        """Return the repository record (repositoryArn, repositoryUri, ...)."""
        try:
            response = self.client.describe_repositories(repositoryNames=[name])
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, name, "describe") from exc

        repositories = response.get("repositories", [])
        if not repositories:
            raise NotFound(name)
        return repositories[0]

    def create(self, name: str) -> dict:
        try:
            response = self.client.create_repository(repositoryName=name)
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, name, "create") from exc
        logger.info("Created repository %s", name)
        return response["repository"]

    def delete(self, name: str, force: bool = True) -> None:
        try:
            self.client.delete_repository(repositoryName=name, force=force)
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, name, "delete") from exc
        logger.info("Deleted repository %s (force=%s)", name, force)

    def apply_retention_policy(self, name: str, policy_text: str) -> None:
        try:
            self.client.put_lifecycle_policy(
                repositoryName=name,
                lifecyclePolicyText=policy_text,
            )
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, name, "put lifecycle policy on") from exc
        logger.info("Applied lifecycle policy to repository %s", name)

    def lifecycle_policy(self, name: str) -> str | None:
        """Return the attached lifecycle policy text, or None if there is none."""
        try:
            response = self.client.get_lifecycle_policy(repositoryName=name)
        except ClientError as exc:
            if _error_code(exc) == "LifecyclePolicyNotFoundException":
                return None
            raise self._translate(exc, name, "read lifecycle policy of") from exc
        except BotoCoreError as exc:
            raise self._translate(exc, name, "read lifecycle policy of") from exc
        return response.get("lifecyclePolicyText")

    @staticmethod
    def _translate(exc: Exception, name: str, action: str) -> Exception:
        if isinstance(exc, ClientError):
            code = _error_code(exc)
            if code == NOT_FOUND_CODE:
                return NotFound(name)
            if code == ALREADY_EXISTS_CODE:
                return AlreadyExists(name)
        return TransportError(name, f"Unable to {action} repository '{name}': {exc}")
