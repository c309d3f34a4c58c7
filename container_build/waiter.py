"""Bounded polling for ECR read-after-write consistency."""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from container_build.errors import ConsistencyTimeout
from container_build.models import RepositoryState

logger = logging.getLogger(__name__)


class SupportsExists(Protocol):
    def exists(self, name: str) -> bool: ...


class ConsistencyWaiter:
    """Poll a store until a repository is observed in the target state."""

    def __init__(
        self,
        store: SupportsExists,
        *,
        poll_interval: float = 1.0,
        max_attempts: int = 25,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    def wait_until(
        self,
        name: str,
        target: RepositoryState,
        *,
        poll_interval: float | None = None,
        max_attempts: int | None = None,
    ) -> int:
        """Block until `name` is in `target`; return the number of polls made.

        Polls at most `max_attempts` times and sleeps only between polls.
        Raises ConsistencyTimeout if the state was never observed.
        """
        interval = self.poll_interval if poll_interval is None else poll_interval
        attempts = self.max_attempts if max_attempts is None else max_attempts
        want_exists = target is RepositoryState.EXISTS

        for attempt in range(1, attempts + 1):
            if self.store.exists(name) == want_exists:
                logger.debug("Repository %s is %s after %d poll(s)", name, target.value, attempt)
                return attempt
            if attempt < attempts:
                self.sleep(interval)

        logger.error("Repository %s not %s after %d poll(s)", name, target.value, attempts)
        raise ConsistencyTimeout(name, target.value, attempts)
