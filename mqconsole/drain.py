"""
Purge by draining.

Service Bus has no purge RPC, so a container is emptied by receiving
batches in receive-and-delete mode until a batch comes back empty.
An empty batch is read as "container empty"; messages arriving while the
loop runs may or may not be counted.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from mqconsole.exceptions import PartialOperationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_WAIT_SECONDS = 2.0


class DrainReceiver(Protocol):
    """The part of a receive-and-delete receiver the drain loop uses."""

    async def receive_messages(
        self,
        max_message_count: int | None = ...,
        max_wait_time: float | None = ...,
    ) -> Sequence[Any]: ...

    async def close(self) -> None: ...


async def drain(
    receiver: DrainReceiver,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_wait_time: float = DEFAULT_MAX_WAIT_SECONDS,
    description: str = "container",
) -> int:
    """
    Receive and discard messages until the receiver returns an empty batch.

    The receiver is closed exactly once, whatever the outcome.

    Args:
        receiver: Receiver opened in receive-and-delete mode
        batch_size: Maximum messages per receive call
        max_wait_time: Seconds each receive waits for messages
        description: Container name used in log and error messages

    Returns:
        Number of messages drained by this call

    Raises:
        PartialOperationError: A receive failed; messages drained before the
            failure are gone but not reported.
    """
    count = 0
    try:
        while True:
            try:
                messages = await receiver.receive_messages(
                    max_message_count=batch_size,
                    max_wait_time=max_wait_time,
                )
            except Exception as exc:
                logger.warning(
                    "Drain of %s aborted after %d message(s): %s",
                    description, count, exc,
                )
                raise PartialOperationError(
                    f"Purge of {description} aborted before completion: {exc}",
                    details={"cause": str(exc), "type": exc.__class__.__name__},
                ) from exc

            if not messages:
                break
            count += len(messages)
    finally:
        try:
            await receiver.close()
        except Exception as exc:
            logger.warning("Failed to close receiver for %s: %s", description, exc)

    logger.info("Drained %d message(s) from %s", count, description)
    return count
