"""Blob store capability — reclaiming file content after a permanent delete.

The bytes of a file live in an external object store addressed by an
opaque locator.  The item store only ever asks for locators to be released,
after the metadata delete has committed.  A failed release leaves an
orphaned blob, never an orphaned row.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    """Object storage collaborator."""

    async def release(self, locator: str) -> None:
        """Delete the blob at *locator*. May raise; the caller logs and moves on."""
        ...


class NullBlobStore:
    """Blob store that reclaims nothing. Default when none is configured."""

    async def release(self, locator: str) -> None:
        logger.debug("No blob store configured; leaving %s in place", locator)


async def release_blobs(store: BlobStore, locators: Iterable[str]) -> list[str]:
    """Release every locator, best-effort.

    Failures are logged and never propagated.  Returns the locators that
    could not be released.
    """
    failed: list[str] = []
    for locator in locators:
        try:
            await store.release(locator)
        except Exception:
            logger.warning("Blob release failed for %s", locator, exc_info=True)
            failed.append(locator)
    return failed
