"""SizeAggregator — keeps folder sizes equal to the sum of their children.

Every adjustment is an in-database increment (``size = size + delta``)
issued inside the caller's transaction, one statement per ancestor.  The
ancestor chain is re-read from storage in that same transaction, so two
concurrent creations under the same folder are serialized by the row
locks the database takes for the UPDATE and neither delta is lost.  No
Python-side size value captured before the transaction is ever written
back.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlmodel import select

from .exceptions import ConsistencyError
from .types import SizeMismatch

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from canopy.models.items import ItemBase

logger = logging.getLogger(__name__)


class SizeAggregator:
    """Propagates size deltas up the ancestor chain and audits the invariant."""

    def __init__(self, item_model: type[ItemBase]) -> None:
        self._item_model = item_model

    async def ancestor_chain(self, session: AsyncSession, item_id: str) -> list[str]:
        """Return ``[item_id, parent, grandparent, ..., root]``.

        Raises ``ConsistencyError`` on a cycle or a dangling parent id.
        """
        model = self._item_model
        chain: list[str] = []
        seen: set[str] = set()
        current: str | None = item_id

        while current is not None:
            if current in seen:
                raise ConsistencyError(details={"cycle_at": current})
            seen.add(current)
            result = await session.execute(select(model.parent_id).where(model.id == current))
            row = result.first()
            if row is None:
                raise ConsistencyError(details={"missing": current})
            chain.append(current)
            current = row[0]

        return chain

    async def propagate(self, session: AsyncSession, start_id: str, delta: int) -> list[str]:
        """Add *delta* to *start_id* and every one of its ancestors.

        Returns the chain that was updated.  Flushes but does not commit.
        """
        chain = await self.ancestor_chain(session, start_id)
        if delta == 0:
            return chain

        model = self._item_model
        for ancestor_id in chain:
            result = await session.execute(
                update(model)
                .where(model.id == ancestor_id)  # type: ignore[arg-type]
                .values(size=model.size + delta)
                .execution_options(synchronize_session="fetch")
            )
            # A concurrent purge removed the ancestor after the chain was read
            if result.rowcount == 0:
                raise ConsistencyError(details={"missing": ancestor_id})
        logger.debug("Propagated %+d bytes over %d folder(s) from %s", delta, len(chain), start_id)
        return chain

    # ------------------------------------------------------------------
    # Invariant audit / repair
    # ------------------------------------------------------------------

    async def _load_tree(
        self, session: AsyncSession, owner_id: str
    ) -> tuple[dict[str, tuple[str | None, bool, int]], dict[str, list[str]]]:
        model = self._item_model
        result = await session.execute(
            select(model.id, model.parent_id, model.is_folder, model.size).where(
                model.owner_id == owner_id,
            )
        )
        nodes: dict[str, tuple[str | None, bool, int]] = {}
        children: dict[str, list[str]] = defaultdict(list)
        for item_id, parent_id, is_folder, size in result.all():
            nodes[item_id] = (parent_id, is_folder, size)
            if parent_id is not None:
                children[parent_id].append(item_id)
        return nodes, children

    async def audit(self, session: AsyncSession, owner_id: str) -> list[SizeMismatch]:
        """List folders whose recorded size differs from their direct children's sum.

        Trashed children count: trashing never changes sizes.
        """
        nodes, children = await self._load_tree(session, owner_id)
        mismatches: list[SizeMismatch] = []
        for item_id, (_, is_folder, size) in nodes.items():
            if not is_folder:
                continue
            expected = sum(nodes[child][2] for child in children.get(item_id, []))
            if expected != size:
                mismatches.append(SizeMismatch(item_id=item_id, recorded=size, expected=expected))
        return mismatches

    async def rebuild(self, session: AsyncSession, owner_id: str) -> int:
        """Recompute every folder size bottom-up. Returns the number corrected."""
        nodes, children = await self._load_tree(session, owner_id)
        totals: dict[str, int] = {}

        # Iterative post-order so deep trees do not hit the recursion limit.
        for root_id, (parent_id, _, _) in nodes.items():
            if parent_id is not None and parent_id in nodes:
                continue
            stack: list[tuple[str, bool]] = [(root_id, False)]
            while stack:
                node_id, expanded = stack.pop()
                _, is_folder, size = nodes[node_id]
                if not is_folder:
                    totals[node_id] = size
                    continue
                if expanded:
                    totals[node_id] = sum(totals[c] for c in children.get(node_id, []))
                    continue
                stack.append((node_id, True))
                stack.extend((c, False) for c in children.get(node_id, []))

        if len(totals) != len(nodes):
            raise ConsistencyError(details={"owner_id": owner_id, "reason": "unreachable items"})

        model = self._item_model
        corrected = 0
        for item_id, (_, is_folder, size) in nodes.items():
            if is_folder and totals[item_id] != size:
                await session.execute(
                    update(model)
                    .where(model.id == item_id)  # type: ignore[arg-type]
                    .values(size=totals[item_id])
                    .execution_options(synchronize_session="fetch")
                )
                corrected += 1
        if corrected:
            logger.info("Rebuilt %d folder size(s) for owner %s", corrected, owner_id)
        return corrected
