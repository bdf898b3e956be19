"""
Sponsor rank recomputation.

When a user joins under a sponsor, the sponsor chain is walked upward, one
node at a time, re-evaluating each sponsor's rank:

    rank r → r + 1  when  #(direct referrals with rank ≥ r) ≥ PROMOTION_THRESHOLD

A node moves at most one rank per walk and never past MAX_LEVEL. The walk
stops after evaluating the first node sponsored by ROOT_SPONSOR. It is an
explicit loop with a visited set, bounded by the size of the network, so a
corrupted chain that loops back on itself ends the walk instead of spinning.

Each rank write is a compare-and-set against the rank that was read, so two
admissions racing on the same sponsor cannot both promote from the same
stale count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from errors import NotFoundError
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.referral.config import (
    MAX_LEVEL,
    MAX_LEVEL_UPDATE_ATTEMPTS,
    PROMOTION_THRESHOLD,
)
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Promotion:
    user_id: str
    sponsor_id: str
    from_level: int
    to_level: int


class ReferralLevelingEngine:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    async def admit(self, user: UserDoc) -> list[Promotion]:
        """Link *user* under its sponsor and recompute ranks up the chain.

        Root-sponsored users have no sponsor to link and trigger nothing.
        """
        if user.is_root_sponsored:
            return []

        sponsor = await self._users.find_by_sponsor_id(user.sponsor_by)
        if sponsor is None:
            log.warning(
                "sponsor_not_found", user_id=str(user.id), sponsor_by=user.sponsor_by
            )
            return []

        await self._users.add_to_sponsor_tree(sponsor.id, user.id)
        return await self._walk_up(sponsor)

    async def ensure_admitted(self, user: UserDoc) -> list[Promotion]:
        """Admit *user* again if its sponsor's tree does not list it.

        admit() is idempotent, so this only repairs an admission that failed
        after the user was created.
        """
        if user.is_root_sponsored:
            return []
        sponsor = await self._users.find_by_sponsor_id(user.sponsor_by)
        if sponsor is None or user.id in sponsor.sponsor_tree:
            return []
        log.info("sponsor_admission_repaired", user_id=str(user.id), sponsor_id=sponsor.sponsor_id)
        return await self.admit(user)

    async def recompute(self, user_id: Any) -> list[Promotion]:
        """Re-run the walk starting at *user_id* itself. Safe to repeat."""
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return await self._walk_up(user)

    async def _walk_up(self, start: UserDoc) -> list[Promotion]:
        # +1 leaves room for a count that lags a just-inserted user
        bound = await self._users.count() + 1
        visited: set = set()
        promotions: list[Promotion] = []

        node: Optional[UserDoc] = start
        while node is not None:
            if node.id in visited or len(visited) >= bound:
                log.warning(
                    "sponsor_chain_cycle",
                    user_id=str(node.id),
                    sponsor_id=node.sponsor_id,
                    visited=len(visited),
                )
                break
            visited.add(node.id)

            promotion = await self._evaluate(node)
            if promotion is not None:
                promotions.append(promotion)

            if node.is_root_sponsored:
                break
            parent = await self._users.find_by_sponsor_id(node.sponsor_by)
            if parent is None:
                log.warning(
                    "sponsor_chain_broken",
                    user_id=str(node.id),
                    sponsor_by=node.sponsor_by,
                )
            node = parent

        return promotions

    async def _evaluate(self, node: UserDoc) -> Optional[Promotion]:
        current = node
        for _ in range(MAX_LEVEL_UPDATE_ATTEMPTS):
            if current.level >= MAX_LEVEL:
                return None

            qualifying = await self._users.count_children_at_level(
                current.sponsor_id, current.level
            )
            if qualifying < PROMOTION_THRESHOLD:
                return None

            target = current.level + 1
            if await self._users.compare_and_set_level(
                current.id, current.level, target
            ):
                log.info(
                    "sponsor_promoted",
                    user_id=str(current.id),
                    sponsor_id=current.sponsor_id,
                    from_level=current.level,
                    to_level=target,
                    qualifying_referrals=qualifying,
                )
                return Promotion(
                    user_id=str(current.id),
                    sponsor_id=current.sponsor_id,
                    from_level=current.level,
                    to_level=target,
                )

            # Rank moved under us; re-read and decide again from the new value
            refreshed = await self._users.find_by_id(current.id)
            if refreshed is None:
                return None
            current = refreshed

        log.warning(
            "sponsor_level_contention",
            user_id=str(node.id),
            attempts=MAX_LEVEL_UPDATE_ATTEMPTS,
        )
        return None
