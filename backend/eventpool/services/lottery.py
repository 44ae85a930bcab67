"""Lottery / pooling engine — tops up INVITED from WAITING.

Algorithm:
1. Fresh read of all buckets (never a cached view).
2. shortfall = entrant_limit - (|INVITED| + |ACCEPTED|); no-op when <= 0.
3. No-op when WAITING is empty.
4. WAITING is shuffled uniformly. Candidates are sorted before shuffling so
   the order depends only on the RNG state, never on store iteration order.
5. Entrants are moved WAITING -> INVITED through the state machine in that
   order until the shortfall is met or the order runs out. A candidate who
   left since the read, or whose move failed, is replaced by the next one.

The engine never demotes INVITED entrants to UNINVITED; that is an
organizer decision. A failed move leaves that entrant in WAITING and the
batch continues; if any move failed the call raises PartialBatchFailureError
carrying the number actually moved.
"""
import logging
import random
from typing import Optional

from eventpool.errors import NotFoundError, PartialBatchFailureError, StoreUnavailableError
from eventpool.models.entrant import EntrantStatus
from eventpool.schemas.event import Event
from eventpool.schemas.waitlist import LotteryResult
from eventpool.services.state_machine import EntrantStateMachine
from eventpool.services.waitlist_repository import WaitlistRepository

logger = logging.getLogger(__name__)


def compute_shortfall(entrant_limit: int, invited: int, accepted: int) -> int:
    return max(0, entrant_limit - (invited + accepted))


def draw_candidates(waiting: list[str], count: int, rng: random.Random) -> list[str]:
    """Uniformly choose ``count`` distinct ids from ``waiting``."""
    pool = sorted(set(waiting))
    return rng.sample(pool, min(count, len(pool)))


class LotteryEngine:
    def __init__(
        self,
        waitlist: WaitlistRepository,
        machine: EntrantStateMachine,
        rng: Optional[random.Random] = None,
    ):
        self.waitlist = waitlist
        self.machine = machine
        self.rng = rng or random.SystemRandom()

    async def run(self, event: Event) -> LotteryResult:
        if event.unlimited:
            logger.info("Event %s has no entrant limit; lottery skipped", event.event_id)
            return LotteryResult(drawn=0, target_remaining=None)

        buckets = await self.waitlist.read_buckets(event.event_id)
        waiting = [e.user_id for e in buckets[EntrantStatus.waiting]]
        shortfall = compute_shortfall(
            event.entrant_limit,
            len(buckets[EntrantStatus.invited]),
            len(buckets[EntrantStatus.accepted]),
        )
        if shortfall <= 0 or not waiting:
            logger.info(
                "Lottery for event %s is a no-op (shortfall=%d, waiting=%d)",
                event.event_id, shortfall, len(waiting),
            )
            return LotteryResult(drawn=0, target_remaining=shortfall)

        order = draw_candidates(waiting, len(waiting), self.rng)
        drawn: list[str] = []
        failed: list[str] = []
        for user_id in order:
            if len(drawn) == shortfall:
                break
            try:
                await self.machine.draw(event, user_id)
            except NotFoundError:
                # Left or was cancelled since the bucket read
                logger.info("Entrant %s left WAITING for event %s before being drawn", user_id, event.event_id)
                continue
            except StoreUnavailableError:
                logger.warning("Draw of entrant %s for event %s failed; left in WAITING", user_id, event.event_id)
                failed.append(user_id)
                continue
            drawn.append(user_id)

        remaining = shortfall - len(drawn)
        if failed:
            logger.error(
                "Lottery for event %s partially applied: %d drawn, %d failed",
                event.event_id, len(drawn), len(failed),
            )
            raise PartialBatchFailureError(drawn=len(drawn), failed=failed, target_remaining=remaining)

        logger.info("Lottery for event %s drew %d of shortfall %d", event.event_id, len(drawn), shortfall)
        return LotteryResult(drawn=len(drawn), target_remaining=remaining, drawn_user_ids=drawn)
