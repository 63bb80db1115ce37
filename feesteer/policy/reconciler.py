"""Fee reconciler - keeps each channel's advertised fees on its liquidity tier"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from .engine import TierTable, classify_liquidity, liquidity_ratio
from ..lnd.client import LNDRestClient
from ..models.channel import ChannelSnapshot, PolicyUpdate

logger = logging.getLogger(__name__)


class ReconcileError(Exception):
    """Raised when a channel cannot be reconciled"""
    pass


class PolicyNotFoundError(ReconcileError):
    """Raised when our side of a channel has no policy in the graph"""
    pass


class StartupError(ReconcileError):
    """Raised when the reconciler cannot start"""
    pass


class OutcomeStatus(Enum):
    """What happened to a channel during a sweep"""
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    DRY_RUN = "dry_run"
    FAILED = "failed"


@dataclass
class ChannelOutcome:
    """Result of reconciling one channel"""
    chan_id: str
    status: OutcomeStatus
    ratio: Optional[float] = None
    tier: Optional[str] = None
    update: Optional[PolicyUpdate] = None
    operation: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SweepResult:
    """Result of one pass over every open channel"""
    outcomes: List[ChannelOutcome] = field(default_factory=list)
    listing_failed: bool = False

    def count(self, status: OutcomeStatus) -> int:
        return len([o for o in self.outcomes if o.status == status])

    @property
    def updated(self) -> int:
        return self.count(OutcomeStatus.UPDATED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeStatus.FAILED)


async def fetch_identity(client: LNDRestClient) -> str:
    """Fetch our node pubkey, failing startup if it is unavailable"""
    try:
        pubkey = await client.get_identity()
    except Exception as e:
        raise StartupError(f"Failed to fetch node identity: {e}") from e

    logger.info(f"Connected to lnd: {pubkey}")
    return pubkey


class FeeReconciler:
    """Sweeps open channels and moves each one's fees to its liquidity tier"""

    def __init__(self,
                 client: LNDRestClient,
                 tiers: TierTable,
                 node_pubkey: str,
                 dry_run: bool = False):
        self.client = client
        self.tiers = tiers
        self.node_pubkey = node_pubkey
        self.dry_run = dry_run

    async def reconcile_channel(self, channel: ChannelSnapshot) -> ChannelOutcome:
        """
        Read, decide, compare and maybe update a single channel

        Never raises. Any failure is logged and returned as a FAILED outcome
        so the rest of the sweep carries on.
        """
        chan_id = channel.chan_id
        operation = "parse_outpoint"
        try:
            outpoint = channel.outpoint

            operation = "fetch_policy"
            edge = await self.client.get_channel_edge(chan_id)
            current = edge.policy_for(self.node_pubkey)
            if current is None:
                raise PolicyNotFoundError(
                    f"No policy advertised by {self.node_pubkey} on channel {chan_id}"
                )

            operation = "decide"
            ratio = liquidity_ratio(channel.local_balance, channel.capacity)
            tier = classify_liquidity(ratio)
            target = PolicyUpdate.merge(current, self.tiers.for_tier(tier))

            if target.fees_match(current):
                logger.debug(f"Channel {chan_id} at {ratio:.1f}% already on {tier.value} tier "
                             f"({target.fee_rate_ppm}ppm, {target.base_fee_msat}msat)")
                return ChannelOutcome(chan_id, OutcomeStatus.UNCHANGED, ratio, tier.value)

            if self.dry_run:
                logger.info(f"[DRY-RUN] Would update {chan_id} ({outpoint}) at {ratio:.1f}%: "
                            f"{current.fee_rate_ppm}ppm/{current.fee_base_msat}msat -> "
                            f"{target.fee_rate_ppm}ppm/{target.base_fee_msat}msat ({tier.value} tier)")
                return ChannelOutcome(chan_id, OutcomeStatus.DRY_RUN, ratio, tier.value, target)

            operation = "update_policy"
            await self.client.update_channel_policy(outpoint, target)

            logger.info(f"Updated {chan_id} ({outpoint}) at {ratio:.1f}%: "
                        f"{current.fee_rate_ppm}ppm/{current.fee_base_msat}msat -> "
                        f"{target.fee_rate_ppm}ppm/{target.base_fee_msat}msat ({tier.value} tier)")
            return ChannelOutcome(chan_id, OutcomeStatus.UPDATED, ratio, tier.value, target)

        except Exception as e:
            logger.error(f"Failed to reconcile channel {chan_id} during {operation}: "
                         f"{type(e).__name__}: {e}")
            return ChannelOutcome(chan_id, OutcomeStatus.FAILED, operation=operation, error=str(e))

    async def run_sweep(self) -> SweepResult:
        """Reconcile every open channel once"""
        result = SweepResult()

        try:
            channels = await self.client.list_channels()
        except Exception as e:
            logger.warning(f"Failed to list channels, skipping sweep: {e}")
            result.listing_failed = True
            channels = []

        for channel in channels:
            result.outcomes.append(await self.reconcile_channel(channel))

        logger.info(
            f"Sweep complete: {len(result.outcomes)} channels, "
            f"{result.updated} updated, "
            f"{result.count(OutcomeStatus.UNCHANGED)} unchanged, "
            f"{result.count(OutcomeStatus.DRY_RUN)} dry-run, "
            f"{result.failed} failed"
        )
        return result

    async def run_forever(self,
                          interval: float,
                          sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        """Sweep, sleep for the interval, repeat until the process is stopped"""
        logger.info(f"Reconciling fees every {interval}s")
        while True:
            await self.run_sweep()
            await sleep(interval)
