"""Channel data models based on the LND REST API structure"""

from typing import Optional
from pydantic import BaseModel, Field

from ..policy.engine import FeeTier


class ChannelPoint(BaseModel):
    """Funding outpoint of a channel"""
    funding_txid: str
    output_index: int = Field(ge=0)

    @classmethod
    def parse(cls, channel_point: str) -> 'ChannelPoint':
        """Parse a "<txid>:<output_index>" string"""
        parts = channel_point.split(':')
        if len(parts) != 2 or not parts[0]:
            raise ValueError(f"Invalid channel point format: {channel_point!r}")

        txid, index = parts
        try:
            output_index = int(index)
        except ValueError:
            raise ValueError(f"Invalid output index in channel point: {channel_point!r}")
        if output_index < 0:
            raise ValueError(f"Negative output index in channel point: {channel_point!r}")

        return cls(funding_txid=txid, output_index=output_index)

    def __str__(self) -> str:
        return f"{self.funding_txid}:{self.output_index}"


class ChannelSnapshot(BaseModel):
    """Point-in-time view of an open channel from ListChannels"""
    chan_id: str
    channel_point: str
    capacity: int = 0
    local_balance: int = 0
    remote_balance: int = 0
    remote_pubkey: str = ""
    active: bool = True

    @property
    def outpoint(self) -> ChannelPoint:
        return ChannelPoint.parse(self.channel_point)


class RoutingPolicy(BaseModel):
    """Routing policy one side of a channel advertises"""
    # No defaults: these are copied into every update, so a missing one must fail the channel
    time_lock_delta: int
    min_htlc: int = 0
    fee_base_msat: int = 0
    # LND names this milli_msat but the value is parts per million
    fee_rate_milli_msat: int = 0
    max_htlc_msat: int
    disabled: bool = False

    @property
    def fee_rate_ppm(self) -> int:
        return self.fee_rate_milli_msat


class ChannelEdge(BaseModel):
    """Both sides of a channel as seen in the graph"""
    channel_id: str
    chan_point: str = ""
    capacity: int = 0
    node1_pub: str = ""
    node2_pub: str = ""
    node1_policy: Optional[RoutingPolicy] = None
    node2_policy: Optional[RoutingPolicy] = None

    def policy_for(self, pubkey: str) -> Optional[RoutingPolicy]:
        """Policy advertised by the given node, if it is one of the two sides"""
        if not pubkey:
            return None
        if self.node1_pub == pubkey:
            return self.node1_policy
        if self.node2_pub == pubkey:
            return self.node2_policy
        return None


class PolicyUpdate(BaseModel):
    """Full policy sent to UpdateChannelPolicy"""
    base_fee_msat: int
    fee_rate_ppm: int
    time_lock_delta: int
    max_htlc_msat: int

    @classmethod
    def merge(cls, current: RoutingPolicy, fee_tier: FeeTier) -> 'PolicyUpdate':
        """Tier fees on top of the non-fee fields we already advertise"""
        return cls(
            base_fee_msat=fee_tier.base_fee_msat,
            fee_rate_ppm=fee_tier.fee_rate_ppm,
            time_lock_delta=current.time_lock_delta,
            max_htlc_msat=current.max_htlc_msat,
        )

    def fees_match(self, current: RoutingPolicy) -> bool:
        return (self.base_fee_msat == current.fee_base_msat and
                self.fee_rate_ppm == current.fee_rate_ppm)
