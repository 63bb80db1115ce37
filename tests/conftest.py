"""
Pytest fixtures for feesteer tests.

Provides tier tables, channel and graph edge factories and a mock LND client.
"""

import os
import sys
import pytest
from unittest.mock import AsyncMock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from feesteer.models.channel import ChannelEdge, ChannelSnapshot, RoutingPolicy
from feesteer.policy.engine import FeeTier, TierTable

OUR_PUBKEY = "02" + "a" * 64
PEER_PUBKEY = "03" + "b" * 64
OTHER_PUBKEY = "02" + "c" * 64


@pytest.fixture
def tiers():
    """Tier table low=(10, 0), medium=(50, 1000), high=(200, 1000)."""
    return TierTable(
        low=FeeTier(fee_rate_ppm=10, base_fee_msat=0),
        medium=FeeTier(fee_rate_ppm=50, base_fee_msat=1000),
        high=FeeTier(fee_rate_ppm=200, base_fee_msat=1000),
    )


@pytest.fixture
def make_channel():
    """Build a ChannelSnapshot with sensible defaults."""
    def _make(chan_id="800000x1x0", local_balance=50, capacity=100,
              channel_point=None):
        return ChannelSnapshot(
            chan_id=chan_id,
            channel_point=channel_point or f"{'f' * 63}{len(chan_id) % 10}:1",
            local_balance=local_balance,
            capacity=capacity,
            remote_balance=capacity - local_balance,
            remote_pubkey=PEER_PUBKEY,
        )
    return _make


@pytest.fixture
def make_policy():
    """Build a RoutingPolicy; fees default to the medium tier."""
    def _make(fee_rate_ppm=50, base_fee_msat=1000, time_lock_delta=144,
              max_htlc_msat=990_000_000):
        return RoutingPolicy(
            time_lock_delta=time_lock_delta,
            min_htlc=1000,
            fee_base_msat=base_fee_msat,
            fee_rate_milli_msat=fee_rate_ppm,
            max_htlc_msat=max_htlc_msat,
        )
    return _make


@pytest.fixture
def make_edge():
    """Build a ChannelEdge with our policy on the chosen side."""
    def _make(chan_id, our_policy, our_side=1, peer_policy=None, our_pubkey=OUR_PUBKEY):
        peer_policy = peer_policy or RoutingPolicy(time_lock_delta=40, fee_rate_milli_msat=1,
                                                   fee_base_msat=1, max_htlc_msat=1_000_000)
        if our_side == 1:
            return ChannelEdge(channel_id=chan_id, node1_pub=our_pubkey, node1_policy=our_policy,
                               node2_pub=PEER_PUBKEY, node2_policy=peer_policy)
        return ChannelEdge(channel_id=chan_id, node1_pub=PEER_PUBKEY, node1_policy=peer_policy,
                           node2_pub=our_pubkey, node2_policy=our_policy)
    return _make


@pytest.fixture
def mock_client():
    """Mock LND client with async methods and no channels."""
    client = AsyncMock()
    client.get_identity.return_value = OUR_PUBKEY
    client.list_channels.return_value = []
    client.update_channel_policy.return_value = None
    return client
