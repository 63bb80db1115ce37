"""
Tests for channel models.

Tests:
- Funding outpoint parsing
- Selecting our side of a channel's policy pair
- Target policy merge keeps non-fee fields
- LND's string-encoded int64 fields
"""

import pytest
from pydantic import ValidationError

from feesteer.models.channel import ChannelEdge, ChannelPoint, ChannelSnapshot, PolicyUpdate, RoutingPolicy
from feesteer.policy.engine import FeeTier

from conftest import OTHER_PUBKEY, OUR_PUBKEY, PEER_PUBKEY

TXID = "a" * 64


class TestChannelPoint:
    """Test funding outpoint parsing."""

    def test_parse(self):
        point = ChannelPoint.parse(f"{TXID}:3")
        assert point.funding_txid == TXID
        assert point.output_index == 3
        assert str(point) == f"{TXID}:3"

    @pytest.mark.parametrize("value", [
        TXID,
        f"{TXID}:",
        ":1",
        f"{TXID}:x",
        f"{TXID}:1:2",
        f"{TXID}:-1",
        "",
    ])
    def test_malformed_rejected(self, value):
        with pytest.raises(ValueError):
            ChannelPoint.parse(value)

    def test_snapshot_outpoint(self):
        channel = ChannelSnapshot(chan_id="1", channel_point=f"{TXID}:0", capacity=100, local_balance=10)
        assert channel.outpoint == ChannelPoint(funding_txid=TXID, output_index=0)


class TestChannelEdge:
    """Test selection of our own policy from the pair."""

    def test_policy_for_node1(self, make_edge, make_policy):
        ours = make_policy(fee_rate_ppm=7)
        edge = make_edge("1", ours, our_side=1)
        assert edge.policy_for(OUR_PUBKEY) == ours

    def test_policy_for_node2(self, make_edge, make_policy):
        ours = make_policy(fee_rate_ppm=7)
        edge = make_edge("1", ours, our_side=2)
        assert edge.policy_for(OUR_PUBKEY) == ours
        assert edge.policy_for(PEER_PUBKEY) != ours

    def test_policy_for_stranger_is_none(self, make_edge, make_policy):
        edge = make_edge("1", make_policy())
        assert edge.policy_for(OTHER_PUBKEY) is None
        assert edge.policy_for("") is None

    def test_unannounced_policy_is_none(self):
        edge = ChannelEdge(channel_id="1", node1_pub=OUR_PUBKEY, node2_pub=PEER_PUBKEY)
        assert edge.policy_for(OUR_PUBKEY) is None

    def test_parses_lnd_json(self):
        """LND encodes int64 fields as strings."""
        edge = ChannelEdge.model_validate({
            "channel_id": "869059078325092353",
            "chan_point": f"{TXID}:1",
            "capacity": "2000000",
            "node1_pub": OUR_PUBKEY,
            "node2_pub": PEER_PUBKEY,
            "node1_policy": {
                "time_lock_delta": 80,
                "min_htlc": "1000",
                "fee_base_msat": "1000",
                "fee_rate_milli_msat": "50",
                "disabled": False,
                "max_htlc_msat": "1980000000",
                "last_update": 1700000000,
            },
            "node2_policy": None,
        })
        policy = edge.policy_for(OUR_PUBKEY)
        assert policy.fee_base_msat == 1000
        assert policy.fee_rate_ppm == 50
        assert policy.max_htlc_msat == 1_980_000_000
        assert edge.policy_for(PEER_PUBKEY) is None


class TestPolicyUpdate:
    """Test the read-then-merge target policy."""

    def test_merge_takes_fees_from_tier(self, make_policy):
        update = PolicyUpdate.merge(make_policy(), FeeTier(200, 1000))
        assert update.fee_rate_ppm == 200
        assert update.base_fee_msat == 1000

    @pytest.mark.parametrize("tier", [FeeTier(10, 0), FeeTier(50, 1000), FeeTier(200, 1000)])
    def test_merge_keeps_non_fee_fields(self, make_policy, tier):
        current = make_policy(time_lock_delta=40, max_htlc_msat=123_456_000)
        update = PolicyUpdate.merge(current, tier)
        assert update.time_lock_delta == 40
        assert update.max_htlc_msat == 123_456_000

    def test_fees_match(self, make_policy):
        current = make_policy(fee_rate_ppm=50, base_fee_msat=1000)
        assert PolicyUpdate.merge(current, FeeTier(50, 1000)).fees_match(current)
        assert not PolicyUpdate.merge(current, FeeTier(50, 0)).fees_match(current)
        assert not PolicyUpdate.merge(current, FeeTier(51, 1000)).fees_match(current)

    def test_routing_policy_defaults(self):
        policy = RoutingPolicy(time_lock_delta=80, max_htlc_msat=1_980_000_000)
        assert policy.fee_rate_ppm == 0
        assert policy.disabled is False

    @pytest.mark.parametrize("missing", ["time_lock_delta", "max_htlc_msat"])
    def test_routing_policy_requires_non_fee_fields(self, missing):
        """Missing fields must not become zeros that get sent back to LND."""
        data = {"time_lock_delta": 80, "fee_base_msat": "0", "fee_rate_milli_msat": "10",
                "max_htlc_msat": "1980000000"}
        del data[missing]
        with pytest.raises(ValidationError, match=missing):
            RoutingPolicy.model_validate(data)

    def test_edge_with_incomplete_policy_rejected(self):
        with pytest.raises(ValidationError):
            ChannelEdge.model_validate({
                "channel_id": "869059078325092353",
                "node1_pub": OUR_PUBKEY,
                "node2_pub": PEER_PUBKEY,
                "node1_policy": {"fee_base_msat": "0", "fee_rate_milli_msat": "10"},
            })
