"""LND REST API client - only the calls fee reconciliation needs"""

import logging
import ssl
from typing import Dict, List, Optional, Any
import httpx
from pydantic import ValidationError

from ..models.channel import ChannelEdge, ChannelPoint, ChannelSnapshot, PolicyUpdate

logger = logging.getLogger(__name__)


class LNDError(Exception):
    """Raised when a call to LND fails"""
    pass


class PolicyUpdateError(LNDError):
    """Raised when LND rejects a policy update"""
    pass


class LNDRestClient:
    """LND REST API client for reading channels and updating fee policies"""

    def __init__(self,
                 lnd_rest_url: str = "https://localhost:8080",
                 cert_path: str = None,
                 macaroon_path: str = None,
                 macaroon_hex: str = None,
                 timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize LND REST client

        Args:
            lnd_rest_url: LND REST API URL (usually https://localhost:8080)
            cert_path: Path to tls.cert file (optional for localhost)
            macaroon_path: Path to admin.macaroon file
            macaroon_hex: Hex-encoded macaroon (alternative to file)
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport
        """
        self.base_url = lnd_rest_url.rstrip('/')
        self.cert_path = cert_path
        self.timeout = timeout
        self.transport = transport

        if macaroon_hex:
            self.macaroon_hex = macaroon_hex
        elif macaroon_path:
            self.macaroon_hex = self._load_macaroon_hex(macaroon_path)
        else:
            raise LNDError("Must specify either macaroon_path or macaroon_hex")

        self.ssl_context = self._create_ssl_context()
        self.client: Optional[httpx.AsyncClient] = None

    def _load_macaroon_hex(self, macaroon_path: str) -> str:
        """Load macaroon file and convert to hex"""
        try:
            with open(macaroon_path, 'rb') as f:
                return f.read().hex()
        except OSError as e:
            raise LNDError(f"Failed to load macaroon from {macaroon_path}: {e}")

    def _create_ssl_context(self) -> ssl.SSLContext:
        """Create SSL context for LND connection"""
        context = ssl.create_default_context()

        if self.cert_path:
            try:
                context.load_verify_locations(self.cert_path)
            except OSError as e:
                raise LNDError(f"Failed to load TLS certificate from {self.cert_path}: {e}")
            # LND's self-signed cert rarely carries the hostname we dial
            context.check_hostname = False
        else:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        return context

    async def __aenter__(self):
        """Async context manager entry"""
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            verify=self.ssl_context if not self.base_url.startswith('http://') else False,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.client:
            await self.client.aclose()
            self.client = None

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers with macaroon authentication"""
        return {
            'Grpc-Metadata-macaroon': self.macaroon_hex,
            'Content-Type': 'application/json'
        }

    async def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Make authenticated request to LND REST API"""
        if not self.client:
            raise RuntimeError("Client not initialized. Use async with statement.")

        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {url}")

        try:
            response = await self.client.request(method, url, headers=self._get_headers(), **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise LNDError(f"{method} {endpoint} returned {e.response.status_code}: {e.response.text}") from e
        except httpx.HTTPError as e:
            raise LNDError(f"{method} {endpoint} failed: {e}") from e
        except ValueError as e:
            raise LNDError(f"{method} {endpoint} returned invalid JSON: {e}") from e

    async def get_info(self) -> Dict[str, Any]:
        """Get node information"""
        return await self._request('GET', '/v1/getinfo')

    async def get_identity(self) -> str:
        """Get this node's identity pubkey"""
        info = await self.get_info()
        pubkey = info.get('identity_pubkey', '')
        if not pubkey:
            raise LNDError("getinfo response has no identity_pubkey")
        return pubkey

    async def list_channels(self) -> List[ChannelSnapshot]:
        """
        List open channels

        A record that does not validate is logged and skipped so the other
        channels are still reconciled.
        """
        result = await self._request('GET', '/v1/channels')

        channels = []
        for index, record in enumerate(result.get('channels', [])):
            try:
                channels.append(ChannelSnapshot.model_validate(record))
            except ValidationError as e:
                chan_id = record.get('chan_id', '?') if isinstance(record, dict) else '?'
                logger.error(f"Skipping malformed channel record {index} (chan_id {chan_id}): {e}")
        return channels

    async def get_channel_edge(self, chan_id: str) -> ChannelEdge:
        """Get both sides' policies for a channel from the graph"""
        result = await self._request('GET', f'/v1/graph/edge/{chan_id}')
        return ChannelEdge.model_validate(result)

    async def update_channel_policy(self, outpoint: ChannelPoint, update: PolicyUpdate) -> None:
        """
        Set our advertised policy for a single channel

        LND replaces the whole policy, so the update must carry every field.
        """
        request_payload = {
            "chan_point": {
                "funding_txid_str": outpoint.funding_txid,
                "output_index": outpoint.output_index
            },
            "base_fee_msat": str(update.base_fee_msat),
            "fee_rate_ppm": update.fee_rate_ppm,
            "time_lock_delta": update.time_lock_delta,
            "max_htlc_msat": str(update.max_htlc_msat)
        }

        logger.debug(f"Updating channel {outpoint} policy: {request_payload}")
        result = await self._request('POST', '/v1/chanpolicy', json=request_payload)

        failed = result.get('failed_updates') or []
        if failed:
            reasons = ", ".join(
                f"{failure.get('reason', 'UNKNOWN')}: {failure.get('update_error', '')}"
                for failure in failed
            )
            raise PolicyUpdateError(f"LND rejected policy update for {outpoint}: {reasons}")
