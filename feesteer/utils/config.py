"""Configuration management for Lightning Fee Steer"""

import os
from typing import Optional, Dict, Any
from pathlib import Path
from dataclasses import dataclass, field, asdict
import json
from dotenv import find_dotenv, load_dotenv

from ..policy.engine import FeeTier, TierTable

ENV_PREFIX = 'FEESTEER_'

# LND keeps mainnet macaroons under "mainnet", not "bitcoin"
NETWORK_DIRS = {
    'bitcoin': 'mainnet',
    'testnet': 'testnet',
    'signet': 'signet',
    'regtest': 'regtest',
}


class ConfigError(ValueError):
    """Raised when configuration values are invalid"""
    pass


@dataclass
class TierSettings:
    """Fee rate (ppm) and base fee (msat) for one liquidity tier"""
    fee_rate_ppm: int
    base_fee_msat: int


@dataclass
class TiersConfig:
    """Fee tiers for low, medium and high local liquidity"""
    low: TierSettings = field(default_factory=lambda: TierSettings(10, 0))
    medium: TierSettings = field(default_factory=lambda: TierSettings(50, 1000))
    high: TierSettings = field(default_factory=lambda: TierSettings(200, 1000))

    def to_table(self) -> TierTable:
        return TierTable(
            low=FeeTier(self.low.fee_rate_ppm, self.low.base_fee_msat),
            medium=FeeTier(self.medium.fee_rate_ppm, self.medium.base_fee_msat),
            high=FeeTier(self.high.fee_rate_ppm, self.high.base_fee_msat),
        )


@dataclass
class LNDConfig:
    """LND REST connection configuration"""
    host: str = "127.0.0.1"
    port: int = 8080
    network: str = "bitcoin"
    lnd_dir: str = "~/.lnd"
    cert_file: Optional[str] = None
    macaroon_file: Optional[str] = None
    timeout: float = 30.0

    @property
    def rest_url(self) -> str:
        return f"https://{self.host}:{self.port}"

    def cert_path(self) -> str:
        if self.cert_file:
            return os.path.expanduser(self.cert_file)
        return str(Path(self.lnd_dir).expanduser() / "tls.cert")

    def macaroon_path(self) -> str:
        if self.macaroon_file:
            return os.path.expanduser(self.macaroon_file)
        network_dir = NETWORK_DIRS.get(self.network, self.network)
        return str(Path(self.lnd_dir).expanduser() / "data" / "chain" / "bitcoin"
                   / network_dir / "admin.macaroon")


@dataclass
class Config:
    """Main configuration"""
    lnd: LNDConfig
    tiers: TiersConfig

    # Seconds between sweeps
    interval: int = 60

    # Runtime options
    verbose: bool = False
    dry_run: bool = False

    def __init__(self, config_file: Optional[str] = None):
        # Load defaults
        self.lnd = LNDConfig()
        self.tiers = TiersConfig()
        self.interval = 60
        self.verbose = False
        self.dry_run = False

        # Load from environment
        self._load_from_env()

        # Load from config file if provided
        if config_file:
            self._load_from_file(config_file)

    def _load_from_env(self):
        """Load configuration from environment variables"""
        load_dotenv(find_dotenv(usecwd=True))

        def env(name: str) -> Optional[str]:
            return os.getenv(ENV_PREFIX + name)

        try:
            if env('INTERVAL'):
                self.interval = int(env('INTERVAL'))

            for tier_name in ('low', 'medium', 'high'):
                tier = getattr(self.tiers, tier_name)
                if env(f'{tier_name.upper()}_FEE_PPM'):
                    tier.fee_rate_ppm = int(env(f'{tier_name.upper()}_FEE_PPM'))
                if env(f'{tier_name.upper()}_FEE_BASE'):
                    tier.base_fee_msat = int(env(f'{tier_name.upper()}_FEE_BASE'))

            if env('LND_PORT'):
                self.lnd.port = int(env('LND_PORT'))
            if env('LND_TIMEOUT'):
                self.lnd.timeout = float(env('LND_TIMEOUT'))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric environment value: {e}")

        if env('LND_HOST'):
            self.lnd.host = env('LND_HOST')
        if env('NETWORK'):
            self.lnd.network = env('NETWORK')
        if env('LND_DIR'):
            self.lnd.lnd_dir = env('LND_DIR')
        if env('CERT_FILE'):
            self.lnd.cert_file = env('CERT_FILE')
        if env('MACAROON_FILE'):
            self.lnd.macaroon_file = env('MACAROON_FILE')

        # Runtime options
        if env('VERBOSE'):
            self.verbose = env('VERBOSE').lower() in ('true', '1', 'yes')
        if env('DRY_RUN'):
            self.dry_run = env('DRY_RUN').lower() in ('true', '1', 'yes')

    def _load_from_file(self, config_file: str):
        """Load configuration from JSON file"""
        path = Path(config_file)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")

        with open(path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON in {config_file}: {e}")

        if 'lnd' in data:
            for key, value in data['lnd'].items():
                if hasattr(self.lnd, key):
                    setattr(self.lnd, key, value)

        if 'tiers' in data:
            for tier_name, values in data['tiers'].items():
                tier = getattr(self.tiers, tier_name, None)
                if not isinstance(tier, TierSettings):
                    raise ConfigError(f"Unknown fee tier: {tier_name}")
                for key, value in values.items():
                    if hasattr(tier, key):
                        setattr(tier, key, value)

        if 'interval' in data:
            self.interval = data['interval']
        if 'verbose' in data:
            self.verbose = data['verbose']
        if 'dry_run' in data:
            self.dry_run = data['dry_run']

    def validate(self):
        """Reject values the reconciler cannot run with.

        Called once every layer, CLI options included, has been applied.
        """
        if not isinstance(self.interval, int) or self.interval <= 0:
            raise ConfigError(f"interval must be a positive number of seconds, got {self.interval}")

        for tier_name in ('low', 'medium', 'high'):
            tier = getattr(self.tiers, tier_name)
            if not isinstance(tier.fee_rate_ppm, int) or not isinstance(tier.base_fee_msat, int):
                raise ConfigError(f"{tier_name} tier fees must be integers")
            if tier.fee_rate_ppm < 0 or tier.base_fee_msat < 0:
                raise ConfigError(f"{tier_name} tier fees must be non-negative")

        if self.lnd.network not in NETWORK_DIRS:
            raise ConfigError(
                f"Unknown network {self.lnd.network!r}, expected one of {', '.join(NETWORK_DIRS)}"
            )

        if not isinstance(self.lnd.host, str) or not self.lnd.host.strip():
            raise ConfigError(f"lnd host must be a non-empty string, got {self.lnd.host!r}")

        # bool is an int subclass
        port = self.lnd.port
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port <= 65535:
            raise ConfigError(f"lnd port must be an integer between 1 and 65535, got {port!r}")

        timeout = self.lnd.timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"lnd timeout must be a positive number of seconds, got {timeout!r}")

    def save_to_file(self, config_file: str):
        """Save configuration to JSON file"""
        path = Path(config_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, config_file: Optional[str] = None) -> 'Config':
        """Load configuration from file or environment"""
        return cls(config_file)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            'lnd': asdict(self.lnd),
            'tiers': asdict(self.tiers),
            'interval': self.interval,
            'verbose': self.verbose,
            'dry_run': self.dry_run
        }
