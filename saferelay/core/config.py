# /saferelay/core/config.py
import sys
import structlog
from pydantic_settings import BaseSettings
from pydantic import SecretStr
from typing import List

# Safe v1.3.0 canonical deployments (same address on every EVM chain).
MULTISEND_V130 = "0xa238cbeb142c10ef7ad8442c6d1f9e89e07e7761"
SAFE_SINGLETON_V130 = "0x3e5c63644e683549055b9be8653de26e0b4cd36e"
SIMULATE_TX_ACCESSOR_V130 = "0x59ad6735bcd8152b84860cb256dd9e96b85f69da"

class Settings(BaseSettings):
    # RPC endpoints. ETH_RPC_URL_n are discovered in order, rpc_urls is appended.
    ETH_RPC_URL_1: SecretStr | None = None
    ETH_RPC_URL_2: SecretStr | None = None
    ETH_RPC_URL_3: SecretStr | None = None
    rpc_urls: List[str] = []
    RPC_TIMEOUT_SECONDS: int = 10

    # Chain configuration
    chain_id: int = 137

    # Relay backend
    RELAY_API_URL: str = "https://api.connect.cometh.io"
    RELAY_API_KEY: SecretStr | None = None
    RELAY_TIMEOUT_SECONDS: int = 30

    # Gas policy
    REWARD_PERCENTILE: float = 80
    BASE_GAS: int = 80_000
    ESTIMATION_STRATEGY: str = "simulate"

    # Safe infrastructure
    MULTISEND_ADDRESS: str = MULTISEND_V130
    SINGLETON_ADDRESS: str = SAFE_SINGLETON_V130
    SIMULATE_TX_ACCESSOR_ADDRESS: str = SIMULATE_TX_ACCESSOR_V130

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: SecretStr | None = None

    @property
    def ETH_RPC_URL(self) -> str | None:  # noqa: N802
        """Primary RPC URL.

        Preference order:

        1. Explicit *ETH_RPC_URL_1* env var / field
        2. First entry in *rpc_urls*
        3. ``None`` if neither is configured
        """
        if self.ETH_RPC_URL_1 is not None:
            return self.ETH_RPC_URL_1.get_secret_value()
        if self.rpc_urls:
            return self.rpc_urls[0]
        return None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

try:
    settings = Settings()
except Exception as e:
    # logger.py imports settings, so report with an unconfigured structlog logger
    structlog.get_logger("SafeRelay.Config").critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    sys.exit(1)
