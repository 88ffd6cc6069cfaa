# /saferelay/core/config_validator.py
# Run at startup to validate the settings the gas pipeline depends on.
from web3 import Web3

from saferelay.core.config import settings
from saferelay.core.logger import log

ADDRESS_SETTINGS = ['MULTISEND_ADDRESS', 'SINGLETON_ADDRESS', 'SIMULATE_TX_ACCESSOR_ADDRESS']

def validate(config=settings):
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    if not config.ETH_RPC_URL:
        errors.append("Missing required configuration: ETH_RPC_URL_1 or rpc_urls")
    for var in ADDRESS_SETTINGS:
        if not Web3.is_address(getattr(config, var, None) or ""):
            errors.append(f"Invalid address configured for {var}")
    if not 0 <= config.REWARD_PERCENTILE <= 100:
        errors.append("REWARD_PERCENTILE must be within [0, 100]")
    if config.BASE_GAS < 0:
        errors.append("BASE_GAS must be non-negative")
    if config.ESTIMATION_STRATEGY not in ("direct", "simulate"):
        errors.append("ESTIMATION_STRATEGY must be 'direct' or 'simulate'")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---")

if __name__ == "__main__":
    validate()
