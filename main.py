# /main.py
# Builds an unsigned relay envelope for one call from the command line.
import argparse
import asyncio
import json
import sys

from saferelay.core.config import settings
from saferelay.core.config_validator import validate as validate_config
from saferelay.core.errors import SafeRelayError
from saferelay.core.logger import configure_logging, get_logger, bind_wallet_context
from saferelay.core.models import MetaTransaction, RelayEnvelope
from saferelay.core.rpc import ChainProvider
from saferelay.core.tx import EstimationStrategy, SafeTxBuilder

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Prepare a Safe transaction for relayed execution.")
    parser.add_argument("--wallet", required=True, help="Safe address")
    parser.add_argument("--to", required=True)
    parser.add_argument("--value", default="0", help="wei, decimal")
    parser.add_argument("--data", default="0x")
    parser.add_argument("--nonce", type=int, default=None, help="defaults to the Safe's on-chain nonce")
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in EstimationStrategy],
        default=settings.ESTIMATION_STRATEGY,
    )
    parser.add_argument("--check-balance", action="store_true")
    return parser.parse_args(argv)

async def main(argv=None) -> int:
    configure_logging()
    log = get_logger("SafeRelay.CLI")
    validate_config()
    args = parse_args(argv)
    bind_wallet_context(args.wallet)

    provider = ChainProvider()
    try:
        await provider.initialize()
        w3 = provider.get_primary_provider()
        builder = SafeTxBuilder.from_settings(w3)

        is_deployed = await provider.is_deployed(args.wallet)
        nonce = args.nonce if args.nonce is not None else await provider.get_safe_nonce(args.wallet)
        tx = MetaTransaction(to=args.to, value=args.value, data=args.data)

        safe_tx = await builder.build(args.wallet, [tx], nonce, EstimationStrategy(args.strategy), is_deployed)
        if args.check_balance:
            await builder.verify_has_enough_balance(args.wallet, safe_tx)
    except SafeRelayError as e:
        log.error("SAFE_TX_PREPARATION_FAILED", error_type=type(e).__name__, error=str(e))
        return 1

    envelope = RelayEnvelope.from_safe_transaction(safe_tx, signatures="0x")
    print(json.dumps(envelope.to_payload(), indent=2))
    return 0

if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
