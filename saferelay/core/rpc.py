# /saferelay/core/rpc.py
# Multi-node AsyncWeb3 provider plus the chain-side collaborators the gas
# pipeline needs (deployment check, Safe nonce).
import asyncio

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from saferelay.abis import SAFE_ABI
from saferelay.core.config import settings
from saferelay.core.errors import NetworkFailure
from saferelay.core.logger import get_logger

log = get_logger(__name__)

# Failures of the transport itself, as opposed to the node rejecting a call.
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError, OSError)
# Anything a node query can raise: transport failures plus JSON-RPC rejections.
RPC_ERRORS = (Web3Exception, ValueError, *TRANSPORT_ERRORS)

def get_rpc_urls_from_env():
    """Dynamically finds all ETH_RPC_URL_n variables from settings, then rpc_urls."""
    urls = [getattr(settings, 'ETH_RPC_URL_1', None)]
    i = 2
    while (url := getattr(settings, f'ETH_RPC_URL_{i}', None)):
        urls.append(url)
        i += 1
    found = [u.get_secret_value() for u in urls if u]
    return found + [u for u in settings.rpc_urls if u not in found]

class ChainProvider:
    def __init__(self, rpc_urls: list[str] | None = None, timeout: int | None = None):
        self.rpc_urls = rpc_urls if rpc_urls is not None else get_rpc_urls_from_env()
        self.timeout = timeout or settings.RPC_TIMEOUT_SECONDS
        self.providers = [
            AsyncWeb3(AsyncHTTPProvider(url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.timeout)}))
            for url in self.rpc_urls
        ]
        self.primary_provider: AsyncWeb3 | None = None

    async def initialize(self):
        """Selects the first reachable node as primary."""
        for index, provider in enumerate(self.providers):
            try:
                if await provider.is_connected():
                    self.primary_provider = provider
                    log.info("CHAIN_PROVIDER_INITIALIZED", rpc_count=len(self.providers))
                    return
            except TRANSPORT_ERRORS as e:
                log.error("RPC_NODE_UNREACHABLE", error=str(e))
            log.warning("RPC_NODE_SKIPPED", index=index)
        raise NetworkFailure("All RPC nodes are unreachable.")

    def get_primary_provider(self) -> AsyncWeb3:
        if self.primary_provider is None:
            raise NetworkFailure("ChainProvider.initialize() has not selected a node yet.")
        return self.primary_provider

    async def is_deployed(self, address: str) -> bool:
        return await is_deployed(self.get_primary_provider(), address)

    async def get_safe_nonce(self, address: str) -> int:
        return await get_safe_nonce(self.get_primary_provider(), address)

async def is_deployed(w3, address: str) -> bool:
    """A Safe counts as deployed once code exists at its address."""
    try:
        code = await w3.eth.get_code(AsyncWeb3.to_checksum_address(address))
    except RPC_ERRORS as e:
        raise NetworkFailure(f"get_code failed for {address}: {e}") from e
    return len(code) > 0

async def get_safe_nonce(w3, address: str) -> int:
    """Current Safe nonce, 0 for a wallet that has not been deployed yet."""
    if not await is_deployed(w3, address):
        return 0
    safe = w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=SAFE_ABI)
    try:
        return await safe.functions.nonce().call()
    except RPC_ERRORS as e:
        raise NetworkFailure(f"nonce() failed for {address}: {e}") from e
