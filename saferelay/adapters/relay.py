# /saferelay/adapters/relay.py
# Transport to the relay backend. Submits finished envelopes and exposes the
# few read endpoints the relay flow needs.
import asyncio
from typing import List

import aiohttp
from pydantic import ValidationError

from saferelay.core.config import settings
from saferelay.core.decorators import retriable_network_call
from saferelay.core.errors import RelayRequestFailed
from saferelay.core.logger import get_logger, RELAY_SUBMISSIONS
from saferelay.core.models import RelayEnvelope, SafeTransaction, SponsoredAddress

log = get_logger(__name__)

class RelayClient:
    """
    Async client for the relay API. Use as ``async with RelayClient() as relay``
    so the underlying aiohttp session is closed.
    """
    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        chain_id: int | None = None,
        timeout: int | None = None,
    ):
        self.api_url = (api_url or settings.RELAY_API_URL).rstrip("/")
        if api_key is None and settings.RELAY_API_KEY:
            api_key = settings.RELAY_API_KEY.get_secret_value()
        self.headers = {"chainId": str(chain_id or settings.chain_id)}
        if api_key:
            self.headers["apikey"] = api_key
        else:
            log.warning("RELAY_CLIENT_NO_API_KEY")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.RELAY_TIMEOUT_SECONDS)
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "RelayClient":
        self.session = aiohttp.ClientSession(headers=self.headers, timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None

    def _url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise RuntimeError("RelayClient must be used as an async context manager")
        return self.session

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> dict:
        try:
            body = await response.json(content_type=None)
        except ValueError as e:
            raise RelayRequestFailed(f"relay returned a non-JSON body: {e}", status=response.status) from e
        if response.status >= 400 or not isinstance(body, dict) or not body.get("success"):
            raise RelayRequestFailed(f"relay request was not successful: {body}", status=response.status)
        return body

    @retriable_network_call
    async def _get(self, path: str) -> dict:
        async with self._session().get(self._url(path)) as response:
            return await self._read_json(response)

    async def _get_json(self, path: str) -> dict:
        try:
            return await self._get(path)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.error("RELAY_GET_FAILED", path=path, error=str(e))
            raise RelayRequestFailed(f"GET {path} failed: {e}") from e

    async def relay_transaction(self, wallet_address: str, safe_tx: SafeTransaction, signatures: str) -> str:
        """Submits the signed envelope and returns the Safe transaction hash. Never retried."""
        envelope = RelayEnvelope.from_safe_transaction(safe_tx, signatures)
        path = f"/wallets/{wallet_address}/relay"
        try:
            async with self._session().post(self._url(path), json=envelope.to_payload()) as response:
                body = await self._read_json(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            RELAY_SUBMISSIONS.labels("transport_error").inc()
            log.error("RELAY_SUBMISSION_TRANSPORT_FAILURE", wallet=wallet_address, error=str(e))
            raise RelayRequestFailed(f"relay submission failed: {e}") from e
        except RelayRequestFailed as e:
            RELAY_SUBMISSIONS.labels("rejected").inc()
            log.error("RELAY_SUBMISSION_REJECTED", wallet=wallet_address, status=e.status, error=str(e))
            raise

        safe_tx_hash = body.get("safeTxHash")
        if not safe_tx_hash:
            RELAY_SUBMISSIONS.labels("rejected").inc()
            raise RelayRequestFailed("relay response is missing safeTxHash", status=response.status)
        RELAY_SUBMISSIONS.labels("accepted").inc()
        log.info("RELAY_SUBMISSION_ACCEPTED", wallet=wallet_address, safe_tx_hash=safe_tx_hash, nonce=safe_tx.nonce)
        return safe_tx_hash

    async def get_sponsored_addresses(self) -> List[SponsoredAddress]:
        body = await self._get_json("/sponsored-address")
        try:
            return [SponsoredAddress.model_validate(item) for item in body.get("sponsoredAddresses", [])]
        except ValidationError as e:
            raise RelayRequestFailed(f"malformed sponsored address list: {e}") from e

    async def get_wallet_address(self, owner_address: str) -> str:
        """Address of the Safe owned by ``owner_address``, deployed or predicted."""
        body = await self._get_json(f"/wallets/{owner_address}/wallet-address")
        wallet_address = body.get("walletAddress")
        if not wallet_address:
            raise RelayRequestFailed("relay response is missing walletAddress")
        return wallet_address
