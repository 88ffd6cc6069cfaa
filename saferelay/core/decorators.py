# /saferelay/core/decorators.py
# Retry policy for idempotent transport reads. The gas pipeline itself never
# retries; only the relay collaborator's GET endpoints use this.
import asyncio
import logging

import aiohttp
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential, before_sleep_log
from saferelay.core.logger import get_logger

log = get_logger(__name__)

retriable_network_call = retry(
    retry=retry_if_exception_type((aiohttp.ClientConnectionError, asyncio.TimeoutError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    before_sleep=before_sleep_log(log, logging.WARNING),
    reraise=True # Re-raise the last exception after retries are exhausted
)
