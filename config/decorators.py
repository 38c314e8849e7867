import asyncio
import functools
import logging

logger = logging.getLogger(__name__)

def retry_on_ssl_error(func):
    """
    Retry an async read-only store call if it fails with the intermittent
    SSL DECRYPTION_FAILED_OR_BAD_RECORD_MAC error raised by the HTTP/2
    transport. Only apply to idempotent reads.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        max_retries = 3
        for attempt in range(max_retries):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if "DECRYPTION_FAILED_OR_BAD_RECORD_MAC" in str(e) and attempt < max_retries - 1:
                    logger.warning(f"SSL error on {func.__name__}. Retrying in 0.5 seconds... (Attempt {attempt + 1}/{max_retries})")
                    await asyncio.sleep(0.5)
                else:
                    raise
    return wrapper
