"""Webhook delivery of composition results."""

import logging

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from scene_composer.config import Settings, get_settings
from scene_composer.exceptions import NotifyError
from scene_composer.schemas.composition import CompositionResult

logger = logging.getLogger(__name__)


class Notifier:
    """POSTs a CompositionResult to the caller's webhook with bounded retry.

    Delivery failures are logged and dropped; they never affect the job.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _retrying(self) -> AsyncRetrying:
        s = self.settings
        return AsyncRetrying(
            stop=stop_after_attempt(s.webhook_max_attempts),
            wait=wait_exponential(
                multiplier=s.webhook_backoff_min_seconds,
                min=s.webhook_backoff_min_seconds,
                max=s.webhook_backoff_max_seconds,
            ),
            retry=retry_if_exception_type(httpx.HTTPError),
            reraise=True,
        )

    async def notify(self, webhook_url: str | None, result: CompositionResult) -> bool:
        """Deliver ``result``. Returns True when the webhook accepted it."""
        if not webhook_url:
            logger.info(f"[NOTIFY] Job {result.job_id} has no webhook, skipping delivery")
            return False

        payload = result.to_payload()
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.webhook_timeout_seconds,
                transport=self._transport,
            ) as client:
                async for attempt in self._retrying():
                    with attempt:
                        attempt_number = attempt.retry_state.attempt_number
                        logger.info(
                            f"[NOTIFY] Sending {result.status} for job {result.job_id} "
                            f"(attempt {attempt_number})"
                        )
                        response = await client.post(webhook_url, json=payload)
                        response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error = NotifyError(
                f"Webhook delivery for job {result.job_id} failed after "
                f"{self.settings.webhook_max_attempts} attempts: {e}"
            )
            logger.error(f"[NOTIFY] {error.message}")
            return False

        logger.info(f"[NOTIFY] Delivered {result.status} for job {result.job_id}")
        return True
