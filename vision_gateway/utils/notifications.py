import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import aiohttp

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Best-effort, at-most-once delivery of completed analyses to a webhook"""

    def __init__(self, webhook_url: Optional[str], timeout_seconds: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def notify(
        self,
        analysis_result: Any,
        original_request: Dict[str, Any]
    ) -> Optional[asyncio.Task]:
        """Schedule delivery in a detached task and return immediately"""
        if not self.enabled:
            return None

        event = {
            "analysisResult": analysis_result,
            "originalRequest": original_request,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        task = asyncio.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, event: Dict[str, Any]) -> bool:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.webhook_url, json=event) as response:
                    if response.status >= 400:
                        logger.error(f"Webhook rejected notification: HTTP {response.status}")
                        return False
            logger.info("Analysis notification sent to webhook")
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Webhook notification failed: {e}")
            return False
        except Exception as e:
            # Never let a notification failure reach the request task
            logger.error(f"Unexpected webhook error: {e}", exc_info=True)
            return False

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight deliveries, e.g. on shutdown"""
        if not self._pending:
            return
        logger.info(f"Waiting for {len(self._pending)} pending webhook notification(s)")
        await asyncio.wait(set(self._pending), timeout=timeout)
