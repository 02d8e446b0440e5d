import httpx

from ..core.errors import PersistenceError
from ..core.logging import call_logger, get_logger
from ..interfaces import AbstractNotifier
from ..models import CallRecord

log = get_logger("notifier")


class TeamNotifier(AbstractNotifier):
    """Posts call alerts to a team webhook. Without a webhook it only logs."""

    def __init__(self, webhook_url: str = "", timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def _payload(self, call: CallRecord, reasons: list[str]) -> dict:
        return {
            "call_id": call.id,
            "title": call.title,
            "contact_id": call.contact_id,
            "deal_id": call.deal_id,
            "sentiment": call.sentiment_overall,
            "urgency": call.urgency_level,
            "summary": call.summary,
            "reasons": reasons,
        }

    async def notify(self, call: CallRecord, reasons: list[str]) -> None:
        clog = call_logger(log, call.id)
        if not self.webhook_url:
            clog.info(f"Team attention needed: {', '.join(reasons)}")
            return

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=self._payload(call, reasons))
        except httpx.HTTPError as e:
            raise PersistenceError(f"Notification webhook unreachable: {e}", {"call_id": call.id})

        if response.status_code >= 400:
            raise PersistenceError(
                f"Notification webhook returned {response.status_code}",
                {"call_id": call.id, "body": response.text[:200]},
            )
        clog.info("Team notified", extra={"reasons": reasons})
