import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

import config

logger = logging.getLogger(__name__)

ONESIGNAL_API_URL = "https://onesignal.com/api/v1/notifications"

PUSH_SENT = "sent"
PUSH_ERROR = "error"
PUSH_NO_TOKEN = "no_token"
PUSH_DISABLED = "disabled"


@dataclass
class PushResult:
    status: str
    error: Optional[str] = None
    invalid_player_ids: List[str] = field(default_factory=list)
    provider_id: Optional[str] = None

    def as_metadata(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        if self.error:
            data["error"] = self.error
        if self.provider_id:
            data["provider_id"] = self.provider_id
        if self.invalid_player_ids:
            data["invalid_token"] = True
        return data


async def send_push_notification_async(
    player_ids: List[str],
    heading: str,
    content: str,
    data: Optional[Dict[str, Any]] = None,
    url: Optional[str] = None,
) -> PushResult:
    """
    Send push notification via OneSignal asynchronously.

    Args:
        player_ids: OneSignal player IDs (member delivery tokens) to send to
        heading: Notification heading/title
        content: Notification content/message
        data: Optional data payload to include
        url: Optional deep link opened when the notification is clicked

    Returns:
        PushResult describing the delivery outcome; never raises for provider errors
    """
    if not config.ONESIGNAL_ENABLED:
        logger.debug("OneSignal not enabled, notification not sent")
        return PushResult(status=PUSH_DISABLED)

    if not player_ids:
        return PushResult(status=PUSH_NO_TOKEN)

    if not all([config.ONESIGNAL_APP_ID, config.ONESIGNAL_REST_API_KEY]):
        logger.warning("OneSignal credentials not fully configured")
        return PushResult(status=PUSH_ERROR, error="onesignal_not_configured")

    payload = {
        "app_id": config.ONESIGNAL_APP_ID,
        "include_player_ids": player_ids,
        "headings": {"en": heading},
        "contents": {"en": content},
    }

    if data:
        payload["data"] = data

    if url:
        payload["url"] = url

    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Basic {config.ONESIGNAL_REST_API_KEY}",
    }

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(ONESIGNAL_API_URL, json=payload, headers=headers)
            response.raise_for_status()
            result = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"OneSignal API error: {e.response.status_code} - {e.response.text}")
        return PushResult(status=PUSH_ERROR, error=f"http_{e.response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"Failed to send OneSignal notification: {e}")
        return PushResult(status=PUSH_ERROR, error=type(e).__name__)

    invalid_ids = []
    errors = result.get("errors")
    if isinstance(errors, dict):
        invalid_ids = list(errors.get("invalid_player_ids") or [])
    elif result.get("invalid_player_ids"):
        invalid_ids = list(result["invalid_player_ids"])

    if invalid_ids:
        logger.warning(f"OneSignal reported invalid player IDs: {invalid_ids}")
        if set(invalid_ids) >= set(player_ids):
            return PushResult(
                status=PUSH_ERROR,
                error="invalid_player_ids",
                invalid_player_ids=invalid_ids,
            )

    logger.info(f"OneSignal notification sent to {len(player_ids)} players")
    return PushResult(
        status=PUSH_SENT,
        provider_id=result.get("id"),
        invalid_player_ids=invalid_ids,
    )
