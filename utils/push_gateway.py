"""
Push notification gateway (OneSignal REST API).

The dispatcher builds a ``PushNotification`` and hands it to a gateway;
the gateway only knows how to put it on the wire. Transport errors are
raised as ``PushGatewayError`` and handled at the dispatch boundary.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from schemas.notifications import PushNotification


class PushGatewayError(Exception):
    """Raised when the push provider cannot be reached or rejects a request."""


class OneSignalPushGateway:
    """Send tag-filtered notifications through the OneSignal REST API."""

    def __init__(
        self,
        app_id: str,
        api_key: str,
        url: str = "https://onesignal.com/api/v1/notifications",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_id = app_id
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._client = client
        self.logger = logger or logging.getLogger(__name__)

    def build_body(self, notification: PushNotification) -> Dict[str, Any]:
        """Map a notification onto the OneSignal request body."""
        body: Dict[str, Any] = {
            "app_id": self.app_id,
            "tags": notification.tags,
            "data": notification.data,
            "title": {"en": notification.title},
            "contents": notification.contents,
            "ios_badgeType": "Increase",
            "ios_badgeCount": 1,
            "android_sound": notification.android_sound,
            "ios_sound": notification.ios_sound,
        }
        if notification.send_after:
            body["send_after"] = notification.send_after
        return body

    def send(self, notification: PushNotification) -> Dict[str, Any]:
        """
        POST one notification.

        Returns:
            The decoded provider response (logged by the caller, not interpreted)

        Raises:
            PushGatewayError: On connection failure or non-2xx response
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self.api_key}",
        }
        body = self.build_body(notification)
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=body, headers=headers)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PushGatewayError(
                f"Push provider returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise PushGatewayError(f"Push request failed: {e}") from e

        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}
