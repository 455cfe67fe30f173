"""
SMS gateway over a generic HTTP send endpoint.

Unlike push, the caller needs to know whether each SMS went out, so
``send`` never raises for transport problems: it returns an ``SmsResult``
and the dispatcher counts the successes.
"""

import logging
from typing import Optional

import httpx

from schemas.notifications import SmsMessage, SmsResult


class HttpSmsGateway:
    """POST ``{from, to, message}`` to the configured SMS provider."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self.logger = logger or logging.getLogger(__name__)

    def send(self, message: SmsMessage) -> SmsResult:
        if not self.url:
            return SmsResult(success=False, detail="SMS gateway URL not configured")

        payload = {"from": message.sender, "to": message.to, "message": message.body}
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            return SmsResult(success=False, detail=str(e))

        return SmsResult(
            success=response.is_success,
            status_code=response.status_code,
            detail=None if response.is_success else response.text[:200],
        )
