"""
Push notification delivery through the Expo push service.
"""

from typing import Any, Dict, List, Optional

import requests

from healpath.config import EXPO_PUSH_URL, REQUEST_TIMEOUT_SECONDS
from healpath.errors import HealPathError

EXPO_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")


def is_expo_push_token(token: Optional[str]) -> bool:
    return bool(token) and token.startswith(EXPO_TOKEN_PREFIXES) and token.endswith("]")


class ExpoPushSender:
    """Sends one notification to one device token and returns the service's tickets.

    Anything with a ``send(token, title, body, data)`` method can replace it.
    """

    def __init__(self, url: str = EXPO_PUSH_URL, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def send(self, token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        message = {"to": token, "sound": "default", "title": title, "body": body, "data": data or {}}
        try:
            response = requests.post(
                self.url,
                json=[message],
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise HealPathError(f"Push delivery failed: {e}", status_code=502)
        return response.json().get("data", [])
