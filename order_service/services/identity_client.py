# order_service/services/identity_client.py
import requests
from requests import RequestException

from order_service.domain.errors import UpstreamUnavailable
from order_service.utils.logging import get_logger
from order_service.utils.retry import http_retry

logger = get_logger(__name__)


class IdentityClient:
    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    @http_retry()
    def _fetch(self, user_id: int) -> dict | None:
        url = f"{self.base_url}/users/{user_id}"
        logger.info(f"IdentityClient GET {url}")

        resp = self.http.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        body = resp.json()
        return body.get("data", body) if isinstance(body, dict) else None

    def get_user(self, user_id: int) -> dict | None:
        try:
            data = self._fetch(user_id)
        except RequestException as e:
            logger.warning(f"Identity lookup for user {user_id} failed: {e}")
            raise UpstreamUnavailable("User service unavailable", code="IDENTITY_UNAVAILABLE") from e

        if not data:
            return None
        return {
            "full_name": data.get("full_name") or data.get("name"),
            "email": data.get("email"),
            "phone": data.get("phone"),
        }

    def close(self):
        self.http.close()
