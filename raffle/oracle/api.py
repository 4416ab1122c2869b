import os
import logging
from urllib.parse import urljoin
from dotenv import load_dotenv
from .utils import open_session
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


class CoordinatorClient:
    """HTTP client for a hosted VRF coordinator.

    Implements the outbound half of the randomness handshake. The service
    delivers the random words later by calling back into the raffle.
    """

    def __init__(
        self,
        base_fqdn: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: int = 45,
        submit_timeout: int = 10,
    ):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("VRF_COORDINATOR_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'VRF_COORDINATOR_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        self.session = open_session(api_key)
        self.timeout = timeout
        # Submissions run while the raffle round is locked; keep them short.
        self.submit_timeout = submit_timeout

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        timeout: Optional[int] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers,
            params=params,
            json=json,
            timeout=timeout or self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def request_random_words(
        self,
        *,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: str,
    ) -> str:
        """Submit a randomness request and return its handle."""
        response = self._request(
            "POST",
            "/api/v1/vrf/requests",
            json={
                "key_hash": key_hash,
                "subscription_id": subscription_id,
                "request_confirmations": request_confirmations,
                "callback_gas_limit": callback_gas_limit,
                "num_words": num_words,
                "consumer": consumer,
            },
            timeout=self.submit_timeout,
        )
        if not isinstance(response, dict) or response.get("request_id") is None:
            raise RuntimeError(f"Unexpected coordinator response: {response!r}")
        request_id = str(response["request_id"])
        logger.debug(f"Coordinator accepted request {request_id} for {consumer}")
        return request_id

    def get_request(self, request_id: str) -> dict:
        return self._request("GET", f"/api/v1/vrf/requests/{request_id}")

    def get_subscription(self, subscription_id: int) -> dict:
        return self._request("GET", f"/api/v1/vrf/subscriptions/{subscription_id}")
