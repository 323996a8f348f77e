import os
import logging
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class HttpRandomnessCoordinator:
    """``requests``-based client for an external verifiable-randomness service.

    The service answers a request with an id and later calls the lottery's
    ``deliver_randomness`` callback with the generated values.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        callback_url: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        url = base_url or os.getenv("RANDOMNESS_BASE_URL")
        if not url:
            raise ValueError("Environment variable 'RANDOMNESS_BASE_URL' is not set")

        self.base_url = url.rstrip("/")
        self.api_token = api_token or os.getenv("RANDOMNESS_API_TOKEN")
        self.callback_url = callback_url or os.getenv("RANDOMNESS_CALLBACK_URL")
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------- headers --------
    @property
    def headers(self) -> Mapping[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=self.headers,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def request_random_words(self, num_words: int) -> str:
        payload: dict[str, Any] = {"num_words": num_words}
        if self.callback_url:
            payload["callback_url"] = self.callback_url
        # Never log the bearer token
        logger.debug("Requesting %d random words from %s", num_words, self.base_url)
        response = self._request("POST", "/api/v1/requests", json=payload)
        if not isinstance(response, dict) or "request_id" not in response:
            raise RuntimeError(f"Unexpected randomness response: {response!r}")
        return str(response["request_id"])
