"""HTTP client for the slot store and booking API.

Pattern: requests.Session with urllib3 retries for 5xx/429, tenacity
exponential backoff for connection-level failures, a default timeout on
every request, and a circuit breaker per backend.
"""
import logging

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.util.retry import Retry

from dentmatch import config
from dentmatch.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


def create_http_session(
    max_retries: int = config.HTTP_MAX_RETRIES,
    backoff_factor: float = 1.0,
    timeout: int = config.HTTP_TIMEOUT,
    max_wait: float = 8,
) -> requests.Session:
    """
    Create HTTP session with retry and connection pooling.

    HTTP status errors are not retried by tenacity: a 409 from the booking
    API is an answer, not a transient fault.

    Args:
        max_retries: Maximum number of retry attempts
        backoff_factor: urllib3 backoff multiplier
        timeout: Request timeout in seconds
        max_wait: Upper bound on a single tenacity backoff delay

    Returns:
        Configured requests.Session
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],  # POST /bookings is not idempotent
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=10,
        pool_maxsize=10,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    original_request = session.request

    @retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=1, min=0, max=max_wait),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def request_with_retry(method, url, **kwargs):
        kwargs.setdefault("timeout", timeout)
        return original_request(method, url, **kwargs)

    session.request = request_with_retry
    return session


class ApiClient:
    """Thin client for one booking backend: base URL + session + circuit breaker."""

    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        session: requests.Session = None,
        breaker: CircuitBreaker = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or create_http_session()
        self.breaker = breaker or CircuitBreaker(name=self.base_url)

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def call(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Make API call with circuit breaker protection.

        Status codes are returned as-is; callers decide what a 4xx means.
        Server errors count against the circuit.

        Raises:
            CircuitBreakerOpen: If circuit is open
            requests.exceptions.RequestException: If the request fails after retries
        """
        def make_request():
            response = self.session.request(method.upper(), self.url(path), **kwargs)
            if response.status_code >= 500:
                response.raise_for_status()
            return response

        return self.breaker.call(make_request)
