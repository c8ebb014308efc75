"""HTTP client with retries for outbound notification delivery."""
import time
import logging
import requests

logger = logging.getLogger("swapwatch.http")


class APIError(Exception):
    """Delivery error with status code and response body."""
    def __init__(self, message, status_code=None, response_body=None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class HTTPClient:
    """POSTs JSON with retry on throttling and server errors."""

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}
    NON_RETRYABLE_STATUS = {400, 401, 403, 404, 405, 413, 422}

    def __init__(self, url, timeout=10, max_retries=2, headers=None, backoff_base=1.0):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "swapwatch/1.0", "Content-Type": "application/json"})
        if headers:
            self.session.headers.update(headers)

    def _wait(self, attempt, retry_after=None):
        wait = float(retry_after) if retry_after else min(self.backoff_base * 2 ** attempt, 30)
        if wait > 0:
            time.sleep(wait)

    def post_json(self, payload, headers=None):
        """POST payload as JSON. Returns parsed body (or text) on 2xx."""
        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                start = time.time()
                resp = self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout)
                latency = int((time.time() - start) * 1000)
                logger.debug(f"POST {self.url} → {resp.status_code} ({latency}ms)")

                if 200 <= resp.status_code < 300:
                    try:
                        return resp.json()
                    except ValueError:
                        return resp.text

                if resp.status_code in self.NON_RETRYABLE_STATUS:
                    raise APIError(
                        f"HTTP {resp.status_code} from {self.url}",
                        status_code=resp.status_code,
                        response_body=resp.text,
                    )

                if resp.status_code in self.RETRYABLE_STATUS:
                    logger.warning(f"Retryable {resp.status_code} from {self.url} (attempt {attempt + 1})")
                    last_error = APIError(f"HTTP {resp.status_code}", status_code=resp.status_code)
                    if attempt < self.max_retries:
                        self._wait(attempt, resp.headers.get("Retry-After"))
                    continue

                raise APIError(f"Unexpected HTTP {resp.status_code}", status_code=resp.status_code)

            except requests.exceptions.RequestException as e:
                logger.warning(f"Request error for {self.url}: {e} (attempt {attempt + 1})")
                last_error = e
                if attempt < self.max_retries:
                    self._wait(attempt)

        raise last_error or APIError(f"Max retries exceeded for {self.url}")
