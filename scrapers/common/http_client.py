"""Shared HTTP client with fixed-delay pacing."""

import time
import logging
from typing import Callable, Iterable, Iterator, TypeVar
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import NetworkError


logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
DEFAULT_ACCEPT_LANGUAGE = 'nb-NO,nb;q=0.9,no;q=0.8,en;q=0.7'


class RateLimiter:
    """Sleeps a fixed delay between consecutive requests."""

    def __init__(self, delay: float, sleep: Callable[[float], None] = time.sleep):
        """
        Initialize rate limiter.

        Args:
            delay: Seconds to wait between two consecutive requests
            sleep: Sleep function, replaceable in tests
        """
        self.delay = delay
        self.sleep = sleep
        self.calls = 0

    def wait(self):
        """Wait before a request. The first call never sleeps."""
        if self.calls and self.delay > 0:
            logger.debug(f"Rate limiting: sleeping for {self.delay:.2f} seconds")
            self.sleep(self.delay)
        self.calls += 1

    def paced(self, items: Iterable[T]) -> Iterator[T]:
        """
        Yield items one at a time, waiting the delay between them.

        Args:
            items: Work items, typically URLs or listings

        Yields:
            Each item, after the delay has been applied
        """
        for item in items:
            self.wait()
            yield item


def get_http_session(
    max_retries: int = 0,
    user_agent: str = DEFAULT_USER_AGENT,
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
) -> requests.Session:
    """
    Create an HTTP session with browser-like headers.

    Args:
        max_retries: Transport-level retries for failed requests (0 disables)
        user_agent: User agent string sent with every request
        accept_language: Accept-Language header value

    Returns:
        Configured requests.Session object
    """
    session = requests.Session()

    retry = Retry(
        total=max_retries,
        read=max_retries,
        connect=max_retries,
        backoff_factor=0.3,
        status_forcelist=(500, 502, 504, 429),
        raise_on_status=False
    )

    adapter = HTTPAdapter(max_retries=retry)
    session.mount('http://', adapter)
    session.mount('https://', adapter)

    session.headers.update({
        'User-Agent': user_agent,
        'Accept': 'text/html,application/xhtml+xml',
        'Accept-Language': accept_language,
    })

    return session


def safe_get(session: requests.Session, url: str, **kwargs) -> requests.Response:
    """
    Perform a GET request with error handling.

    Args:
        session: Requests session to use
        url: URL to fetch
        **kwargs: Additional arguments to pass to session.get()

    Returns:
        Response object

    Raises:
        NetworkError: If the request fails or the status is not 2xx
    """
    try:
        logger.debug(f"GET {url}")
        response = session.get(url, **kwargs)
        response.raise_for_status()
        return response
    except requests.RequestException as e:
        status_code = getattr(getattr(e, 'response', None), 'status_code', None)
        logger.error(f"Network error fetching {url}: {e}")
        raise NetworkError(f"Failed to fetch {url}: {e}", status_code=status_code)
