"""Multi-page retrieval of finn.no search results."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from scrapers.common.http_client import RateLimiter, safe_get
from scrapers.finn_realestate.config import DEFAULT_CONFIG
from scrapers.finn_realestate.finder import find_listing_batch, find_paging, last_page
from scrapers.finn_realestate.models import Listing, Municipality
from scrapers.finn_realestate.normalizer import normalize_batch
from scrapers.finn_realestate.payload import decode_page


logger = logging.getLogger(__name__)


def page_url(base_url: str, page: int) -> str:
    """Return the URL of a given results page."""
    return base_url if page == 1 else f"{base_url}&page={page}"


class SearchPager:
    """Fetches every results page of one category search, one page at a time."""

    def __init__(
        self,
        session: requests.Session,
        rate_limiter: Optional[RateLimiter] = None,
        max_pages: int = DEFAULT_CONFIG['max_pages'],
        timeout: int = DEFAULT_CONFIG['timeout']
    ):
        """
        Args:
            session: HTTP session used for all requests
            rate_limiter: Paces page requests; defaults to the configured page delay
            max_pages: Hard ceiling on pages fetched per search
            timeout: Request timeout in seconds
        """
        self.session = session
        self.rate_limiter = rate_limiter or RateLimiter(DEFAULT_CONFIG['page_delay'])
        self.max_pages = max_pages
        self.timeout = timeout

    def fetch_page(self, url: str) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """
        Fetch and decode one results page.

        Args:
            url: Results page URL

        Returns:
            Tuple of (raw listings, paging metadata or None)

        Raises:
            NetworkError: If the request fails
            PayloadDecodeError: If the page state cannot be decoded
        """
        self.rate_limiter.wait()
        response = safe_get(self.session, url, timeout=self.timeout)
        tree = decode_page(response.text)
        return find_listing_batch(tree) or [], find_paging(tree)

    def fetch_all(
        self,
        base_url: str,
        municipality: Municipality,
        category: str,
        has_location_filter: bool = True
    ) -> List[Listing]:
        """
        Fetch all pages of a search, up to the page ceiling.

        Failures are not retried; they propagate so the caller can log them
        and move on to the next municipality.

        Args:
            base_url: URL of the first results page
            municipality: Municipality being searched
            category: 'home' or 'tomt'
            has_location_filter: False for keyword searches, which are
                filtered client-side by municipality name

        Returns:
            Normalized listings from every page

        Raises:
            NetworkError: If a page request fails
            PayloadDecodeError: If a page cannot be decoded
        """
        listings: List[Listing] = []
        page = 1
        last = 1

        while page <= last:
            docs, paging = self.fetch_page(page_url(base_url, page))
            listings.extend(normalize_batch(docs, category, municipality, has_location_filter))

            if paging:
                last = min(last_page(paging), self.max_pages)

            logger.debug(f"{municipality.name} {category}: page {page}/{last}, {len(docs)} results")
            page += 1

        logger.info(f"Found {len(listings)} {category} listings for {municipality.name}")
        return listings
