"""Detail page enrichment for plot (tomt) listings."""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from scrapers.common.exceptions import ParsingError, ScraperError
from scrapers.common.http_client import RateLimiter, safe_get
from scrapers.finn_realestate.classifiers import classify_development, classify_obligation
from scrapers.finn_realestate.config import DEFAULT_CONFIG
from scrapers.finn_realestate.finder import find_ad_detail
from scrapers.finn_realestate.models import Listing, PlotDetails
from scrapers.finn_realestate.payload import decode_page


logger = logging.getLogger(__name__)

# Section heading keywords per field, in priority order
REGULATION_HEADINGS = ['regulering']
YEARLY_COST_HEADINGS = ['andre faste', 'løpende kostnader', 'kommunale avgifter']
UTILITY_HEADINGS = ['vei / vann', 'vann og avløp', 'infrastruktur']

REGULATIONS_MAX_LENGTH = 500
YEARLY_COSTS_MAX_LENGTH = 500
UTILITIES_MAX_LENGTH = 300
ELLIPSIS = '...'


def strip_html(html: str) -> str:
    """
    Convert an HTML fragment to plain text.

    Args:
        html: HTML fragment from the ad

    Returns:
        Text with tags removed, entities decoded and whitespace collapsed
    """
    text = BeautifulSoup(html, 'html.parser').get_text(' ')
    return re.sub(r'\s+', ' ', text).strip()


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + ELLIPSIS


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, dict):
        value = value.get('amount')
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _as_list(value: Any) -> List[Any]:
    """Return a list field as is; a lone string is one item, anything else is dropped."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [value]
    return []


def _sections(ad: Dict[str, Any]) -> List[Tuple[str, str]]:
    """
    Collect (heading, plain text) pairs from both section layouts.

    Agent ads use ``generalText`` with ``heading``/``textUnsafe``; ads
    posted by private sellers use ``textSections`` with ``title``/``content``.
    """
    sections = []
    for section in _as_list(ad.get('generalText')):
        if isinstance(section, dict) and section.get('textUnsafe'):
            sections.append((str(section.get('heading') or ''), strip_html(str(section['textUnsafe']))))
    for section in _as_list(ad.get('textSections')):
        if isinstance(section, dict) and section.get('content'):
            sections.append((str(section.get('title') or ''), strip_html(str(section['content']))))
    return sections


def find_section_text(sections: List[Tuple[str, str]], keywords: Iterable[str], max_length: int) -> Optional[str]:
    """
    Return the text of the first section whose heading contains a keyword.

    Keywords are tried in order, so an earlier keyword wins over a later
    one even if the later one appears in an earlier section.

    Args:
        sections: (heading, text) pairs
        keywords: Lower-case heading keywords in priority order
        max_length: Truncation length

    Returns:
        Truncated section text, or None
    """
    for keyword in keywords:
        for heading, text in sections:
            if keyword in heading.lower() and text:
                return truncate(text, max_length)
    return None


def _plot_owned(ad: Dict[str, Any]) -> Optional[str]:
    plot = ad.get('plot')
    owned = plot.get('owned') if isinstance(plot, dict) else None
    if owned is True:
        return 'selveier'
    if owned is False:
        return 'tomtefeste'
    return None


def _cadastre(ad: Dict[str, Any]) -> Optional[str]:
    cadastres = ad.get('cadastres')
    if not isinstance(cadastres, list) or not cadastres or not isinstance(cadastres[0], dict):
        return None
    land_number = cadastres[0].get('landNumber')
    title_number = cadastres[0].get('titleNumber')
    if land_number in (None, '') or title_number in (None, ''):
        return None
    return f"gnr. {land_number} bnr. {title_number}"


def _facilities(ad: Dict[str, Any]) -> Optional[str]:
    names = []
    for facility in _as_list(ad.get('facilities')):
        if isinstance(facility, dict):
            facility = facility.get('text') or facility.get('name')
        if isinstance(facility, str) and facility.strip():
            names.append(facility.strip())
    return ', '.join(names) or None


def parse_plot_details(ad: Dict[str, Any]) -> PlotDetails:
    """
    Extract plot fields and free text from a detail page ad object.

    Args:
        ad: Ad dict as located by find_ad_detail

    Returns:
        PlotDetails

    Raises:
        ParsingError: If the ad object has an unexpected structure
    """
    try:
        sections = _sections(ad)
        price = ad.get('price') if isinstance(ad.get('price'), dict) else {}

        text_parts = [str(ad['title'])] if ad.get('title') else []
        text_parts.extend(text for _, text in sections)

        return PlotDetails(
            plot_owned=_plot_owned(ad),
            total_price=_as_int(price.get('total')),
            tax_value=_as_int(price.get('taxValue')),
            cadastre=_cadastre(ad),
            facilities=_facilities(ad),
            regulations=find_section_text(sections, REGULATION_HEADINGS, REGULATIONS_MAX_LENGTH),
            yearly_costs_text=find_section_text(sections, YEARLY_COST_HEADINGS, YEARLY_COSTS_MAX_LENGTH),
            utilities=find_section_text(sections, UTILITY_HEADINGS, UTILITIES_MAX_LENGTH),
            full_text=' '.join(text_parts).lower(),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ParsingError(f"Failed to parse ad details: {e}")


def apply_details(listing: Listing, details: PlotDetails) -> Listing:
    """Copy detail fields onto a listing and attach the classifier verdicts."""
    obligation = classify_obligation(details.full_text)

    listing.plot_owned = details.plot_owned
    listing.total_price = details.total_price
    listing.tax_value = details.tax_value
    listing.cadastre = details.cadastre
    listing.facilities = details.facilities
    listing.regulations = details.regulations
    listing.utilities = details.utilities
    listing.yearly_costs_text = details.yearly_costs_text
    listing.building_obligation = obligation.obligation
    listing.building_obligation_text = obligation.text
    listing.is_developed = classify_development(details.facilities, details.utilities, details.full_text)
    return listing


class DetailEnricher:
    """Fetches plot detail pages one at a time and classifies them."""

    def __init__(
        self,
        session: requests.Session,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: int = DEFAULT_CONFIG['timeout']
    ):
        """
        Args:
            session: HTTP session used for all requests
            rate_limiter: Paces detail requests; defaults to the configured detail delay
            timeout: Request timeout in seconds
        """
        self.session = session
        self.rate_limiter = rate_limiter or RateLimiter(DEFAULT_CONFIG['detail_delay'])
        self.timeout = timeout

    def fetch_details(self, url: str) -> PlotDetails:
        """
        Fetch and parse one detail page.

        Args:
            url: Listing detail URL

        Returns:
            PlotDetails

        Raises:
            NetworkError: If the request fails
            ParsingError: If the page state cannot be decoded or has no ad
        """
        response = safe_get(self.session, url, timeout=self.timeout)
        ad = find_ad_detail(decode_page(response.text))
        if ad is None:
            raise ParsingError(f"No ad data found on {url}")
        return parse_plot_details(ad)

    def enrich(self, listings: List[Listing]) -> List[Listing]:
        """
        Enrich plot listings in place, one detail page at a time.

        A failed detail page leaves that listing's fields unknown and the
        remaining listings are still processed.

        Args:
            listings: Plot listings from the search pager

        Returns:
            The same listings
        """
        enriched = 0
        for idx, listing in enumerate(self.rate_limiter.paced(listings), 1):
            try:
                logger.debug(f"Fetching plot details {idx}/{len(listings)}: {listing.id}")
                apply_details(listing, self.fetch_details(listing.finn_url))
                enriched += 1
            except ScraperError as e:
                logger.warning(f"Could not enrich plot {listing.id}: {e}")
                listing.building_obligation = 'unknown'
                listing.building_obligation_text = None
                listing.is_developed = None

        logger.info(f"Enriched {enriched}/{len(listings)} plot listings")
        return listings
