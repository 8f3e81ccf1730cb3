"""Main finn.no real-estate scraper: per-municipality orchestration."""

import logging
import sys
import time
from typing import Callable, List, Optional, Sequence

import requests

from scrapers.common.http_client import get_http_session, RateLimiter
from scrapers.common.exceptions import ConfigurationError, ScraperError
from scrapers.finn_realestate.config import (
    DEFAULT_CONFIG,
    load_location_codes,
    load_municipalities,
)
from scrapers.finn_realestate.detail import DetailEnricher
from scrapers.finn_realestate.locations import LocationResolver
from scrapers.finn_realestate.models import Listing, Municipality, RefreshProgress, UpdateOutcome
from scrapers.finn_realestate.pager import SearchPager
from scrapers.finn_realestate.storage import ListingStore


logger = logging.getLogger(__name__)

CATEGORIES = ('home', 'tomt')


class MunicipalityScraper:
    """Scrapes homes and plots for municipalities and stores the results."""

    def __init__(
        self,
        store: ListingStore,
        location_codes: Optional[dict] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        config: Optional[dict] = None
    ):
        """
        Initialize the scraper.

        Args:
            store: Storage for scraped listings and run outcomes
            location_codes: Municipality name -> finn.no location code
                (loaded from the bundled data file when omitted)
            session: HTTP session (a browser-like session is created when omitted)
            sleep: Sleep function used for all request pacing
            config: Overrides for DEFAULT_CONFIG
        """
        self.config = dict(DEFAULT_CONFIG, **(config or {}))
        self.store = store
        self.sleep = sleep
        self.resolver = LocationResolver(
            location_codes if location_codes is not None else load_location_codes()
        )
        self.session = session or get_http_session(
            max_retries=self.config['max_retries'],
            user_agent=self.config['user_agent'],
            accept_language=self.config['accept_language']
        )
        self.progress = RefreshProgress()

        logger.info("Initialized finn.no real-estate scraper")

    def _pager(self) -> SearchPager:
        return SearchPager(
            self.session,
            rate_limiter=RateLimiter(self.config['page_delay'], sleep=self.sleep),
            max_pages=self.config['max_pages'],
            timeout=self.config['timeout']
        )

    def _enricher(self) -> DetailEnricher:
        return DetailEnricher(
            self.session,
            rate_limiter=RateLimiter(self.config['detail_delay'], sleep=self.sleep),
            timeout=self.config['timeout']
        )

    def scrape_category(self, municipality: Municipality, category: str) -> List[Listing]:
        """
        Scrape all listings of one category for a municipality.

        Plots are additionally enriched from their detail pages.

        Args:
            municipality: Municipality to scrape
            category: 'home' or 'tomt'

        Returns:
            List of Listing objects

        Raises:
            NetworkError: If a search page request fails
            ParsingError: If a search page cannot be decoded
        """
        url, has_location_filter = self.resolver.build_search_url(municipality.name, category)
        logger.info(f"Fetching {category} listings for {municipality.name} ({municipality.code})")

        listings = self._pager().fetch_all(url, municipality, category, has_location_filter)
        if category == 'tomt' and listings:
            self._enricher().enrich(listings)
        return listings

    def scrape_municipality(self, municipality: Municipality) -> UpdateOutcome:
        """
        Scrape and store homes and plots for one municipality.

        A failing category is logged and recorded; the other category is
        still scraped.

        Args:
            municipality: Municipality to scrape

        Returns:
            UpdateOutcome with counts and any error messages
        """
        outcome = UpdateOutcome(municipality_code=municipality.code)
        errors = []

        for idx, category in enumerate(CATEGORIES):
            if idx:
                self.sleep(self.config['category_delay'])
            try:
                listings = self.scrape_category(municipality, category)
            except ScraperError as e:
                logger.error(f"Error scraping {category} for {municipality.name}: {e}")
                errors.append(f"{category}: {e}")
                listings = []

            outcome.new_listings += self.store.upsert_listings(municipality, listings)
            outcome.listings_found += len(listings)

        if errors:
            outcome.error = '; '.join(errors)
        if outcome.new_listings:
            logger.info(
                f"Found {outcome.listings_found} listings for {municipality.name} "
                f"({outcome.new_listings} new)"
            )
        return outcome

    def run_update(self, municipalities: Sequence[Municipality]) -> List[UpdateOutcome]:
        """
        Scrape municipalities one after another.

        Every municipality gets exactly one recorded outcome, and a failure
        in one never stops the run.

        Args:
            municipalities: Municipalities to scrape, in order

        Returns:
            List of UpdateOutcome objects
        """
        self.progress.start(len(municipalities))
        logger.info(f"Starting update for {len(municipalities)} municipalities")
        self.store.mark_all_not_new()

        try:
            for idx, municipality in enumerate(municipalities):
                self.progress.advance()
                try:
                    outcome = self.scrape_municipality(municipality)
                except Exception as e:
                    logger.error(f"Update failed for {municipality.name}: {e}", exc_info=True)
                    outcome = UpdateOutcome(municipality_code=municipality.code, error=str(e))

                self.store.record_update(
                    outcome.municipality_code,
                    listings_found=outcome.listings_found,
                    new_listings=outcome.new_listings,
                    error=outcome.error
                )
                self.progress.outcomes.append(outcome)

                if idx < len(municipalities) - 1:
                    self.sleep(self.config['municipality_delay'])
        finally:
            self.progress.finish()

        logger.info("Update complete")
        return list(self.progress.outcomes)


def select_municipalities(
    municipalities: Sequence[Municipality],
    codes: Optional[Sequence[str]] = None
) -> List[Municipality]:
    """
    Pick the municipalities to scrape.

    Args:
        municipalities: Full reference list
        codes: Explicit municipality codes; when omitted, all municipalities
            without property tax are selected

    Returns:
        List of Municipality objects

    Raises:
        ConfigurationError: If a requested code is unknown
    """
    if not codes:
        return [m for m in municipalities if not m.has_property_tax]

    by_code = {m.code: m for m in municipalities}
    unknown = [code for code in codes if code not in by_code]
    if unknown:
        raise ConfigurationError(f"Unknown municipality code(s): {', '.join(unknown)}")
    return [by_code[code] for code in codes]


def main():
    """Command-line interface for the scraper."""
    import argparse
    import json

    # Set up logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description='finn.no real-estate scraper')
    parser.add_argument(
        '--municipality',
        action='append',
        dest='municipalities',
        metavar='CODE',
        help='Municipality code to scrape (repeatable; default: all without property tax)'
    )
    parser.add_argument(
        '--db',
        default='listings.db',
        help='SQLite database file (default: listings.db)'
    )
    parser.add_argument(
        '--municipalities-file',
        help='Municipality reference list (JSON)'
    )
    parser.add_argument(
        '--locations-file',
        help='Municipality name to finn.no location code table (JSON)'
    )
    parser.add_argument(
        '--output',
        help='Write per-municipality outcomes to this JSON file'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        targets = select_municipalities(
            load_municipalities(args.municipalities_file),
            args.municipalities
        )
        with ListingStore(args.db) as store:
            scraper = MunicipalityScraper(store, location_codes=load_location_codes(args.locations_file))
            outcomes = scraper.run_update(targets)

        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                json.dump([o.to_dict() for o in outcomes], f, indent=2, ensure_ascii=False)
            logger.info(f"Outcomes written to {args.output}")

        failed = sum(1 for o in outcomes if o.error)
        logger.info(f"Scraping completed: {len(outcomes)} municipalities, {failed} with errors")
        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Scraping failed: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
