"""Municipality name to finn.no location code resolution."""

import logging
from typing import Dict, Optional, Tuple
from urllib.parse import quote

from scrapers.common.validators import normalize_place_name, primary_name
from scrapers.finn_realestate.config import (
    CATEGORY_SECTIONS,
    SEARCH_URL_WITH_LOCATION,
    SEARCH_URL_WITH_QUERY,
)


logger = logging.getLogger(__name__)


class LocationResolver:
    """Looks up finn.no location codes by municipality name."""

    def __init__(self, location_codes: Dict[str, str]):
        """
        Args:
            location_codes: Lower-case municipality name -> location code
        """
        self.location_codes = {name.lower(): code for name, code in location_codes.items()}

    def resolve(self, municipality_name: str) -> Tuple[Optional[str], bool]:
        """
        Resolve a display name to a location code.

        Tries the full name, then the primary segment, then the alternate
        segment of names such as 'Kautokeino - Guovdageaidnu'.

        Args:
            municipality_name: Municipality display name

        Returns:
            Tuple of (location_code, has_location_filter). A miss returns
            (None, False) and the caller must search by keyword instead.
        """
        name = normalize_place_name(municipality_name)
        segments = [segment.strip() for segment in name.split(' - ')]

        candidates = [name, segments[0]]
        if len(segments) > 1 and segments[1]:
            candidates.append(segments[1])

        for candidate in candidates:
            code = self.location_codes.get(candidate)
            if code:
                return code, True

        logger.debug(f"No location code for {municipality_name}, using keyword search")
        return None, False

    def build_search_url(self, municipality_name: str, category: str) -> Tuple[str, bool]:
        """
        Build the first search page URL for a municipality and category.

        Args:
            municipality_name: Municipality display name
            category: 'home' or 'tomt'

        Returns:
            Tuple of (url, has_location_filter)
        """
        section = CATEGORY_SECTIONS[category]
        code, has_location_filter = self.resolve(municipality_name)
        if has_location_filter:
            url = SEARCH_URL_WITH_LOCATION.format(section=section, location=quote(code, safe=''))
        else:
            url = SEARCH_URL_WITH_QUERY.format(section=section, query=quote(primary_name(municipality_name), safe=''))
        return url, has_location_filter
