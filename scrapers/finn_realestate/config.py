"""Configuration for the finn.no real-estate scraper."""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from scrapers.common.exceptions import ConfigurationError
from scrapers.common.http_client import DEFAULT_ACCEPT_LANGUAGE, DEFAULT_USER_AGENT
from scrapers.finn_realestate.models import Municipality


logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(__file__), 'data')
MUNICIPALITIES_FILE = os.path.join(DATA_DIR, 'municipalities.json')
LOCATIONS_FILE = os.path.join(DATA_DIR, 'finn_locations.json')

BASE_URL = 'https://www.finn.no/realestate'
SEARCH_URL_WITH_LOCATION = BASE_URL + '/{section}/search.html?location={location}&sort=PUBLISHED_DESC'
SEARCH_URL_WITH_QUERY = BASE_URL + '/{section}/search.html?q={query}&sort=PUBLISHED_DESC'
AD_URL = BASE_URL + '/{section}/ad.html?finnkode={finn_code}'
IMAGE_CDN_URL = 'https://images.finncdn.no/dynamic/default/{path}'

# Listing category -> finn.no URL section
CATEGORY_SECTIONS: Dict[str, str] = {
    'home': 'homes',
    'tomt': 'plots',
}

# Default configuration
DEFAULT_CONFIG: Dict[str, Any] = {
    'timeout': 30,  # seconds
    'max_retries': 0,  # failed pages are skipped, never retried within a run
    'user_agent': DEFAULT_USER_AGENT,
    'accept_language': DEFAULT_ACCEPT_LANGUAGE,
    'max_pages': 10,  # 50 listings per page
    'page_delay': 1.5,  # seconds between search result pages
    'detail_delay': 2.0,  # seconds between plot detail pages
    'category_delay': 1.5,  # seconds between homes and plots of one municipality
    'municipality_delay': 2.0,  # seconds between municipalities
    'stale_after_days': 7,
}


def load_municipalities(path: Optional[str] = None) -> List[Municipality]:
    """
    Load the municipality reference list.

    Args:
        path: JSON file with [{code, name, hasPropertyTax, lat, lon}, ...]

    Returns:
        List of Municipality objects

    Raises:
        ConfigurationError: If the file is missing or an entry is malformed
    """
    path = path or MUNICIPALITIES_FILE
    try:
        with open(path, 'r', encoding='utf-8') as f:
            entries = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not load municipalities from {path}: {e}")

    if not isinstance(entries, list):
        raise ConfigurationError(f"Expected a list of municipalities in {path}")

    municipalities = []
    for entry in entries:
        try:
            municipalities.append(Municipality(
                code=str(entry['code']),
                name=entry['name'],
                has_property_tax=bool(entry.get('hasPropertyTax', False)),
                lat=entry.get('lat'),
                lon=entry.get('lon'),
            ))
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Invalid municipality entry {entry!r}: {e}")

    logger.debug(f"Loaded {len(municipalities)} municipalities from {path}")
    return municipalities


def load_location_codes(path: Optional[str] = None) -> Dict[str, str]:
    """
    Load the municipality name -> finn.no location code table.

    A missing or unreadable file is not fatal: every municipality then falls
    back to keyword search.

    Args:
        path: JSON object file mapping lower-case names to location codes

    Returns:
        Dictionary keyed by lower-case municipality name
    """
    path = path or LOCATIONS_FILE
    try:
        with open(path, 'r', encoding='utf-8') as f:
            table = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not load location codes from {path}, falling back to keyword search: {e}")
        return {}

    if not isinstance(table, dict):
        logger.warning(f"Location code file {path} is not an object, falling back to keyword search")
        return {}

    return {str(name).lower(): str(code) for name, code in table.items()}
