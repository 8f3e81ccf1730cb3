"""Mapping of raw finn.no search results to canonical listings."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from scrapers.common.validators import primary_name, validate_listing
from scrapers.finn_realestate.config import AD_URL, CATEGORY_SECTIONS, IMAGE_CDN_URL
from scrapers.finn_realestate.models import Listing, Municipality


logger = logging.getLogger(__name__)


def format_price(amount: int) -> str:
    """
    Format a NOK amount the way finn.no displays it.

    Args:
        amount: Price in whole kroner

    Returns:
        Digits grouped by non-breaking spaces, e.g. '4 500 000 kr'
    """
    return f"{amount:,}".replace(',', '\xa0') + ' kr'


def _get(doc: Dict[str, Any], *path: str) -> Any:
    """Read a nested value, returning None as soon as a level is missing."""
    value: Any = doc
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def matches_municipality(doc: Dict[str, Any], municipality_name: str) -> bool:
    """
    Check whether a keyword-search hit really lies in the municipality.

    Args:
        doc: Raw listing
        municipality_name: Municipality display name

    Returns:
        True if the locality equals the name, or the location string ends
        with it or contains it after a comma
    """
    name = primary_name(municipality_name)
    local_area = str(doc.get('local_area_name') or '').lower()
    location = str(doc.get('location') or '').lower()

    if local_area == name:
        return True
    if location.endswith(name):
        return True
    return f", {name}" in location


def normalize_listing(doc: Dict[str, Any], category: str, municipality: Municipality) -> Optional[Listing]:
    """
    Map one raw provider listing to a Listing.

    Args:
        doc: Raw listing from the search results
        category: 'home' or 'tomt', set by the calling query
        municipality: Municipality the query was made for

    Returns:
        Listing, or None if the raw listing has no usable id
    """
    ad_id = doc.get('ad_id') or doc.get('id')
    if not ad_id:
        logger.warning(f"Skipping listing without ad id in {municipality.name}")
        return None
    ad_id = str(ad_id)

    price = _as_int(_get(doc, 'price_suggestion', 'amount')) or 0
    area = _as_int(_get(doc, 'area_range', 'size_from')) or _as_int(_get(doc, 'area_plot', 'size'))

    image_url = _get(doc, 'image', 'url')
    if not image_url:
        image_urls = doc.get('image_urls') or []
        image_url = IMAGE_CDN_URL.format(path=image_urls[0]) if image_urls else ''

    finn_url = doc.get('canonical_url') or AD_URL.format(
        section=CATEGORY_SECTIONS[category],
        finn_code=ad_id
    )

    return Listing(
        id=ad_id,
        finn_url=finn_url,
        category=category,
        title=doc.get('heading') or '',
        price=price if price > 0 else None,
        price_text=format_price(price) if price > 0 else '',
        address=doc.get('location') or municipality.name,
        area=area or None,
        bedrooms=_as_int(doc.get('number_of_bedrooms')) or None,
        property_type=doc.get('property_type_description') or '',
        image_url=image_url,
        latitude=_as_float(_get(doc, 'coordinates', 'lat')),
        longitude=_as_float(_get(doc, 'coordinates', 'lon')),
        shared_cost=_as_int(_get(doc, 'price_shared_cost', 'amount')) or 0,
        shared_debt=0,
    )


def normalize_batch(
    docs: Iterable[Dict[str, Any]],
    category: str,
    municipality: Municipality,
    has_location_filter: bool = True
) -> List[Listing]:
    """
    Normalize one page of raw listings.

    Args:
        docs: Raw listings
        category: 'home' or 'tomt'
        municipality: Municipality the query was made for
        has_location_filter: False when the query was a keyword search,
            in which case hits outside the municipality are dropped

    Returns:
        List of valid Listing objects
    """
    listings = []
    for doc in docs:
        if not isinstance(doc, dict):
            continue
        if not has_location_filter and not matches_municipality(doc, municipality.name):
            continue

        listing = normalize_listing(doc, category, municipality)
        if listing is None:
            continue

        is_valid, error = validate_listing(listing.to_dict())
        if not is_valid:
            logger.warning(f"Dropping listing {listing.id}: {error}")
            continue
        listings.append(listing)

    return listings
