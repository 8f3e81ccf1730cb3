"""Data validation utilities for scrapers."""

import re
from typing import Dict, Optional, Tuple


VALID_CATEGORIES = ('home', 'tomt')
VALID_OBLIGATIONS = ('none', 'has_clause', 'has_deadline', 'unknown')
VALID_PLOT_OWNERSHIP = ('selveier', 'tomtefeste', None)


def validate_listing(listing: Dict) -> Tuple[bool, Optional[str]]:
    """
    Validate a canonical listing dictionary before it is stored.

    Args:
        listing: Listing dictionary to validate (as produced by Listing.to_dict)

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_fields = ['id', 'finn_url', 'category']

    # Check required fields
    for field in required_fields:
        if field not in listing or not listing[field]:
            return False, f"Missing required field: {field}"

    if not validate_listing_id(listing['id']):
        return False, f"Invalid id: {listing['id']!r}"

    if listing['category'] not in VALID_CATEGORIES:
        return False, f"Invalid category: {listing['category']}. Must be one of {list(VALID_CATEGORIES)}"

    # Development status only applies to plots
    is_developed = listing.get('is_developed')
    if listing['category'] == 'home' and is_developed is not None:
        return False, "is_developed must be None for home listings"
    if is_developed not in (1, 0, None):
        return False, f"Invalid is_developed: {is_developed}"

    obligation = listing.get('building_obligation', 'unknown')
    if obligation not in VALID_OBLIGATIONS:
        return False, f"Invalid building_obligation: {obligation}"

    if listing.get('plot_owned') not in VALID_PLOT_OWNERSHIP:
        return False, f"Invalid plot_owned: {listing['plot_owned']}"

    return True, None


def validate_listing_id(listing_id) -> bool:
    """
    Validate a listing identifier.

    finn.no codes are numeric today, but any non-blank string is accepted
    as the provider hands it out.

    Args:
        listing_id: Identifier to validate

    Returns:
        True if valid, False otherwise
    """
    return isinstance(listing_id, str) and bool(listing_id.strip())


def normalize_place_name(name: str) -> str:
    """
    Normalize a municipality display name for lookups and comparisons.

    Args:
        name: Display name, possibly with an alternate name after " - "

    Returns:
        Lower-cased name with surrounding and repeated whitespace removed
    """
    return re.sub(r'\s+', ' ', name).strip().lower()


def primary_name(name: str) -> str:
    """
    Return the primary segment of a bilingual municipality name.

    Args:
        name: Display name such as 'Kautokeino - Guovdageaidnu'

    Returns:
        The part before ' - ', normalized
    """
    return normalize_place_name(name.split(' - ')[0])
