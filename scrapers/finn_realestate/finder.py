"""Schema-less search for listing data inside a decoded page-state tree.

The shape of finn.no's page state is not stable, so data is located by
structure and key names rather than by fixed paths. Every finder returns
None when nothing matches.
"""

from typing import Any, Dict, List, Optional


MAX_SEARCH_DEPTH = 10

LISTING_ID_KEY = 'ad_id'
LISTING_BATCH_KEY = 'docs'
PAGING_KEY = 'paging'
PAGING_LAST_KEY = 'last'
AD_CONTAINER_KEY = 'objectData'
AD_KEY = 'ad'


def find_listing_batch(tree: Any, depth: int = 0) -> Optional[List[Dict[str, Any]]]:
    """
    Find the list of raw listings on a search results page.

    Matches the first list whose first element has an ad id, or a
    non-empty ``docs`` list.

    Args:
        tree: Decoded page state
        depth: Current recursion depth

    Returns:
        List of raw listing dicts, or None
    """
    if depth > MAX_SEARCH_DEPTH or not isinstance(tree, (dict, list)):
        return None

    if isinstance(tree, list):
        if tree and isinstance(tree[0], dict) and tree[0].get(LISTING_ID_KEY):
            return tree
        for item in tree:
            found = find_listing_batch(item, depth + 1)
            if found:
                return found
        return None

    docs = tree.get(LISTING_BATCH_KEY)
    if isinstance(docs, list) and docs:
        return docs

    for value in tree.values():
        found = find_listing_batch(value, depth + 1)
        if found:
            return found
    return None


def find_paging(tree: Any, depth: int = 0) -> Optional[Dict[str, Any]]:
    """
    Find pagination metadata (a ``paging`` object with a ``last`` page).

    Args:
        tree: Decoded page state
        depth: Current recursion depth

    Returns:
        Paging dict, or None
    """
    if depth > MAX_SEARCH_DEPTH or not isinstance(tree, (dict, list)):
        return None

    if isinstance(tree, list):
        for item in tree:
            found = find_paging(item, depth + 1)
            if found is not None:
                return found
        return None

    paging = tree.get(PAGING_KEY)
    if isinstance(paging, dict) and PAGING_LAST_KEY in paging:
        return paging

    for value in tree.values():
        found = find_paging(value, depth + 1)
        if found is not None:
            return found
    return None


def find_ad_detail(tree: Any, depth: int = 0) -> Optional[Dict[str, Any]]:
    """
    Find the ad object on a detail page (``objectData.ad``).

    Args:
        tree: Decoded page state
        depth: Current recursion depth

    Returns:
        Ad dict, or None
    """
    if depth > MAX_SEARCH_DEPTH or not isinstance(tree, (dict, list)):
        return None

    if isinstance(tree, list):
        for item in tree:
            found = find_ad_detail(item, depth + 1)
            if found is not None:
                return found
        return None

    container = tree.get(AD_CONTAINER_KEY)
    if isinstance(container, dict):
        ad = container.get(AD_KEY)
        if isinstance(ad, dict) and ad:
            return ad

    for value in tree.values():
        found = find_ad_detail(value, depth + 1)
        if found is not None:
            return found
    return None


def last_page(paging: Optional[Dict[str, Any]]) -> int:
    """Return the last page number from paging metadata, defaulting to 1."""
    if not paging:
        return 1
    value = paging.get(PAGING_LAST_KEY)
    if isinstance(value, str) and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 1:
        return 1
    return int(value)
