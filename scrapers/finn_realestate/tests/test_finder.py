"""Tests for schema-less structural search."""

import unittest

from scrapers.finn_realestate.finder import (
    MAX_SEARCH_DEPTH,
    find_ad_detail,
    find_listing_batch,
    find_paging,
    last_page,
)
from scrapers.finn_realestate.payload import decode_page
from scrapers.finn_realestate.tests.helpers import load_fixture, make_doc, search_tree


def nest(value, levels):
    """Wrap a value in `levels` single-key dicts."""
    for _ in range(levels):
        value = {'wrap': value}
    return value


class TestFindListingBatch(unittest.TestCase):
    """Tests for find_listing_batch."""

    def test_find_docs_in_fixture(self):
        """Test locating listings in the search fixture."""
        # :: Setup
        tree = decode_page(load_fixture('search_results.html'))

        # :: Act
        docs = find_listing_batch(tree)

        # :: Assert
        self.assertEqual(len(docs), 2)
        self.assertEqual(docs[0]['ad_id'], 356612345)
        self.assertEqual(docs[1]['ad_id'], 356698765)

    def test_find_unnamed_array_of_listings(self):
        """Test that any array of ad-like objects is found without a docs key."""
        # :: Setup
        tree = {'data': {'items': [{'other': 1}], 'hits': [make_doc(5), make_doc(6)]}}

        # :: Act
        docs = find_listing_batch(tree)

        # :: Assert
        self.assertEqual([d['ad_id'] for d in docs], [5, 6])

    def test_empty_docs_returns_none(self):
        """Test that an empty result set is not an error."""
        # :: Act & Assert
        self.assertIsNone(find_listing_batch(search_tree([])))

    def test_non_container_input(self):
        """Test that scalars and None are handled."""
        # :: Act & Assert
        self.assertIsNone(find_listing_batch(None))
        self.assertIsNone(find_listing_batch('docs'))
        self.assertIsNone(find_listing_batch(42))

    def test_depth_bound(self):
        """Test that data nested beyond the depth bound is not found."""
        # :: Setup
        reachable = nest({'docs': [make_doc(1)]}, MAX_SEARCH_DEPTH)
        too_deep = nest({'docs': [make_doc(1)]}, MAX_SEARCH_DEPTH + 1)

        # :: Act & Assert
        self.assertIsNotNone(find_listing_batch(reachable))
        self.assertIsNone(find_listing_batch(too_deep))


class TestFindPaging(unittest.TestCase):
    """Tests for find_paging and last_page."""

    def test_find_paging_in_fixture(self):
        """Test locating pagination in the search fixture."""
        # :: Setup
        tree = decode_page(load_fixture('search_results.html'))

        # :: Act
        paging = find_paging(tree)

        # :: Assert
        self.assertEqual(paging['last'], 3)
        self.assertEqual(last_page(paging), 3)

    def test_paging_without_last_is_ignored(self):
        """Test that a paging object must expose a last page."""
        # :: Setup
        tree = {'a': {'paging': {'current': 1}}, 'b': [{'paging': {'last': 7}}]}

        # :: Act
        paging = find_paging(tree)

        # :: Assert
        self.assertEqual(paging, {'last': 7})

    def test_no_paging(self):
        """Test that missing pagination returns None and defaults to one page."""
        # :: Act
        paging = find_paging({'results': {'docs': []}})

        # :: Assert
        self.assertIsNone(paging)
        self.assertEqual(last_page(paging), 1)

    def test_last_page_invalid_values(self):
        """Test last_page with unusable values."""
        # :: Act & Assert
        self.assertEqual(last_page({'last': None}), 1)
        self.assertEqual(last_page({'last': 0}), 1)
        self.assertEqual(last_page({'last': 'many'}), 1)
        self.assertEqual(last_page({'last': '4'}), 4)


class TestFindAdDetail(unittest.TestCase):
    """Tests for find_ad_detail."""

    def test_find_ad_in_fixture(self):
        """Test locating the ad object on a detail page."""
        # :: Setup
        tree = decode_page(load_fixture('plot_details.html'))

        # :: Act
        ad = find_ad_detail(tree)

        # :: Assert
        self.assertIsNotNone(ad)
        self.assertEqual(ad['adId'], 358811122)
        self.assertIn('generalText', ad)

    def test_no_ad(self):
        """Test that a page without ad data returns None."""
        # :: Act & Assert
        self.assertIsNone(find_ad_detail(search_tree([make_doc(1)])))
        self.assertIsNone(find_ad_detail({'objectData': {'ad': {}}}))


if __name__ == '__main__':
    unittest.main()
