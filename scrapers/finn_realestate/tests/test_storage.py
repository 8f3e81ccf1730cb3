"""Tests for the SQLite listing store."""

import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from scrapers.common.exceptions import ValidationError
from scrapers.finn_realestate.models import Listing, Municipality
from scrapers.finn_realestate.storage import ListingStore


HVALER = Municipality(code='3110', name='Hvaler')
RAUMA = Municipality(code='1539', name='Rauma')
T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def home(listing_id, **fields):
    fields.setdefault('title', f'Bolig {listing_id}')
    return Listing(
        id=listing_id,
        finn_url=f'https://www.finn.no/realestate/homes/ad.html?finnkode={listing_id}',
        category='home',
        **fields
    )


class TestListingStore(unittest.TestCase):
    """Tests for ListingStore."""

    def setUp(self):
        """Set up an in-memory store."""
        self.store = ListingStore()

    def tearDown(self):
        """Close the store."""
        self.store.close()

    def test_insert_new_listings(self):
        """Test first sighting of listings."""
        # :: Act
        new_count = self.store.upsert_listings(
            HVALER, [home('100', price=2500000, area=90), home('200')], now=T0
        )

        # :: Assert
        self.assertEqual(new_count, 2)
        row = self.store.get_listing('100')
        self.assertEqual(row['municipality_code'], '3110')
        self.assertEqual(row['municipality_name'], 'Hvaler')
        self.assertEqual(row['price'], 2500000)
        self.assertEqual(row['area_m2'], 90)
        self.assertEqual(row['is_new'], 1)
        self.assertEqual(row['first_seen'], '2025-03-01 12:00:00')
        self.assertEqual(row['last_seen'], '2025-03-01 12:00:00')
        self.assertEqual(row['building_obligation'], 'unknown')

    def test_resighting_updates_fields(self):
        """Test that a repeat sighting refreshes data but keeps first_seen."""
        # :: Setup
        self.store.upsert_listings(HVALER, [home('100', price=2500000)], now=T0)

        # :: Act
        new_count = self.store.upsert_listings(
            HVALER, [home('100', price=2350000, title='Prisjustert')], now=T0 + timedelta(days=1)
        )

        # :: Assert
        self.assertEqual(new_count, 0)
        row = self.store.get_listing('100')
        self.assertEqual(row['price'], 2350000)
        self.assertEqual(row['title'], 'Prisjustert')
        self.assertEqual(row['is_new'], 0)
        self.assertEqual(row['first_seen'], '2025-03-01 12:00:00')
        self.assertEqual(row['last_seen'], '2025-03-02 12:00:00')

    def test_stale_listings_evicted(self):
        """Test eviction of listings not seen for more than seven days."""
        # :: Setup
        self.store.upsert_listings(HVALER, [home('100'), home('200')], now=T0)

        # :: Act
        self.store.upsert_listings(HVALER, [home('100')], now=T0 + timedelta(days=8))

        # :: Assert
        self.assertIsNone(self.store.get_listing('200'))
        row = self.store.get_listing('100')
        self.assertEqual(row['is_new'], 0)
        self.assertEqual(row['first_seen'], '2025-03-01 12:00:00')
        self.assertEqual(row['last_seen'], '2025-03-09 12:00:00')

    def test_recent_listings_kept(self):
        """Test that listings within the window survive a batch without them."""
        # :: Setup
        self.store.upsert_listings(HVALER, [home('100'), home('200')], now=T0)

        # :: Act
        self.store.upsert_listings(HVALER, [home('100')], now=T0 + timedelta(days=6))

        # :: Assert
        self.assertIsNotNone(self.store.get_listing('200'))

    def test_empty_batch_skips_eviction(self):
        """Test that an empty batch never deletes anything."""
        # :: Setup
        self.store.upsert_listings(HVALER, [home('100')], now=T0)

        # :: Act
        new_count = self.store.upsert_listings(HVALER, [], now=T0 + timedelta(days=30))

        # :: Assert
        self.assertEqual(new_count, 0)
        self.assertIsNotNone(self.store.get_listing('100'))

    def test_eviction_scoped_to_municipality(self):
        """Test that eviction only touches the batch's municipality."""
        # :: Setup
        self.store.upsert_listings(HVALER, [home('100')], now=T0)
        self.store.upsert_listings(RAUMA, [home('300')], now=T0)

        # :: Act
        self.store.upsert_listings(HVALER, [home('101')], now=T0 + timedelta(days=10))

        # :: Assert
        self.assertIsNone(self.store.get_listing('100'))
        self.assertIsNotNone(self.store.get_listing('300'))

    def test_mark_all_not_new(self):
        """Test clearing the new flag."""
        # :: Setup
        self.store.upsert_listings(HVALER, [home('100'), home('200')], now=T0)

        # :: Act
        self.store.mark_all_not_new()

        # :: Assert
        rows = self.store.listings_for_municipality('3110')
        self.assertEqual([r['is_new'] for r in rows], [0, 0])

    def test_plot_fields_stored(self):
        """Test that enrichment fields are persisted."""
        # :: Setup
        plot = Listing(
            id='400',
            finn_url='https://www.finn.no/realestate/plots/ad.html?finnkode=400',
            category='tomt',
            is_developed=1,
            building_obligation='none',
            building_obligation_text='uten byggeklausul',
            plot_owned='selveier',
            cadastre='gnr. 14 bnr. 221',
        )

        # :: Act
        self.store.upsert_listings(HVALER, [plot], now=T0)

        # :: Assert
        row = self.store.get_listing('400')
        self.assertEqual(row['category'], 'tomt')
        self.assertEqual(row['is_developed'], 1)
        self.assertEqual(row['building_obligation'], 'none')
        self.assertEqual(row['plot_owned'], 'selveier')
        self.assertEqual(row['cadastre'], 'gnr. 14 bnr. 221')

    def test_invalid_listing_rejects_batch(self):
        """Test that an invalid record aborts the whole batch."""
        # :: Setup
        bad = home('300', is_developed=1)

        # :: Act & Assert
        with self.assertRaises(ValidationError):
            self.store.upsert_listings(HVALER, [home('100'), bad], now=T0)

        self.assertIsNone(self.store.get_listing('100'))

    def test_record_update(self):
        """Test appending outcomes to the update log."""
        # :: Act
        self.store.record_update('3110', listings_found=4, new_listings=1, now=T0)
        self.store.record_update('1539', error='home: 503 Error', now=T0)

        # :: Assert
        log = self.store.update_log()
        self.assertEqual(len(log), 2)
        self.assertEqual(log[0]['municipality_code'], '1539')
        self.assertEqual(log[0]['error'], 'home: 503 Error')
        self.assertEqual(log[1]['listings_found'], 4)
        self.assertEqual(log[1]['new_listings'], 1)
        self.assertIsNone(log[1]['error'])
        self.assertEqual(log[1]['updated_at'], '2025-03-01 12:00:00')

    def test_persists_to_file(self):
        """Test that data survives reopening a file database."""
        # :: Setup
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'listings.db')
            with ListingStore(path) as store:
                store.upsert_listings(HVALER, [home('100')], now=T0)

            # :: Act
            with ListingStore(path) as store:
                row = store.get_listing('100')

        # :: Assert
        self.assertEqual(row['title'], 'Bolig 100')


if __name__ == '__main__':
    unittest.main()
