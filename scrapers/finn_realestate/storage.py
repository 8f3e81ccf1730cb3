"""SQLite storage for scraped listings.

Listings are upserted by finn code. Each sighting refreshes ``last_seen``;
``first_seen`` and ``is_new`` are only set when a listing is first inserted.
Listings of a municipality that have not been seen for a while are evicted,
but only after a non-empty batch so a failed scrape never wipes data.
"""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from scrapers.common.exceptions import ValidationError
from scrapers.common.validators import validate_listing
from scrapers.finn_realestate.config import DEFAULT_CONFIG
from scrapers.finn_realestate.models import Listing, Municipality


logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

SCHEMA = """
CREATE TABLE IF NOT EXISTS listings (
    id TEXT PRIMARY KEY,
    municipality_code TEXT NOT NULL,
    municipality_name TEXT NOT NULL,
    title TEXT,
    price INTEGER,
    price_text TEXT,
    address TEXT,
    area_m2 INTEGER,
    bedrooms INTEGER,
    property_type TEXT,
    image_url TEXT,
    finn_url TEXT NOT NULL,
    latitude REAL,
    longitude REAL,
    shared_cost INTEGER DEFAULT 0,
    shared_debt INTEGER DEFAULT 0,
    category TEXT DEFAULT 'home',
    is_developed INTEGER DEFAULT NULL,
    building_obligation TEXT DEFAULT 'unknown',
    building_obligation_text TEXT DEFAULT NULL,
    plot_owned TEXT DEFAULT NULL,
    total_price INTEGER DEFAULT NULL,
    tax_value INTEGER DEFAULT NULL,
    cadastre TEXT DEFAULT NULL,
    facilities TEXT DEFAULT NULL,
    regulations TEXT DEFAULT NULL,
    yearly_costs_text TEXT DEFAULT NULL,
    utilities TEXT DEFAULT NULL,
    first_seen TEXT NOT NULL,
    last_seen TEXT NOT NULL,
    is_new INTEGER DEFAULT 1
);

CREATE TABLE IF NOT EXISTS update_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    municipality_code TEXT,
    updated_at TEXT NOT NULL,
    listings_found INTEGER DEFAULT 0,
    new_listings INTEGER DEFAULT 0,
    error TEXT
);

CREATE INDEX IF NOT EXISTS idx_listings_municipality ON listings(municipality_code);
CREATE INDEX IF NOT EXISTS idx_listings_first_seen ON listings(first_seen);
CREATE INDEX IF NOT EXISTS idx_listings_category ON listings(category);
CREATE INDEX IF NOT EXISTS idx_listings_obligation ON listings(building_obligation);
CREATE INDEX IF NOT EXISTS idx_listings_plot_owned ON listings(plot_owned);
"""

UPSERT_SQL = """
INSERT INTO listings (id, municipality_code, municipality_name, title, price, price_text,
    address, area_m2, bedrooms, property_type, image_url, finn_url, latitude, longitude,
    shared_cost, shared_debt, category, is_developed, building_obligation, building_obligation_text,
    plot_owned, total_price, tax_value, cadastre, facilities, regulations, yearly_costs_text, utilities,
    first_seen, last_seen, is_new)
VALUES (:id, :municipality_code, :municipality_name, :title, :price, :price_text,
    :address, :area, :bedrooms, :property_type, :image_url, :finn_url, :latitude, :longitude,
    :shared_cost, :shared_debt, :category, :is_developed, :building_obligation, :building_obligation_text,
    :plot_owned, :total_price, :tax_value, :cadastre, :facilities, :regulations, :yearly_costs_text, :utilities,
    :now, :now, 1)
ON CONFLICT(id) DO UPDATE SET
    municipality_code = excluded.municipality_code,
    municipality_name = excluded.municipality_name,
    title = excluded.title,
    price = excluded.price,
    price_text = excluded.price_text,
    address = excluded.address,
    area_m2 = excluded.area_m2,
    bedrooms = excluded.bedrooms,
    property_type = excluded.property_type,
    image_url = excluded.image_url,
    finn_url = excluded.finn_url,
    latitude = excluded.latitude,
    longitude = excluded.longitude,
    shared_cost = excluded.shared_cost,
    shared_debt = excluded.shared_debt,
    category = excluded.category,
    is_developed = excluded.is_developed,
    building_obligation = excluded.building_obligation,
    building_obligation_text = excluded.building_obligation_text,
    plot_owned = excluded.plot_owned,
    total_price = excluded.total_price,
    tax_value = excluded.tax_value,
    cadastre = excluded.cadastre,
    facilities = excluded.facilities,
    regulations = excluded.regulations,
    yearly_costs_text = excluded.yearly_costs_text,
    utilities = excluded.utilities,
    last_seen = excluded.last_seen,
    is_new = 0
"""


def _timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


class ListingStore:
    """Listing table plus a per-run update log."""

    def __init__(self, path: str = ':memory:', stale_after_days: int = DEFAULT_CONFIG['stale_after_days']):
        """
        Args:
            path: SQLite database file, or ':memory:'
            stale_after_days: Age of last_seen after which listings are evicted
        """
        self.path = path
        self.stale_after = timedelta(days=stale_after_days)
        self.conn = sqlite3.connect(path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)

    def close(self):
        self.conn.close()

    def __enter__(self) -> 'ListingStore':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def upsert_listings(
        self,
        municipality: Municipality,
        listings: Sequence[Listing],
        now: Optional[datetime] = None
    ) -> int:
        """
        Insert or update a municipality's batch, then evict stale listings.

        Args:
            municipality: Municipality the batch belongs to
            listings: Listings from one category scrape
            now: Time of the sighting (defaults to the current UTC time)

        Returns:
            Number of listings inserted for the first time

        Raises:
            ValidationError: If a listing breaks the record invariants;
                nothing from the batch is stored in that case
        """
        if not listings:
            logger.info(f"Empty batch for {municipality.name}, skipping eviction")
            return 0

        timestamp = _timestamp(now)
        new_count = 0
        with self.conn:
            for listing in listings:
                exists = self.conn.execute(
                    'SELECT 1 FROM listings WHERE id = ?', (listing.id,)
                ).fetchone()
                if not exists:
                    new_count += 1

                row = listing.to_dict()
                is_valid, error = validate_listing(row)
                if not is_valid:
                    raise ValidationError(f"Refusing to store listing {listing.id}: {error}")

                row.update({
                    'municipality_code': municipality.code,
                    'municipality_name': municipality.name,
                    'now': timestamp,
                })
                self.conn.execute(UPSERT_SQL, row)

        self.evict_stale(municipality.code, now)
        return new_count

    def evict_stale(self, municipality_code: str, now: Optional[datetime] = None) -> int:
        """
        Delete a municipality's listings not seen within the staleness window.

        Args:
            municipality_code: Municipality to clean up
            now: Reference time (defaults to the current UTC time)

        Returns:
            Number of deleted listings
        """
        cutoff = _timestamp((now or datetime.now(timezone.utc)) - self.stale_after)
        with self.conn:
            cursor = self.conn.execute(
                'DELETE FROM listings WHERE municipality_code = ? AND last_seen < ?',
                (municipality_code, cutoff)
            )
        if cursor.rowcount:
            logger.info(f"Evicted {cursor.rowcount} stale listings for municipality {municipality_code}")
        return cursor.rowcount

    def mark_all_not_new(self):
        """Clear the new flag on every listing, done at the start of a run."""
        with self.conn:
            self.conn.execute('UPDATE listings SET is_new = 0')

    def record_update(
        self,
        municipality_code: str,
        listings_found: int = 0,
        new_listings: int = 0,
        error: Optional[str] = None,
        now: Optional[datetime] = None
    ):
        """Append one municipality's outcome to the update log."""
        with self.conn:
            self.conn.execute(
                'INSERT INTO update_log (municipality_code, updated_at, listings_found, new_listings, error) '
                'VALUES (?, ?, ?, ?, ?)',
                (municipality_code, _timestamp(now), listings_found, new_listings, error)
            )

    def get_listing(self, listing_id: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute('SELECT * FROM listings WHERE id = ?', (listing_id,)).fetchone()
        return dict(row) if row else None

    def listings_for_municipality(self, municipality_code: str) -> List[Dict[str, Any]]:
        rows = self.conn.execute(
            'SELECT * FROM listings WHERE municipality_code = ? ORDER BY first_seen DESC, id',
            (municipality_code,)
        ).fetchall()
        return [dict(row) for row in rows]

    def update_log(self, limit: int = 50) -> List[Dict[str, Any]]:
        rows = self.conn.execute(
            'SELECT * FROM update_log ORDER BY id DESC LIMIT ?', (limit,)
        ).fetchall()
        return [dict(row) for row in rows]
