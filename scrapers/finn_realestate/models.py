"""Data models for the finn.no real-estate scraper."""

from dataclasses import asdict, dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Municipality:
    """Reference data for one Norwegian municipality."""

    code: str
    name: str
    has_property_tax: bool = False
    lat: Optional[float] = None
    lon: Optional[float] = None


@dataclass
class Listing:
    """Canonical listing record handed to storage."""

    id: str
    finn_url: str
    category: str  # 'home' or 'tomt'
    title: str = ''
    price: Optional[int] = None
    price_text: str = ''
    address: str = ''
    area: Optional[int] = None  # m²
    bedrooms: Optional[int] = None
    property_type: str = ''
    image_url: str = ''
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    shared_cost: int = 0
    shared_debt: int = 0
    is_developed: Optional[int] = None  # 1, 0 or None; always None for homes
    building_obligation: str = 'unknown'
    building_obligation_text: Optional[str] = None
    # Plot-only enrichment, filled in by the detail pass
    plot_owned: Optional[str] = None  # 'selveier' or 'tomtefeste'
    total_price: Optional[int] = None
    tax_value: Optional[int] = None
    cadastre: Optional[str] = None
    facilities: Optional[str] = None
    regulations: Optional[str] = None
    utilities: Optional[str] = None
    yearly_costs_text: Optional[str] = None

    def to_dict(self):
        """Convert to dictionary representation."""
        return asdict(self)


@dataclass
class ObligationResult:
    """Building obligation verdict with the text that triggered it."""

    obligation: str = 'unknown'
    text: Optional[str] = None


@dataclass
class PlotDetails:
    """Fields extracted from a plot's detail page."""

    plot_owned: Optional[str] = None
    total_price: Optional[int] = None
    tax_value: Optional[int] = None
    cadastre: Optional[str] = None
    facilities: Optional[str] = None
    regulations: Optional[str] = None
    utilities: Optional[str] = None
    yearly_costs_text: Optional[str] = None
    full_text: str = ''  # title and all section bodies, lower-cased


@dataclass
class UpdateOutcome:
    """Result of scraping one municipality in one run."""

    municipality_code: str
    listings_found: int = 0
    new_listings: int = 0
    error: Optional[str] = None

    def to_dict(self):
        """Convert to dictionary representation."""
        return asdict(self)


@dataclass
class RefreshProgress:
    """Process-wide progress of the current run."""

    is_refreshing: bool = False
    progress: int = 0
    total: int = 0
    outcomes: list = field(default_factory=list)

    def start(self, total: int):
        self.is_refreshing = True
        self.progress = 0
        self.total = total
        self.outcomes = []

    def advance(self):
        self.progress = min(self.progress + 1, self.total)

    def finish(self):
        self.is_refreshing = False

    def to_dict(self):
        return {
            'refreshing': self.is_refreshing,
            'progress': self.progress,
            'total': self.total,
        }
