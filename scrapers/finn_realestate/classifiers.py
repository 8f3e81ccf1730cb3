"""Rule-based classification of plot listings from their Norwegian ad text."""

import re
from typing import Optional

from scrapers.finn_realestate.models import ObligationResult


SNIPPET_CONTEXT = 40

# Explicit statements that there is no building obligation
NO_OBLIGATION_PATTERNS = [
    'uten byggeklausul',
    'ingen byggeklausul',
    'ingen byggeplikt',
    'uten byggeplikt',
    'fri for byggeklausul',
    'ikke byggeklausul',
    'ingen leverandørbinding',
    'uten leverandørbinding',
    'fritt valg av',
    'velg selv',
    'valgfri',
]

# Plot is tied to a specific builder or house type
HAS_CLAUSE_PATTERNS = [
    'med byggeklausul',
    'byggeklausul på',
    'leverandørbinding',
    'hustype',
    'boligen skal leveres av',
    'skal oppføres av',
    'utbygger er',
    'må bygges av',
]

# Plot must be built on within a deadline
HAS_DEADLINE_PATTERNS = [
    'må bebygges innen',
    'skal bebygges innen',
    'bebygd innen',
    'byggefrist',
    'byggetid',
    'byggeplikt',
    'frist for bebyggelse',
    'forpliktet til å bygge',
    'bolig skal oppføres',
    'må bebygges slik',
    'plikt til å bebygge',
]

# Checked in this order; the first hit decides
OBLIGATION_RULES = [
    ('none', NO_OBLIGATION_PATTERNS),
    ('has_clause', HAS_CLAUSE_PATTERNS),
    ('has_deadline', HAS_DEADLINE_PATTERNS),
]

NOT_CONNECTED = re.compile(
    r'ikke (?:tilknyttet|tilkoblet|tilkobla|innlagt|opparbeidet)'
    r'|ikke (?:offentlig )?(?:vann|avløp|kloakk)'
    r'|uten (?:innlagt )?(?:vann|strøm|avløp)'
    r'|må (?:selv )?(?:bore|etablere|opparbeide)'
    r'|egen brønn'
)

WATER_CONNECTED = re.compile(
    r'(?:vann|avløp|kloakk)[^.]{0,30}(?:er )?(?:tilknyttet|tilkoblet|innlagt|tilkobla)'
    r'|(?:tilknyttet|tilkoblet) (?:offentlig|kommunalt)'
    r'|innlagt vann'
    r'|offentlig (?:vann|avløp)'
)

PUBLIC_WATER = re.compile(r'offentlig vann|kommunalt vann')
ROAD_ACCESS = re.compile(r'\bvei\b|offentlig vei|adkomst|veitilknytning')


def snippet(text: str, position: int, length: int) -> str:
    """Return the match with up to SNIPPET_CONTEXT characters on each side."""
    start = max(0, position - SNIPPET_CONTEXT)
    return text[start:position + length + SNIPPET_CONTEXT].strip()


def classify_obligation(text: str) -> ObligationResult:
    """
    Classify the building obligation (byggeplikt) of a plot.

    Args:
        text: All free text of the listing

    Returns:
        ObligationResult with 'none', 'has_clause', 'has_deadline' or 'unknown'
    """
    text = (text or '').lower()
    for obligation, patterns in OBLIGATION_RULES:
        for pattern in patterns:
            position = text.find(pattern)
            if position != -1:
                return ObligationResult(obligation, snippet(text, position, len(pattern)))
    return ObligationResult()


def classify_development(facilities: Optional[str], utilities: Optional[str], full_text: Optional[str]) -> Optional[int]:
    """
    Decide whether a plot is developed (connected to water and road).

    Args:
        facilities: Joined facility tags of the ad
        utilities: Utilities section text
        full_text: All free text of the ad

    Returns:
        1 if developed, 0 if not, None if the text does not tell
    """
    facilities = (facilities or '').lower()
    utilities = (utilities or '').lower()
    full_text = (full_text or '').lower()

    not_connected = any(NOT_CONNECTED.search(text) for text in (facilities, utilities, full_text))
    public_water = bool(PUBLIC_WATER.search(facilities))

    if public_water and ROAD_ACCESS.search(facilities):
        return 1
    if public_water and not not_connected:
        return 1
    if WATER_CONNECTED.search(full_text) and not not_connected:
        return 1
    if not_connected:
        return 0
    # No positive evidence in a non-empty facilities list counts as undeveloped
    if facilities.strip() and not WATER_CONNECTED.search(facilities):
        return 0
    return None
