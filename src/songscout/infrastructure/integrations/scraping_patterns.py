"""Selectors, regexes and pure text parsers for the browser-automation adapters.

Hey future me - when the streaming site or the registry portal ships a redesign, THIS is the
only file you should need to touch. The scrapers themselves just run "find text on page,
hand it to a parser here". Everything below is pure and unit-tested without a browser.
"""

import re
from dataclasses import dataclass, field

from songscout.domain.value_objects.credit_names import process_credits

# =============================================================================
# Streaming site (credits scraper)
# =============================================================================

SPOTIFY_TRACK_ID_PATTERN = re.compile(r"track/([a-zA-Z0-9]+)")

COOKIE_CONSENT_SELECTORS: tuple[str, ...] = (
    "#onetrust-accept-btn-handler",
    'button[id*="onetrust-accept"]',
    'button[aria-label*="Accept"]',
    '[data-testid="accept-all-cookies"]',
)

PLAYCOUNT_SELECTOR = '[data-testid="playcount"]'
STREAMS_ARIA_SELECTOR = '[aria-label*="streams" i]'
MORE_OPTIONS_SELECTOR = 'button[aria-label*="More options"], button[data-testid="more-button"]'
CREDITS_MENU_ITEM_SELECTOR = 'button:has-text("credits"), [role="menuitem"]:has-text("credits")'
CREDITS_DIALOG_SELECTOR = '.credits__modal, [role="dialog"]'
# If one of these is visible we are looking at the logged-out page
LOGIN_WALL_SELECTORS: tuple[str, ...] = (
    '[data-testid="login-button"]',
    'a[href*="accounts.spotify.com/login"]',
)

STREAMS_ARIA_PATTERN = re.compile(r"([\d,.]+)\s*([KMB])?\s*streams?", re.IGNORECASE)
DURATION_PATTERN = re.compile(r"\d{1,2}:\d{2}")
DURATION_STREAMS_PATTERN = re.compile(
    r"\d{1,2}:\d{2}[^\d]*?([\d,]+(?:\.\d+)?\s*[KMB]?)\b", re.IGNORECASE
)
SHORT_COUNT_PATTERN = re.compile(r"^([\d.]+)\s*([KMB])$", re.IGNORECASE)

_MULTIPLIERS = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}

# Plain numbers outside this range are track numbers, years or garbage
MIN_PLAIN_STREAMS = 100
MAX_PLAIN_STREAMS = 1_000_000_000_000

# Credit headings -> bucket. Order matters: "publisher" must not be caught by "by".
_CREDIT_HEADINGS: tuple[tuple[str, str], ...] = (
    ("written by", "songwriters"),
    ("songwriter", "songwriters"),
    ("composer", "songwriters"),
    ("lyricist", "songwriters"),
    ("produced by", "producers"),
    ("producer", "producers"),
    ("publisher", "publishers"),
)
SOURCE_LINE_PREFIX = "source:"


def extract_spotify_track_id(url: str | None) -> str | None:
    """Pull the track id out of an open.spotify.com URL (or None)."""
    if not url:
        return None
    match = SPOTIFY_TRACK_ID_PATTERN.search(url)
    return match.group(1) if match else None


def parse_stream_count(text: str | None) -> int | None:
    """Parse "1,234,567", "1.2M", "850K", "1B" into an int.

    Plain numbers are only accepted between 100 and 1e12, everything else is None.
    """
    if not text:
        return None
    cleaned = text.strip().replace(",", "")

    short = SHORT_COUNT_PATTERN.match(cleaned)
    if short:
        try:
            value = float(short.group(1))
        except ValueError:
            return None
        return round(value * _MULTIPLIERS[short.group(2).upper()])

    if cleaned.isdigit():
        number = int(cleaned)
        if MIN_PLAIN_STREAMS <= number < MAX_PLAIN_STREAMS:
            return number
    return None


def find_stream_text(aria_label: str | None, body_text: str) -> str | None:
    """Locate the raw stream-count text via aria label, else next to the duration."""
    if aria_label:
        match = STREAMS_ARIA_PATTERN.search(aria_label)
        if match:
            return f"{match.group(1)}{match.group(2) or ''}"

    for line in (raw.strip() for raw in body_text.splitlines()):
        if not DURATION_PATTERN.search(line):
            continue
        match = DURATION_STREAMS_PATTERN.search(line)
        if match:
            return match.group(1).replace(" ", "")
    return None


@dataclass
class ParsedCredits:
    """Credit names found in page text."""

    songwriters: list[str] = field(default_factory=list)
    producers: list[str] = field(default_factory=list)
    publishers: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)


def _heading_bucket(line: str) -> str | None:
    lowered = line.lower()
    for heading, bucket in _CREDIT_HEADINGS:
        if heading in lowered:
            return bucket
    return None


def _looks_like_names(line: str) -> bool:
    return bool(line) and ":" not in line and " by" not in line.lower()


# Listen up, the credits dialog renders as "heading line, then names line":
#   Written by
#   Jane Doe, Bob Smith
# We look at every heading and take the NEXT line as its names, unless that line is itself a
# heading (contains ":" or " by"). "Source: Some Label" is the one-line label format.
def parse_credits_text(body_text: str) -> ParsedCredits:
    """Extract credits from the visible text of a credits dialog/page."""
    lines = [line.strip() for line in body_text.splitlines() if line.strip()]
    raw: dict[str, list[str]] = {"songwriters": [], "producers": [], "publishers": []}
    labels: list[str] = []

    for index, line in enumerate(lines):
        if line.lower().startswith(SOURCE_LINE_PREFIX):
            label = line[len(SOURCE_LINE_PREFIX) :].strip()
            if label and label not in labels:
                labels.append(label)
            continue

        bucket = _heading_bucket(line)
        if bucket is None or index + 1 >= len(lines):
            continue
        next_line = lines[index + 1]
        if _looks_like_names(next_line) and _heading_bucket(next_line) is None:
            raw[bucket].append(next_line)

    # Publishers are company names: split on commas only, no camel-case splitting
    publishers: list[str] = []
    for entry in raw["publishers"]:
        for name in (part.strip() for part in entry.split(",")):
            if len(name) > 2 and name.lower() not in {p.lower() for p in publishers}:
                publishers.append(name)

    return ParsedCredits(
        songwriters=process_credits(raw["songwriters"]),
        producers=process_credits(raw["producers"]),
        publishers=publishers,
        labels=labels,
    )


# =============================================================================
# Licensing registry portal
# =============================================================================

PORTAL_SEARCH_INPUT_SELECTOR = 'input[placeholder*="ISRC"], input[name*="isrc"], input[type="text"]'
PORTAL_SUBMIT_SELECTOR = 'button[type="submit"]'
PORTAL_PUBLISHER_SELECTOR = '[class*="publisher"], [data-testid*="publisher"], .publisher-name'
PORTAL_WRITER_SELECTOR = '[class*="writer"], [data-testid*="writer"], .writer-name'

ISWC_PATTERN = re.compile(r"ISWC[:\s]+([A-Z0-9\-.]+)", re.IGNORECASE)
SONG_CODE_PATTERN = re.compile(r"MLC Song Code[:\s]+([A-Z0-9\-]+)", re.IGNORECASE)

_PORTAL_HEADER_WORDS = ("publisher name", "writer name")


@dataclass
class PortalResult:
    """What the registry portal search page revealed."""

    publishers: list[str] = field(default_factory=list)
    writers: list[str] = field(default_factory=list)
    iswc: str | None = None
    song_code: str | None = None

    def is_empty(self) -> bool:
        """True when neither publishers nor writers were found."""
        return not self.publishers and not self.writers


def _clean_cells(texts: list[str]) -> list[str]:
    cleaned: list[str] = []
    for text in texts:
        value = " ".join(text.split())
        if len(value) <= 2 or any(word in value.lower() for word in _PORTAL_HEADER_WORDS):
            continue
        if value not in cleaned:
            cleaned.append(value)
    return cleaned


def parse_portal_page(
    body_text: str,
    publisher_cells: list[str],
    writer_cells: list[str],
    table_rows: list[list[str]],
) -> PortalResult:
    """Combine the portal's structured cells with text-pattern fallbacks.

    Args:
        body_text: Full visible text of the result page
        publisher_cells: Texts of elements matching PORTAL_PUBLISHER_SELECTOR
        writer_cells: Texts of elements matching PORTAL_WRITER_SELECTOR
        table_rows: Cell texts per <tr>, used when the structured cells are absent
    """
    result = PortalResult(
        publishers=_clean_cells(publisher_cells),
        writers=_clean_cells(writer_cells),
    )

    iswc = ISWC_PATTERN.search(body_text)
    if iswc:
        result.iswc = iswc.group(1)
    song_code = SONG_CODE_PATTERN.search(body_text)
    if song_code:
        result.song_code = song_code.group(1)

    if not result.publishers:
        # "label cell, value cell" rows
        publishers: list[str] = []
        writers: list[str] = []
        for cells in table_rows:
            for index, cell in enumerate(cells[:-1]):
                lowered = cell.lower()
                if "publisher" in lowered:
                    publishers.append(cells[index + 1])
                elif "writer" in lowered:
                    writers.append(cells[index + 1])
        result.publishers = _clean_cells(publishers)
        if not result.writers:
            result.writers = _clean_cells(writers)

    return result
