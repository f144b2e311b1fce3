"""
Field Extractor
===============
Pure functions mapping rendered character-page text to fields.

Every extractor is tolerant of absence: no match returns ``""``,
never an exception. The patterns are keyed to the current page
layout of the character-lookup site and are best-effort.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Sequence
from urllib.parse import unquote, urljoin, urlparse

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_ITEM_LEVEL_RE = re.compile(
    r"\b(?:item\s*level|ilvl)[:\s]*(\d{3,4}(?:\.\d{2})?)(?!\d)",
    re.IGNORECASE,
)

_COMBAT_POWER_LABEL_RES = [
    re.compile(r"\bcombat\s*power[:\s]*(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE),
    re.compile(r"\bCP[:\s]*(\d[\d,]*(?:\.\d+)?)"),
]

# Bare NNN.NN / NNNN.NN token, only trusted inside the combat-power range
_BARE_DECIMAL_RE = re.compile(r"(?<![\d.])(\d{3,4}\.\d{2})(?![\d.])")
_COMBAT_POWER_RANGE = (1000.0, 5000.0)

_CLASS_LABEL_RE = re.compile(
    r"\b(?:class|job|character\s*type)\s*:\s*([a-z]+)",
    re.IGNORECASE,
)

_CHARACTER_HREF_RE = re.compile(r"/character/[^/]+/[^/]+")

_CLASS_LIKE_RE = re.compile(r"^[A-Za-z]{3,20}$")

_LINK_LIKE = ("http", "www.", ".com", ".moe", "/", "@")

KNOWN_CLASSES = frozenset([
    "berserker", "paladin", "gunlancer", "destroyer", "slayer", "breaker",
    "bard", "sorceress", "arcanist", "summoner", "artist", "aeromancer",
    "wardancer", "scrapper", "soulfist", "glaivier", "striker",
    "deathblade", "shadowhunter", "reaper", "souleater",
    "sharpshooter", "deadeye", "gunslinger", "machinist", "valkyrie",
    "wildsoul",
])

KNOWN_REGIONS = frozenset(["nae", "naw", "euc", "euw", "sa", "kr", "ru", "jp"])


def _capitalize(word: str) -> str:
    word = word.lower()
    return word[:1].upper() + word[1:]


# ---------------------------------------------------------------------------
# Stat extractors
# ---------------------------------------------------------------------------

def extract_item_level(text: str) -> str:
    """First ``Item Level``/``ilvl`` value (3-4 digits, optional .NN)."""
    match = _ITEM_LEVEL_RE.search(text or "")
    return match.group(1) if match else ""


def extract_combat_power(text: str) -> str:
    """
    Labelled ``Combat Power``/``CP`` value, else a bare ``NNNN.NN`` token
    inside the plausible combat-power range.

    Item-level values are masked out before the bare scan since they
    share the same decimal shape.
    """
    text = text or ""
    for pattern in _COMBAT_POWER_LABEL_RES:
        match = pattern.search(text)
        if match:
            return match.group(1)

    masked = _ITEM_LEVEL_RE.sub(" ", text)
    low, high = _COMBAT_POWER_RANGE
    for match in _BARE_DECIMAL_RE.finditer(masked):
        value = float(match.group(1))
        if low <= value <= high:
            return match.group(1)
    return ""


def extract_class(text: str) -> str:
    """Explicit ``class:``/``job:``/``character type:`` label, else the layout heuristic."""
    match = _CLASS_LABEL_RE.search(text or "")
    if match:
        return _capitalize(match.group(1))
    return find_class_by_layout((text or "").splitlines())


def _is_server_line(line: str) -> bool:
    if not line or len(line) > 24:
        return False
    if any(ch.isdigit() for ch in line):
        return False
    lower = line.lower()
    if lower in KNOWN_CLASSES or lower in KNOWN_REGIONS:
        return False
    return not any(marker in lower for marker in _LINK_LIKE)


def find_class_by_layout(lines: Sequence[str]) -> str:
    """
    Locate the class on the character header block.

    The header renders as five lines::

        <server>
        (blank)
        <class>
        (blank)
        <character name>

    Returns the capitalized class, or ``""`` if the block is not found.
    """
    stripped = [line.strip() for line in lines]
    for i in range(len(stripped) - 4):
        server, gap1, klass, gap2, name = stripped[i:i + 5]
        if gap1 or gap2:
            continue
        if not _is_server_line(server):
            continue
        if not _CLASS_LIKE_RE.match(klass) or klass.lower() in KNOWN_REGIONS:
            continue
        if len(name) < 2 or name.lower() == klass.lower():
            continue
        return _capitalize(klass)
    return ""


# ---------------------------------------------------------------------------
# Roster enumeration
# ---------------------------------------------------------------------------

def names_from_hrefs(hrefs: Iterable[str], base_url: str) -> List[str]:
    """Decoded character names from profile hrefs, deduplicated in first-seen order."""
    seen = set()
    names: List[str] = []
    for href in hrefs:
        if not href or not _CHARACTER_HREF_RE.search(href):
            continue
        try:
            parts = [p for p in urlparse(urljoin(base_url + "/", href)).path.split("/") if p]
        except ValueError:
            continue
        if "character" not in parts:
            continue
        i = parts.index("character")
        if len(parts) <= i + 2:
            continue
        name = unquote(parts[i + 2]).strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def extract_roster_names(html: str, base_url: str) -> List[str]:
    """Character names linked from a rendered roster page."""
    soup = BeautifulSoup(html or "", "lxml")
    hrefs = [a.get("href", "") for a in soup.select('a[href*="/character/"]')]
    names = names_from_hrefs(hrefs, base_url)
    logger.debug(f"[ROSTER] {len(hrefs)} character anchors → {len(names)} names")
    return names
