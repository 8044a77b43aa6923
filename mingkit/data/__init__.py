#!/usr/bin/env python3
"""
Reference Data
==============
Read-only lookup tables bundled with MingKit: the character table, the
81-number fortune table, the homophone blacklist and the poetry/idiom corpora.

All files are YAML and loaded once per process. ``CharacterTable`` is the
character-lookup collaborator used by the scorer and the generator; a
character that is not in the table is simply absent (``lookup`` returns
``None``), never an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import yaml

from mingkit.cache import CacheKind, character_key
from mingkit.elements import Element
from mingkit.errors import DataError, InvalidInputError
from mingkit.settings import get_setting

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent

GENDERS = ("male", "female", "neutral")
CLASSIC_SOURCES = ("诗经", "楚辞")


# =============================================================================
# Loaders
# =============================================================================

@lru_cache(maxsize=10)
def _load_yaml(filename: str) -> Dict:
    """Load a YAML file from the data directory."""
    filepath = DATA_DIR / filename
    if not filepath.exists():
        raise DataError(f"Missing data file: {filepath}")
    with open(filepath, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_characters() -> Dict:
    return _load_yaml('characters.yaml')


def load_numerology() -> Dict:
    return _load_yaml('numerology.yaml')


def load_homophones() -> Dict:
    return _load_yaml('homophones.yaml')


def load_poetry() -> Dict:
    return _load_yaml('poetry.yaml')


def load_idioms() -> Dict:
    return _load_yaml('idioms.yaml')


# =============================================================================
# Meaning quality
# =============================================================================

@dataclass
class MeaningPolicy:
    """Adjustments used to derive a character's meaning quality (0-100)."""
    base: Optional[int] = None
    positive_bonus: Optional[int] = None
    negative_penalty: Optional[int] = None
    frequency: Optional[Dict[str, int]] = None
    hsk: Optional[Dict[str, int]] = None
    positive_keywords: Optional[List[str]] = None
    negative_keywords: Optional[List[str]] = None

    def __post_init__(self):
        cfg = get_setting("meaning", {}) or {}
        for name in ("base", "positive_bonus", "negative_penalty", "frequency",
                     "hsk", "positive_keywords", "negative_keywords"):
            if getattr(self, name) is None:
                setattr(self, name, cfg.get(name))
        missing = [
            name for name in ("base", "positive_bonus", "negative_penalty", "frequency",
                              "hsk", "positive_keywords", "negative_keywords")
            if getattr(self, name) is None
        ]
        if missing:
            raise ValueError(f"meaning settings missing in app.yaml: {', '.join(missing)}")

    def has_positive_meaning(self, meaning: str) -> bool:
        return any(kw in meaning for kw in self.positive_keywords)

    def has_negative_meaning(self, meaning: str) -> bool:
        return any(kw in meaning for kw in self.negative_keywords)

    def quality(self, meaning: str, frequency: int, hsk: Optional[int]) -> int:
        """Score how suitable a character's meaning and familiarity are for a name."""
        score = self.base
        if self.has_positive_meaning(meaning):
            score += self.positive_bonus
        if self.has_negative_meaning(meaning):
            score -= self.negative_penalty

        freq = self.frequency
        if 0 < frequency < freq["too_common_max"]:
            score -= freq["too_common_penalty"]
        elif freq["ideal_min"] <= frequency <= freq["ideal_max"]:
            score += freq["ideal_bonus"]
        elif freq["ideal_max"] < frequency <= freq["good_max"]:
            score += freq["good_bonus"]
        elif frequency > freq["rare_min"]:
            score -= freq["rare_penalty"]

        if hsk:
            if hsk <= self.hsk["easy_max"]:
                score += self.hsk["easy_bonus"]
            elif hsk >= self.hsk["hard_min"]:
                score -= self.hsk["hard_penalty"]

        return max(0, min(100, score))


# =============================================================================
# Data classes
# =============================================================================

@dataclass(frozen=True)
class CharacterInfo:
    """Attributes of one Chinese character."""
    char: str
    pinyin: str                       # tone-less reading, ü as v
    tone: int                         # 1-4, 5 for neutral
    strokes: int
    kangxi_strokes: Optional[int]
    element: Element
    meaning: str
    meaning_quality: int
    frequency: int = 0
    hsk: Optional[int] = None
    radical: str = ""
    gender: str = "neutral"
    given_name: bool = True

    @property
    def classical_strokes(self) -> int:
        """Kangxi stroke count, falling back to dictionary strokes."""
        return self.kangxi_strokes or self.strokes

    def suits_gender(self, gender: str) -> bool:
        if gender == "neutral":
            return True
        return self.gender in (gender, "neutral")


@dataclass(frozen=True)
class PoetryVerse:
    id: str
    source: str
    title: str
    verse: str
    suitable_chars: Tuple[str, ...]
    dynasty: str = ""
    author: Optional[str] = None
    themes: Tuple[str, ...] = ()

    @property
    def is_classic(self) -> bool:
        return self.source in CLASSIC_SOURCES


@dataclass(frozen=True)
class Idiom:
    idiom: str
    meaning: str
    suitable_chars: Tuple[str, ...]
    pinyin: str = ""
    source: str = ""
    category: str = ""


@dataclass(frozen=True)
class Inspiration:
    """Literary source a generated name borrows from."""
    kind: str                         # 'poetry' or 'idiom'
    title: str
    quote: str
    author: Optional[str] = None

    def describe(self) -> str:
        if self.kind == "idiom":
            return f"取自成语「{self.title}」：{self.quote}"
        return f"取自{self.author or ''}《{self.title}》：「{self.quote}」"


# =============================================================================
# Parsing
# =============================================================================

def _require(row: Dict[str, Any], key: str, filename: str, index: int):
    value = row.get(key)
    if value is None:
        raise DataError(f"{filename} row {index}: '{key}' is required")
    return value


def parse_character(row: Dict[str, Any], index: int, policy: MeaningPolicy,
                    filename: str = "characters.yaml") -> CharacterInfo:
    """Build a CharacterInfo from a raw YAML row."""
    if not isinstance(row, dict):
        raise DataError(f"{filename} row {index}: expected a mapping, got {type(row).__name__}")
    char = str(_require(row, 'char', filename, index))
    if len(char) != 1:
        raise DataError(f"{filename} row {index}: '{char}' is not a single character")
    try:
        element = Element.parse(_require(row, 'element', filename, index))
    except InvalidInputError as e:
        raise DataError(f"{filename} row {index}: {e}") from e

    tone = int(_require(row, 'tone', filename, index))
    strokes = int(_require(row, 'strokes', filename, index))
    if tone not in (1, 2, 3, 4, 5):
        raise DataError(f"{filename} row {index}: tone {tone} out of range")
    if strokes <= 0:
        raise DataError(f"{filename} row {index}: strokes must be positive")

    gender = row.get('gender', 'neutral')
    if gender not in GENDERS:
        raise DataError(f"{filename} row {index}: unknown gender '{gender}'")

    meaning = str(row.get('meaning', ''))
    frequency = int(row.get('frequency') or 0)
    hsk = row.get('hsk')
    quality = row.get('meaning_quality')
    if quality is None:
        quality = policy.quality(meaning, frequency, hsk)

    return CharacterInfo(
        char=char,
        pinyin=str(_require(row, 'pinyin', filename, index)).lower().replace('ü', 'v'),
        tone=tone,
        strokes=strokes,
        kangxi_strokes=row.get('kangxi'),
        element=element,
        meaning=meaning,
        meaning_quality=int(quality),
        frequency=frequency,
        hsk=hsk,
        radical=str(row.get('radical', '')),
        gender=gender,
        given_name=bool(row.get('given_name', True)),
    )


def parse_verses(data: Dict) -> List[PoetryVerse]:
    verses = []
    for i, row in enumerate(data.get('verses') or []):
        verses.append(PoetryVerse(
            id=str(_require(row, 'id', 'poetry.yaml', i)),
            source=str(_require(row, 'source', 'poetry.yaml', i)),
            title=str(_require(row, 'title', 'poetry.yaml', i)),
            verse=str(_require(row, 'verse', 'poetry.yaml', i)),
            suitable_chars=tuple(_require(row, 'suitable_chars', 'poetry.yaml', i)),
            dynasty=str(row.get('dynasty', '')),
            author=row.get('author'),
            themes=tuple(row.get('themes') or ()),
        ))
    return verses


def parse_idioms(data: Dict) -> List[Idiom]:
    idioms = []
    for i, row in enumerate(data.get('idioms') or []):
        idioms.append(Idiom(
            idiom=str(_require(row, 'idiom', 'idioms.yaml', i)),
            meaning=str(_require(row, 'meaning', 'idioms.yaml', i)),
            suitable_chars=tuple(_require(row, 'suitable_chars', 'idioms.yaml', i)),
            pinyin=str(row.get('pinyin', '')),
            source=str(row.get('source', '')),
            category=str(row.get('category', '')),
        ))
    return idioms


# =============================================================================
# Character Table
# =============================================================================

class CharacterTable:
    """
    Character lookup plus the literary corpora used for source filtering.

    Parameters
    ----------
    characters : iterable of CharacterInfo
        Table rows; a later row for the same character replaces an earlier one.
    surnames : iterable of str
        Known surnames, single or compound.
    verses, idioms : iterable, optional
        Poetry and idiom corpora.
    registry : CacheRegistry, optional
        When given, lookups go through its CHARACTER cache.
    """

    def __init__(self,
                 characters: Iterable[CharacterInfo],
                 surnames: Iterable[str] = (),
                 verses: Iterable[PoetryVerse] = (),
                 idioms: Iterable[Idiom] = (),
                 registry=None):
        self._chars: Dict[str, CharacterInfo] = {}
        for info in characters:
            self._chars[info.char] = info
        self._surnames = tuple(surnames)
        self.verses: List[PoetryVerse] = list(verses)
        self.idioms: List[Idiom] = list(idioms)
        self._registry = registry

        self._poetry_chars: Set[str] = {c for v in self.verses for c in v.suitable_chars}
        self._classic_chars: Set[str] = {
            c for v in self.verses if v.is_classic for c in v.suitable_chars
        }
        self._idiom_chars: Set[str] = {c for i in self.idioms for c in i.suitable_chars}

    @classmethod
    def load(cls, registry=None, policy: Optional[MeaningPolicy] = None) -> "CharacterTable":
        """Build the table from the bundled YAML files."""
        policy = policy or MeaningPolicy()
        raw = load_characters()
        rows = raw.get('characters') or []
        characters = [parse_character(row, i, policy) for i, row in enumerate(rows)]
        table = cls(
            characters,
            surnames=raw.get('surnames') or [],
            verses=parse_verses(load_poetry()),
            idioms=parse_idioms(load_idioms()),
            registry=registry,
        )
        logger.debug(f"Loaded {len(table)} characters, {len(table.verses)} verses, "
                     f"{len(table.idioms)} idioms")
        return table

    def __len__(self) -> int:
        return len(self._chars)

    def __contains__(self, char: str) -> bool:
        return char in self._chars

    def __iter__(self):
        return iter(self._chars.values())

    @property
    def surnames(self) -> Tuple[str, ...]:
        return self._surnames

    def lookup(self, char: str) -> Optional[CharacterInfo]:
        """Return the character's attributes, or None when it is not in the table."""
        if self._registry is None:
            return self._chars.get(char)

        cache = self._registry.get(CacheKind.CHARACTER)
        key = character_key(char)
        cached = cache.get(key)
        if cached is not None:
            return cached
        info = self._chars.get(char)
        if info is not None:
            cache.set(key, info)
        return info

    def lookup_many(self, text: str) -> List[Optional[CharacterInfo]]:
        return [self.lookup(c) for c in text]

    def given_name_pool(self) -> List[CharacterInfo]:
        """Characters usable in a given name, in table order."""
        return [c for c in self._chars.values() if c.given_name]

    def by_element(self, element: Element) -> List[CharacterInfo]:
        return [c for c in self._chars.values() if c.element is element]

    # ------------------------------------------------------------------
    # Source tagging
    # ------------------------------------------------------------------

    def source_chars(self, source: str) -> Optional[Set[str]]:
        """Characters tagged with a literary source; None means no restriction."""
        if source == "poetry":
            return self._poetry_chars
        if source == "classics":
            return self._classic_chars
        if source == "idioms":
            return self._idiom_chars
        return None

    def is_poetry_char(self, char: str) -> bool:
        return char in self._poetry_chars

    def find_inspiration(self, source: str, given_name: str) -> Optional[Inspiration]:
        """Find a verse or idiom containing every character of ``given_name``."""
        chars = list(given_name)
        if source == "idioms":
            for idiom in self.idioms:
                if all(c in idiom.suitable_chars for c in chars):
                    return Inspiration("idiom", idiom.idiom, idiom.meaning)
            return None

        pool = [v for v in self.verses if v.is_classic] if source == "classics" else self.verses
        for verse in pool:
            if all(c in verse.suitable_chars for c in chars):
                return Inspiration("poetry", verse.title, verse.verse, verse.author)
        return None

    # ------------------------------------------------------------------
    # Surnames
    # ------------------------------------------------------------------

    def split_name(self, full_name: str) -> Tuple[str, str]:
        """Split a full name into (surname, given name), preferring compound surnames."""
        full_name = (full_name or "").strip()
        if len(full_name) < 2:
            raise InvalidInputError("Full name must have at least two characters")
        for surname in sorted(self._surnames, key=len, reverse=True):
            if len(surname) > 1 and full_name.startswith(surname) and len(full_name) > len(surname):
                return surname, full_name[len(surname):]
        return full_name[0], full_name[1:]


@lru_cache(maxsize=1)
def default_table() -> CharacterTable:
    """Process-wide table without a cache registry."""
    return CharacterTable.load()


__all__ = [
    "CharacterInfo",
    "CharacterTable",
    "Idiom",
    "Inspiration",
    "MeaningPolicy",
    "PoetryVerse",
    "default_table",
    "load_characters",
    "load_homophones",
    "load_idioms",
    "load_numerology",
    "load_poetry",
    "parse_character",
]
