#!/usr/bin/env python3
"""
Phonetic Analyzer
=================
Tone harmony, readability and homophone checks for a full name's reading.

Input is one (reading, tone) pair per character, readings without tone marks.
Every rule works on whatever length it is given, so a two-syllable name
(single surname, single given name) is handled like any other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pypinyin.contrib.tone_convert import to_tone

from mingkit.data import load_homophones
from mingkit.errors import InvalidInputError
from mingkit.settings import get_setting

logger = logging.getLogger(__name__)

LEVEL_TONES = (1, 2)         # 平
OBLIQUE_TONES = (3, 4)       # 仄
RETROFLEX_INITIALS = ("zh", "ch", "sh")


# =============================================================================
# Helpers
# =============================================================================

def normalize_reading(reading: str) -> str:
    """Lower-case, strip digits/spaces and write ü as v."""
    text = (reading or "").lower().replace('ü', 'v').replace('u:', 'v')
    return "".join(ch for ch in text if ch.isalpha())


def near_form(reading: str) -> str:
    """Fold retroflex initials and -ng finals so near-homophones compare equal."""
    text = normalize_reading(reading)
    for retroflex, flat in (("zh", "z"), ("ch", "c"), ("sh", "s")):
        text = text.replace(retroflex, flat)
    return text.replace("ng", "n")


def display_reading(readings: Sequence[str], tones: Sequence[int]) -> str:
    """Render readings with tone marks (``hao``, 3 -> ``hǎo``); tone 5 stays unmarked."""
    syllables = []
    for reading, tone in zip(readings, tones):
        syllable = normalize_reading(reading)
        if tone in (1, 2, 3, 4) and syllable:
            syllable = to_tone(f"{syllable}{tone}")
        syllables.append(syllable.replace("v", "ü"))
    return " ".join(syllables)


# =============================================================================
# Homophones
# =============================================================================

@dataclass
class HomophoneMatch:
    scope: str             # 'syllable', 'pair' or 'name'
    reading: str
    sounds_like: str
    severity: str
    near: bool = False
    position: Optional[int] = None


@dataclass
class HomophoneResult:
    """Result of homophone checking."""
    is_clean: bool
    severity: str          # 'clear', 'low', 'medium', 'high'
    matches: List[HomophoneMatch] = field(default_factory=list)


class HomophoneChecker:
    """
    Checks a name's reading against the homophone blacklist.

    Single syllables must match exactly; the surname+first-given pair and the
    whole name also match near forms (zh/z, ch/c, sh/s, -ng/-n).
    """

    SEVERITY_RANK = {'clear': 0, 'low': 1, 'medium': 2, 'high': 3}

    def __init__(self, entries: Optional[Dict[str, Any]] = None):
        entries = entries if entries is not None else load_homophones()
        self._syllables = self._index(entries.get('syllables'))
        self._pairs = self._index(entries.get('pairs'))
        self._names = self._index(entries.get('names'))
        self._near_pairs = {near_form(k): k for k in self._pairs}
        self._near_names = {near_form(k): k for k in self._names}

    @staticmethod
    def _index(section) -> Dict[str, Dict[str, str]]:
        index = {}
        for reading, data in (section or {}).items():
            data = data or {}
            severity = data.get('severity', 'medium')
            if severity not in HomophoneChecker.SEVERITY_RANK or severity == 'clear':
                raise ValueError(f"Unknown homophone severity '{severity}' for '{reading}'")
            index[normalize_reading(reading)] = {
                'sounds_like': str(data.get('sounds_like', '')),
                'severity': severity,
            }
        return index

    def _match_compound(self, reading: str, scope: str, exact: Dict, near: Dict) -> Optional[HomophoneMatch]:
        if reading in exact:
            data = exact[reading]
            return HomophoneMatch(scope, reading, data['sounds_like'], data['severity'])
        folded = near_form(reading)
        if folded in near:
            data = exact[near[folded]]
            return HomophoneMatch(scope, reading, data['sounds_like'], data['severity'], near=True)
        return None

    def check(self, readings: Sequence[str]) -> HomophoneResult:
        readings = [normalize_reading(r) for r in readings]
        matches: List[HomophoneMatch] = []

        for index, reading in enumerate(readings):
            data = self._syllables.get(reading)
            if data:
                matches.append(HomophoneMatch('syllable', reading, data['sounds_like'],
                                              data['severity'], position=index))

        if len(readings) >= 2:
            pair = self._match_compound(readings[0] + readings[1], 'pair',
                                        self._pairs, self._near_pairs)
            if pair:
                matches.append(pair)

        whole = self._match_compound("".join(readings), 'name', self._names, self._near_names)
        if whole:
            matches.append(whole)

        worst = max((m.severity for m in matches), key=self.SEVERITY_RANK.get, default='clear')
        return HomophoneResult(is_clean=not matches, severity=worst, matches=matches)


# =============================================================================
# Policy & analyzer
# =============================================================================

@dataclass
class PhoneticPolicy:
    """Phonetic scoring constants (``phonetics`` in app.yaml)."""
    harmony: Optional[Dict[str, Any]] = None
    readability: Optional[Dict[str, Any]] = None
    harmony_weight: Optional[float] = None
    readability_weight: Optional[float] = None
    clean_bonus: Optional[int] = None
    severity_penalties: Optional[Dict[str, int]] = None
    good_tone_pairs: Optional[List[Tuple[int, int]]] = None
    bad_tone_pairs: Optional[List[Tuple[int, int]]] = None

    def __post_init__(self):
        cfg = get_setting("phonetics", {}) or {}
        names = ("harmony", "readability", "harmony_weight", "readability_weight",
                 "clean_bonus", "severity_penalties", "good_tone_pairs", "bad_tone_pairs")
        for name in names:
            if getattr(self, name) is None:
                setattr(self, name, cfg.get(name))
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise ValueError(f"phonetics settings missing in app.yaml: {', '.join(missing)}")
        self.good_tone_pairs = [tuple(p) for p in self.good_tone_pairs]
        self.bad_tone_pairs = [tuple(p) for p in self.bad_tone_pairs]


@dataclass(frozen=True)
class PhoneticAnalysis:
    readings: Tuple[str, ...]
    tones: Tuple[int, ...]
    harmony: int
    readability: int
    score: int
    homophones: Tuple[HomophoneMatch, ...]
    warnings: Tuple[str, ...]

    @property
    def has_homophone(self) -> bool:
        return bool(self.homophones)

    @property
    def display(self) -> str:
        return display_reading(self.readings, self.tones)

    def to_dict(self) -> dict:
        return {
            'reading': self.display,
            'tones': list(self.tones),
            'harmony': self.harmony,
            'readability': self.readability,
            'score': self.score,
            'warnings': list(self.warnings),
        }


class PhoneticAnalyzer:
    """Scores how a full name sounds."""

    def __init__(self,
                 policy: Optional[PhoneticPolicy] = None,
                 homophones: Optional[HomophoneChecker] = None):
        self.policy = policy or PhoneticPolicy()
        self.homophones = homophones or HomophoneChecker()

    def tone_harmony(self, tones: Sequence[int]) -> int:
        """Score the tone contour: variety, alternation and an open ending help."""
        cfg = self.policy.harmony
        tones = list(tones)
        if not tones:
            return cfg['base']
        score = cfg['base']

        distinct = set(tones)
        if len(tones) > 1 and len(distinct) == 1:
            score -= cfg['monotone_penalty']
        if len(distinct) >= cfg['variety_min_distinct']:
            score += cfg['variety_bonus']

        if len(tones) == 3:
            given_pair = (tones[1], tones[2])
            if given_pair in self.policy.good_tone_pairs:
                score += cfg['good_pattern_bonus']
            elif given_pair in self.policy.bad_tone_pairs:
                score -= cfg['bad_pattern_penalty']

        if tones.count(4) > cfg['fourth_tone_max']:
            score -= cfg['fourth_tone_penalty']
        if tones[0] == 4:
            score -= cfg['falling_start_penalty']

        # 平仄 alternation; a neutral tone breaks the pattern
        if len(tones) > 1 and 5 not in distinct and all(
            (a in LEVEL_TONES) != (b in LEVEL_TONES) for a, b in zip(tones, tones[1:])
        ):
            score += cfg['alternation_bonus']

        if tones[-1] in cfg['open_tones']:
            score += cfg['open_ending_bonus']

        return max(0, min(100, score))

    def readability(self, readings: Sequence[str], tones: Sequence[int]) -> int:
        """Score ease of pronunciation and tone variety."""
        cfg = self.policy.readability
        readings = [normalize_reading(r) for r in readings]
        score = cfg['base']

        if len(readings) in cfg['ideal_lengths']:
            score += cfg['ideal_length_bonus']
        elif len(readings) >= cfg['long_name_min']:
            score -= cfg['long_name_penalty']

        for reading in readings:
            if reading.startswith(RETROFLEX_INITIALS):
                score -= cfg['retroflex_penalty']
            if reading in cfg['complex_syllables']:
                score -= cfg['complex_syllable_penalty']

        if any(abs(a - b) <= cfg['smooth_transition_max_step'] for a, b in zip(tones, tones[1:])):
            score += cfg['smooth_transition_bonus']

        variety = len({t for t in tones if t in (1, 2, 3, 4)})
        if variety > 1:
            score += (variety - 1) * cfg['tone_variety_bonus']

        return max(0, min(100, score))

    def warnings_for(self, full_name: str, matches: Iterable[HomophoneMatch]) -> List[str]:
        warnings = []
        for match in matches:
            if match.scope == 'syllable':
                char = full_name[match.position] if match.position < len(full_name) else ""
                warnings.append(f"\"{char}\" 的拼音 \"{match.reading}\" 可能与 \"{match.sounds_like}\" 谐音")
            elif match.scope == 'pair':
                warnings.append(f"姓名连读 \"{match.reading}\" 可能与 \"{match.sounds_like}\" 谐音")
            else:
                warnings.append(f"全名拼音 \"{match.reading}\" 可能与 \"{match.sounds_like}\" 谐音")
        return warnings

    def analyze(self, full_name: str, readings: Sequence[str], tones: Sequence[int]) -> PhoneticAnalysis:
        if not readings or len(readings) != len(tones):
            raise InvalidInputError("Readings and tones must be non-empty and of equal length")
        for tone in tones:
            if tone not in (1, 2, 3, 4, 5):
                raise InvalidInputError(f"Tone must be 1-5, got {tone!r}")

        policy = self.policy
        harmony = self.tone_harmony(tones)
        readability = self.readability(readings, tones)
        result = self.homophones.check(readings)

        score = harmony * policy.harmony_weight + readability * policy.readability_weight
        if result.is_clean:
            score += policy.clean_bonus
        else:
            score -= sum(policy.severity_penalties[m.severity] for m in result.matches)
        score = max(0, min(100, round(score)))

        warnings = self.warnings_for(full_name, result.matches)
        if warnings:
            logger.debug(f"Homophone warnings for {full_name}: {warnings}")

        return PhoneticAnalysis(
            readings=tuple(normalize_reading(r) for r in readings),
            tones=tuple(tones),
            harmony=harmony,
            readability=readability,
            score=score,
            homophones=tuple(result.matches),
            warnings=tuple(warnings),
        )

    def for_name(self, analysis: PhoneticAnalysis, full_name: str) -> PhoneticAnalysis:
        """Reword an analysis shared by same-sounding names for ``full_name``."""
        return replace(analysis, warnings=tuple(self.warnings_for(full_name, analysis.homophones)))


__all__ = [
    "HomophoneChecker",
    "HomophoneMatch",
    "HomophoneResult",
    "PhoneticAnalysis",
    "PhoneticAnalyzer",
    "PhoneticPolicy",
    "display_reading",
    "near_form",
    "normalize_reading",
]
