#!/usr/bin/env python3
"""
Five Elements, Stems and Branches
=================================
Closed enumerations for the five elements, the ten heavenly stems and the
twelve earthly branches, plus the fixed generation/destruction cycles.

Every lookup is keyed by an enum member, so an out-of-range label can only
enter the system through one of the ``parse`` helpers, which raise
``InvalidInputError``.
"""

from enum import Enum
from typing import Dict, Iterable, List, Tuple

from .errors import InvalidInputError


class Element(Enum):
    """The five elements (五行), valued by their Chinese label."""
    METAL = "金"
    WOOD = "木"
    WATER = "水"
    FIRE = "火"
    EARTH = "土"

    @property
    def label(self) -> str:
        return self.value

    @property
    def english(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, label) -> "Element":
        """Accept an Element, its Chinese label or its English name."""
        if isinstance(label, cls):
            return label
        text = str(label).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise InvalidInputError(f"Unknown element: {label!r}")

    @classmethod
    def parse_many(cls, labels: Iterable) -> Tuple["Element", ...]:
        """Parse labels, dropping duplicates but keeping first-seen order."""
        seen: List[Element] = []
        for label in labels or ():
            element = cls.parse(label)
            if element not in seen:
                seen.append(element)
        return tuple(seen)


# Canonical presentation order
ELEMENT_ORDER: Tuple[Element, ...] = (
    Element.METAL, Element.WOOD, Element.WATER, Element.FIRE, Element.EARTH,
)

# 相生: key generates value
GENERATION: Dict[Element, Element] = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# 相克: key destroys value
DESTRUCTION: Dict[Element, Element] = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}

_GENERATED_BY = {child: parent for parent, child in GENERATION.items()}
_DESTROYED_BY = {victim: attacker for attacker, victim in DESTRUCTION.items()}


def generates(element: Element) -> Element:
    """The element that ``element`` produces (its outlet)."""
    return GENERATION[element]


def generated_by(element: Element) -> Element:
    """The element that produces ``element`` (its support)."""
    return _GENERATED_BY[element]


def destroys(element: Element) -> Element:
    """The element that ``element`` overcomes."""
    return DESTRUCTION[element]


def destroyed_by(element: Element) -> Element:
    """The element that overcomes ``element`` (its controller)."""
    return _DESTROYED_BY[element]


def sort_elements(elements: Iterable[Element]) -> Tuple[Element, ...]:
    """Return the distinct elements in canonical order."""
    present = set(elements)
    return tuple(e for e in ELEMENT_ORDER if e in present)


# Last-digit element mapping used for grid numbers: 1,2 木 / 3,4 火 / 5,6 土 / 7,8 金 / 9,0 水
_DIGIT_ELEMENTS: Tuple[Element, ...] = (
    Element.WATER, Element.WOOD, Element.FIRE, Element.EARTH, Element.METAL,
)


def number_to_element(number: int) -> Element:
    """Map a grid number to its element by its last digit."""
    return _DIGIT_ELEMENTS[((number % 10) + 1) // 2 % 5]


class Stem(Enum):
    """The ten heavenly stems (天干)."""
    JIA = "甲"
    YI = "乙"
    BING = "丙"
    DING = "丁"
    WU = "戊"
    JI = "己"
    GENG = "庚"
    XIN = "辛"
    REN = "壬"
    GUI = "癸"

    @property
    def element(self) -> Element:
        return STEM_ELEMENTS[self]

    @property
    def is_yang(self) -> bool:
        return list(Stem).index(self) % 2 == 0

    @property
    def polarity(self) -> str:
        return "阳" if self.is_yang else "阴"

    @classmethod
    def parse(cls, label) -> "Stem":
        if isinstance(label, cls):
            return label
        text = str(label).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise InvalidInputError(f"Unknown heavenly stem: {label!r}")


class Branch(Enum):
    """The twelve earthly branches (地支)."""
    ZI = "子"
    CHOU = "丑"
    YIN = "寅"
    MAO = "卯"
    CHEN = "辰"
    SI = "巳"
    WU = "午"
    WEI = "未"
    SHEN = "申"
    YOU = "酉"
    XU = "戌"
    HAI = "亥"

    @property
    def element(self) -> Element:
        return BRANCH_ELEMENTS[self]

    @property
    def zodiac(self) -> str:
        return BRANCH_ZODIAC[self]

    @classmethod
    def parse(cls, label) -> "Branch":
        if isinstance(label, cls):
            return label
        text = str(label).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise InvalidInputError(f"Unknown earthly branch: {label!r}")


STEM_ELEMENTS: Dict[Stem, Element] = {
    Stem.JIA: Element.WOOD, Stem.YI: Element.WOOD,
    Stem.BING: Element.FIRE, Stem.DING: Element.FIRE,
    Stem.WU: Element.EARTH, Stem.JI: Element.EARTH,
    Stem.GENG: Element.METAL, Stem.XIN: Element.METAL,
    Stem.REN: Element.WATER, Stem.GUI: Element.WATER,
}

BRANCH_ELEMENTS: Dict[Branch, Element] = {
    Branch.YIN: Element.WOOD, Branch.MAO: Element.WOOD,
    Branch.SI: Element.FIRE, Branch.WU: Element.FIRE,
    Branch.SHEN: Element.METAL, Branch.YOU: Element.METAL,
    Branch.HAI: Element.WATER, Branch.ZI: Element.WATER,
    Branch.CHEN: Element.EARTH, Branch.XU: Element.EARTH,
    Branch.CHOU: Element.EARTH, Branch.WEI: Element.EARTH,
}

BRANCH_ZODIAC: Dict[Branch, str] = {
    Branch.ZI: "鼠", Branch.CHOU: "牛", Branch.YIN: "虎", Branch.MAO: "兔",
    Branch.CHEN: "龙", Branch.SI: "蛇", Branch.WU: "马", Branch.WEI: "羊",
    Branch.SHEN: "猴", Branch.YOU: "鸡", Branch.XU: "狗", Branch.HAI: "猪",
}


__all__ = [
    "Element",
    "Stem",
    "Branch",
    "ELEMENT_ORDER",
    "GENERATION",
    "DESTRUCTION",
    "STEM_ELEMENTS",
    "BRANCH_ELEMENTS",
    "BRANCH_ZODIAC",
    "generates",
    "generated_by",
    "destroys",
    "destroyed_by",
    "sort_elements",
    "number_to_element",
]
