"""
Taste keyword matching with inclusion/negation detection.

Given free text and the live taste keyword catalog, decide which keyword ids
the user asked for and which they explicitly ruled out:

    "딸기 말고 초코 추천해줘"  ->  include=["chocolate"], exclude=["strawberry"]

Two passes collect match positions: a fixed, curated alias table (only for
ids present in the catalog) and the catalog labels themselves. Each
positioned match is then classified by looking for a negation marker within
a fixed character window around it. Any marker in the window after a match
negates it. A marker in the window before a match is skipped when it already
trails an earlier match, so "딸기 말고 초코" leaves 초코 included. There is no
such check for the window after a match: in "바닐라 좋고 초코 싫고", the 싫 that
follows 초코 also falls after 바닐라 and excludes both.

The alias table is deliberately conservative ("초코" means chocolate and
nothing fuzzier). Do not broaden it without re-deriving the whole table.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from config.constants import DEFAULT_RECOMMEND_CONFIG
from core.utils import clean_str, uniq
from recommend.models import TasteConstraints, TasteKeyword


# =============================================================================
# Vocabulary
# =============================================================================

# Mixing-method words; never a taste on their own.
MIXING_WORDS: Tuple[str, ...] = ("우유", "물", "milk", "water", "밀크")

# Order matters: the more specific chocolate variants come first.
TASTE_ALIASES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("white chocolate", ("화이트초콜렛", "화이트초콜릿", "화이트초코", "whitechocolate", "whitechoc")),
    ("dark chocolate", ("다크초콜렛", "다크초콜릿", "다크초코", "darkchocolate", "darkchoc")),
    ("chocolate", ("초콜렛", "초콜릿", "초콜", "초코", "chocolate", "choc")),
    ("cookies and cream", ("쿠키앤크림", "쿠키and크림", "쿠키&크림", "쿠앤크", "cookiesandcream", "cookiesncream")),
    ("strawberry", ("딸기", "스트로베리", "strawberry")),
    ("vanilla", ("바닐라", "vanilla")),
    ("banana", ("바나나", "banana")),
    ("caramel", ("카라멜", "캬라멜", "caramel")),
    ("mint", ("민트", "mint")),
    ("coffee", ("커피", "coffee")),
    ("milk tea", ("밀크티", "milktea")),
    ("matcha", ("말차", "matcha")),
    ("green tea", ("녹차", "그린티", "greentea", "green tea")),
    ("mocha latte", ("모카", "모카라떼", "모카라테", "mocha", "mochalatte", "mocha latte")),
    ("yogurt", ("요거트", "요구르트", "yogurt")),
    ("blueberry", ("블루베리", "blueberry")),
)

NEGATION_MARKERS: Tuple[str, ...] = (
    "말고", "말곤", "말구", "제외", "제외하고", "빼고", "빼", "아닌", "싫", "말지",
)

# A real flavor word anywhere in the raw text disables the mixing-method guard.
_TASTE_HINT = re.compile(
    r"(딸기|스트로베리|바닐라|초코|초콜|바나나|카라멜|민트|커피|말차|녹차|쿠키|요거트|블루베리)"
)

_NON_ALNUM = re.compile(r"[^0-9a-z가-힣]")
_WHITESPACE = re.compile(r"\s+")


def normalize_taste_text(text: Optional[str]) -> str:
    """
    Collapse text for loose comparison.

    Lowercases, spells out "&"/"앤" as "and", and drops whitespace and anything
    that is not an ASCII letter, digit, or Hangul syllable.
    """
    s = (text or "").lower().replace("&", "and").replace("앤", "and")
    s = _WHITESPACE.sub("", s)
    return _NON_ALNUM.sub("", s)


_MIXING_NORMALIZED: Set[str] = {normalize_taste_text(w) for w in MIXING_WORDS}


def only_mixing_method_mentioned(raw: str) -> bool:
    """
    True for text like "물에 타 먹을만한 거": a mixing word and no flavor word.

    Such text must not be read as a taste request.
    """
    normalized = normalize_taste_text(raw)
    if not normalized:
        return False
    if not any(word and word in normalized for word in _MIXING_NORMALIZED):
        return False
    return not _TASTE_HINT.search(raw)


# =============================================================================
# Occurrences
# =============================================================================

@dataclass(frozen=True)
class _Occurrence:
    """One place a keyword id matched. start is None for normalized-only hits."""
    keyword_id: str
    start: Optional[int] = None
    end: Optional[int] = None


def find_all_occurrences(haystack: str, needle: str) -> List[int]:
    """Start offsets of every (non-overlapping) occurrence of needle."""
    positions: List[int] = []
    if not needle:
        return positions
    idx = haystack.find(needle)
    while idx != -1:
        positions.append(idx)
        idx = haystack.find(needle, idx + max(1, len(needle)))
    return positions


def _marker_positions(text: str, markers: Sequence[str]) -> List[Tuple[int, int]]:
    spans = []
    for marker in markers:
        for start in find_all_occurrences(text, marker):
            spans.append((start, start + len(marker)))
    return spans


class TasteMatcher:
    """
    Match user text against a taste keyword catalog.

    Usage:
        matcher = TasteMatcher(catalog)
        constraints = matcher.match("딸기 말고 초코 추천해줘")
    """

    def __init__(
        self,
        catalog: Iterable[TasteKeyword],
        active_ids: Optional[Set[str]] = None,
        window: int = DEFAULT_RECOMMEND_CONFIG.NEGATION_WINDOW,
    ):
        self.catalog = [k for k in catalog if clean_str(k.id)]
        if active_ids is None:
            active_ids = {clean_str(k.id) for k in self.catalog}
        self.active_ids = active_ids
        self.window = window

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    def _alias_occurrences(self, lower: str) -> List[_Occurrence]:
        found: List[_Occurrence] = []
        for keyword_id, aliases in TASTE_ALIASES:
            if keyword_id not in self.active_ids:
                continue
            for alias in aliases:
                token = alias.lower()
                if not token or normalize_taste_text(token) in _MIXING_NORMALIZED:
                    continue
                for start in find_all_occurrences(lower, token):
                    found.append(_Occurrence(keyword_id, start, start + len(token)))
        return found

    def _label_occurrences(self, lower: str, normalized: str) -> List[_Occurrence]:
        found: List[_Occurrence] = []
        for keyword in self.catalog:
            keyword_id = clean_str(keyword.id)
            label = clean_str(keyword.label)
            if not label or keyword_id not in self.active_ids:
                continue

            label_normalized = normalize_taste_text(label)
            if label_normalized in _MIXING_NORMALIZED:
                continue

            label_lower = label.lower()
            idx = lower.find(label_lower)
            if idx != -1:
                found.append(_Occurrence(keyword_id, idx, idx + len(label_lower)))
            elif label_normalized and label_normalized in normalized:
                found.append(_Occurrence(keyword_id))
        return found

    # -------------------------------------------------------------------------
    # Negation
    # -------------------------------------------------------------------------

    def _is_negated(
        self,
        occurrence: _Occurrence,
        markers: List[Tuple[int, int]],
        positioned: List[_Occurrence],
        text_length: int,
    ) -> bool:
        """
        A marker fully inside the window after the match negates it. A marker
        fully inside the window before it negates it too, unless the marker
        also trails an earlier match that it belongs to.
        """
        if occurrence.start is None:
            return False
        start, end = occurrence.start, occurrence.end
        pre_from = max(0, start - self.window)
        post_to = min(text_length, end + self.window)

        for m_start, m_end in markers:
            if m_start >= end and m_end <= post_to:
                return True
            if m_start >= pre_from and m_end <= start:
                if not self._claimed_by_earlier(m_start, m_end, occurrence, positioned):
                    return True
        return False

    def _claimed_by_earlier(
        self,
        m_start: int,
        m_end: int,
        occurrence: _Occurrence,
        positioned: List[_Occurrence],
    ) -> bool:
        for other in positioned:
            if other is occurrence or other.end is None:
                continue
            if other.end <= m_start and m_end <= other.end + self.window:
                return True
        return False

    # -------------------------------------------------------------------------
    # Public
    # -------------------------------------------------------------------------

    def match(self, text: Optional[str]) -> TasteConstraints:
        """
        Resolve the taste keyword ids requested and excluded by the text.

        Returns:
            TasteConstraints. mentioned=True with both lists empty means the
            user talked about taste but nothing resolved to a known id.
        """
        raw = text or ""
        if only_mixing_method_mentioned(raw):
            return TasteConstraints(mentioned=False)

        lower = raw.lower()
        normalized = normalize_taste_text(raw)

        occurrences = self._alias_occurrences(lower) + self._label_occurrences(lower, normalized)
        if not occurrences:
            return TasteConstraints(mentioned=False)

        positioned = [o for o in occurrences if o.start is not None]
        markers = _marker_positions(lower, NEGATION_MARKERS)

        include: List[str] = []
        exclude: List[str] = []
        for occurrence in occurrences:
            if self._is_negated(occurrence, markers, positioned, len(lower)):
                exclude.append(occurrence.keyword_id)
            else:
                include.append(occurrence.keyword_id)

        excluded = uniq(i for i in exclude if i)
        excluded_set = set(excluded)
        included = [i for i in uniq(include) if i and i not in excluded_set]

        return TasteConstraints(mentioned=True, include=included, exclude=excluded)


def match_taste(
    text: Optional[str],
    catalog: Iterable[TasteKeyword],
    active_ids: Optional[Set[str]] = None,
) -> TasteConstraints:
    """Functional shortcut for TasteMatcher(catalog, active_ids).match(text)."""
    return TasteMatcher(catalog, active_ids=active_ids).match(text)
