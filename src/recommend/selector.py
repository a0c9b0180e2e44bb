"""
LLM recommendation selector: the second LLM call of a recommendation.

The model picks 1-3 ids from a compacted candidate list. It runs as three
explicit states:

    FIRST_ATTEMPT  -> valid?  -> done
    STRICT_RETRY   -> valid?  -> done   (allowed_ids listed, other keys forbidden)
    FALLBACK       -> first min(3, n) candidates, followup=None

A transport failure of an attempt counts as an invalid attempt, so
select() always returns a result for a non-empty candidate list.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Optional, Sequence

from config.constants import DEFAULT_RECOMMEND_CONFIG, RecommendConfig
from core.logging import get_logger
from core.utils import clean_str, uniq
from recommend.llm_client import LLMClient, LLMError, decode_llm_object, get_llm_client
from recommend.models import Pick, RecommendationResult, SelectionStage

logger = get_logger(__name__)


_FIRST_SYSTEM_PROMPT = (
    "너는 '후보 내 추천'만 하는 추천봇이야.\n"
    "반드시 JSON 오브젝트만 출력해. 설명 문장/코드블록 금지.\n"
    "아래 후보 리스트의 id 중에서만 1~3개 picks에 넣어.\n"
    "후보 밖의 제품명 생성 금지.\n"
    "키는 picks, followup만 허용.\n"
    "picks의 각 원소는 id만 허용.\n"
    '출력형식: {"picks":[{"id":"..."}],"followup":string|null}'
)

_STRICT_SYSTEM_PROMPT = (
    "너는 포맷 검증을 통과해야 한다.\n"
    "절대 다른 키를 출력하지 마라. "
    "(recommendations/product/reason/name/summary/why/best_with/status_code/valid/result 금지)\n"
    "오직 picks, followup만 허용.\n"
    "picks[*].id는 allowed_ids 중 하나여야 한다.\n"
    '정확한 형식: {"picks":[{"id":"<allowed_ids 중 하나>"}],"followup":null}'
)


# =============================================================================
# Candidate View
# =============================================================================

def build_title(row: Dict[str, Any]) -> str:
    """Display title: "brand product_name flavor_name"."""
    return " ".join(clean_str(row.get(k)) for k in ("brand", "product_name", "flavor_name"))


def build_tags(row: Dict[str, Any], config: RecommendConfig = DEFAULT_RECOMMEND_CONFIG) -> Dict[str, Any]:
    return {name: row.get(name) for name in config.TAG_FIELDS}


def compact_candidates(
    rows: Sequence[Dict[str, Any]],
    config: RecommendConfig = DEFAULT_RECOMMEND_CONFIG,
) -> List[Dict[str, Any]]:
    """The reduced per-row view shown to the model."""
    return [
        {
            "id": clean_str(row.get("id")),
            "title": build_title(row),
            "summary_text": row.get("summary_text"),
            "protein_type": row.get("protein_type"),
            "tags": build_tags(row, config),
        }
        for row in rows
    ]


# =============================================================================
# Validation
# =============================================================================

def is_valid_recommendation(obj: Any) -> bool:
    """
    Shape check for a selector payload.

    Requires a mapping with a non-empty `picks` list whose entries are all
    mappings with a non-blank string `id`, and a `followup` key holding
    null or a string.
    """
    if not isinstance(obj, dict):
        return False
    picks = obj.get("picks")
    if not isinstance(picks, list) or not picks:
        return False
    for pick in picks:
        if not isinstance(pick, dict):
            return False
        pick_id = pick.get("id")
        if not isinstance(pick_id, str) or not pick_id.strip():
            return False
    if "followup" not in obj:
        return False
    followup = obj["followup"]
    return followup is None or isinstance(followup, str)


def parse_recommendation(
    obj: Dict[str, Any],
    max_picks: int = DEFAULT_RECOMMEND_CONFIG.MAX_PICKS,
    allowed_ids: Optional[Collection[str]] = None,
) -> RecommendationResult:
    """
    Trimmed, deduplicated, capped picks from a payload that passed validation.

    When allowed_ids is given, unknown ids are dropped before the cap so a
    hallucinated id never displaces a real candidate.
    """
    ids = uniq(p["id"].strip() for p in obj["picks"])
    if allowed_ids is not None:
        ids = [i for i in ids if i in allowed_ids]
    return RecommendationResult(picks=[Pick(id=i) for i in ids[:max_picks]], followup=obj.get("followup"))


def fallback_recommendation(
    rows: Sequence[Dict[str, Any]],
    max_picks: int = DEFAULT_RECOMMEND_CONFIG.MAX_PICKS,
) -> RecommendationResult:
    """The first min(max_picks, n) candidates, in query order."""
    return RecommendationResult(
        picks=[Pick(id=clean_str(row.get("id"))) for row in rows[:max_picks]],
        followup=None,
    )


# =============================================================================
# Selector
# =============================================================================

@dataclass
class SelectionOutcome:
    """What the selector produced and how it got there."""
    stage: SelectionStage
    result: RecommendationResult
    raw_payloads: List[Any] = field(default_factory=list)


class RecommendationSelector:
    """
    Pick 1-3 candidates with the LLM, retrying once, then falling back.

    Usage:
        selector = RecommendationSelector()
        outcome = selector.select("초코 추천해줘", rows)
        outcome.result.picks
    """

    def __init__(self, llm: Optional[LLMClient] = None, config: RecommendConfig = DEFAULT_RECOMMEND_CONFIG):
        self._llm = llm
        self.config = config

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = get_llm_client()
        return self._llm

    def _attempt(self, stage: SelectionStage, messages: List[Dict[str, str]]) -> Any:
        """One model call; None when the endpoint fails or the output is unparseable."""
        try:
            return self.llm.chat_json(messages)
        except LLMError as e:
            logger.warning(
                "Selector attempt failed",
                stage=stage.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    def select(self, text: str, rows: Sequence[Dict[str, Any]]) -> SelectionOutcome:
        """
        Run the three selector states over the candidate rows.

        Args:
            text: The user's request
            rows: Candidate rows (already exclusion-filtered)

        Returns:
            SelectionOutcome; stage tells which state produced the picks
        """
        compact = compact_candidates(rows, self.config)
        candidates_json = json.dumps(compact, ensure_ascii=False)
        candidate_ids = {c["id"] for c in compact}
        raw_payloads: List[Any] = []

        first_raw = self._attempt(SelectionStage.FIRST_ATTEMPT, [
            {"role": "system", "content": _FIRST_SYSTEM_PROMPT},
            {"role": "user", "content": f"사용자 질문:\n{text}\n\n후보:\n{candidates_json}"},
        ])
        raw_payloads.append(first_raw)
        first = decode_llm_object(first_raw)
        if is_valid_recommendation(first):
            return SelectionOutcome(
                SelectionStage.FIRST_ATTEMPT,
                parse_recommendation(first, self.config.MAX_PICKS, candidate_ids),
                raw_payloads,
            )

        logger.info("Selector output invalid, retrying with strict format", payload=first_raw)

        allowed_ids = json.dumps([c["id"] for c in compact], ensure_ascii=False)
        strict_raw = self._attempt(SelectionStage.STRICT_RETRY, [
            {"role": "system", "content": _STRICT_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"사용자 질문:\n{text}\n\n"
                    f"allowed_ids:\n{allowed_ids}\n\n"
                    f"후보:\n{candidates_json}"
                ),
            },
        ])
        raw_payloads.append(strict_raw)
        strict = decode_llm_object(strict_raw)
        if is_valid_recommendation(strict):
            return SelectionOutcome(
                SelectionStage.STRICT_RETRY,
                parse_recommendation(strict, self.config.MAX_PICKS, candidate_ids),
                raw_payloads,
            )

        logger.warning("Selector output invalid twice, using fallback picks", payload=strict_raw)
        return SelectionOutcome(
            SelectionStage.FALLBACK,
            fallback_recommendation(rows, self.config.MAX_PICKS),
            raw_payloads,
        )
