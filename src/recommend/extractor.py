"""
Filter extraction: the first LLM call of a recommendation.

Turns free text into a best-effort {query, mustAsk, filters} object. The
result is advisory; the normalizer decides what survives. Any failure
(endpoint down, unparseable output, wrong shape) yields an empty
ExtractionResult and the pipeline carries on with the text rules alone.
"""

from typing import Any, Optional

from core.logging import get_logger
from core.utils import clean_str
from recommend.llm_client import LLMClient, LLMError, decode_llm_object, get_llm_client
from recommend.models import ExtractionResult

logger = get_logger(__name__)


_SYSTEM_PROMPT = (
    "너는 프로틴 추천을 위한 '필터 추출기'야.\n"
    "반드시 JSON 오브젝트만 출력해. 설명 문장/코드블록 금지.\n"
    "유저가 말하지 않은 조건은 채우지 마라.\n"
    "단맛/당도 관련 요청은 sweetness로만 추출하고 taste를 채우지 마라.\n"
    "filters 키: protein_type(WPC/WPI), sweetness(1~5 숫자 또는 약함/약간 약함/보통/약간 강함/강함), "
    "fishy, artificial, bloating(없음/거의 없음/보통/약간 있음/있음).\n"
    "질문이 너무 모호해서 추천할 수 없을 때만 mustAsk에 되물을 질문을 넣어.\n"
    '출력형식: {"query":string|undefined,"mustAsk":string|null,"filters":{...}}'
)


class FilterExtractor:
    """
    LLM-backed filter extraction.

    Usage:
        extractor = FilterExtractor()
        result = extractor.extract("달지 않은 WPI 추천해줘")
        if result.must_ask:
            ...
    """

    def __init__(self, llm: Optional[LLMClient] = None, enabled: bool = True):
        self._llm = llm
        self._enabled = enabled

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = get_llm_client()
        return self._llm

    @property
    def enabled(self) -> bool:
        return self._enabled

    def extract(self, text: str) -> ExtractionResult:
        """
        Extract raw filters and an optional clarifying question.

        Returns an empty ExtractionResult if extraction is disabled or fails.
        """
        if not self._enabled:
            logger.debug("Filter extraction disabled")
            return ExtractionResult()

        try:
            raw = self.llm.chat_json([
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": f"사용자 질문:\n{text}"},
            ])
        except LLMError as e:
            logger.warning(
                "Filter extraction failed, using text rules only",
                error=str(e),
                error_type=type(e).__name__,
            )
            return ExtractionResult()

        result = parse_extraction(raw)
        logger.info(
            "Filters extracted",
            must_ask=result.must_ask,
            query=result.query,
            raw_filters=result.filters,
        )
        return result


def parse_extraction(raw: Any) -> ExtractionResult:
    """
    Read an extraction payload, keeping only well-typed fields.

    `mustAsk` (or `must_ask`) counts only as a non-blank string; `filters`
    only as a mapping.
    """
    data = decode_llm_object(raw)
    if not isinstance(data, dict):
        logger.warning("Extraction payload is not an object", payload_type=type(data).__name__)
        return ExtractionResult()

    must_ask = data.get("mustAsk", data.get("must_ask"))
    must_ask = clean_str(must_ask) if isinstance(must_ask, str) else ""

    query = data.get("query")
    query = clean_str(query) if isinstance(query, str) else ""

    filters = data.get("filters")
    if not isinstance(filters, dict):
        filters = {}

    return ExtractionResult(
        must_ask=must_ask or None,
        query=query or None,
        filters=filters,
    )
