"""
Response assembly: turn picked ids into display-ready flavors.
"""

from typing import Any, Dict, List, Mapping, Optional

from config.constants import RECOMMENDED
from core.logging import get_logger
from core.utils import clean_str
from recommend.models import ForcedLiquid, HydratedFlavor, Liquid, RecommendationResult, TasteKeyword
from recommend.selector import build_tags, build_title

logger = get_logger(__name__)


def decide_best_with(forced: ForcedLiquid, item: Optional[Mapping[str, Any]]) -> Liquid:
    """
    The liquid to suggest for one item.

    A single liquid forced by the user's text wins; otherwise milk only when
    the item recommends milk and not water; otherwise water.
    """
    single = forced.single_liquid
    if single is not None:
        return single

    item = item or {}
    if item.get("milk") == RECOMMENDED and item.get("water") != RECOMMENDED:
        return Liquid.MILK
    return Liquid.WATER


def hydrate_taste_keywords(refs: Any, catalog: Mapping[str, TasteKeyword]) -> Any:
    """
    Fill label/icon_url on keyword references from the catalog.

    Values already present on a reference are kept. References without an
    id pass through unchanged; unknown ids keep their own fields.
    """
    if not isinstance(refs, list):
        return refs

    hydrated = []
    for ref in refs:
        if not isinstance(ref, dict) or not ref.get("id"):
            hydrated.append(ref)
            continue
        out = dict(ref, id=clean_str(ref["id"]))
        keyword = catalog.get(out["id"])
        if keyword is None:
            hydrated.append(out)
            continue
        if out.get("label") is None:
            out["label"] = keyword.label
        if out.get("icon_url") is None:
            out["icon_url"] = keyword.icon_url
        hydrated.append(out)
    return hydrated


def assemble_picks(
    result: RecommendationResult,
    rows_by_id: Mapping[str, Dict[str, Any]],
    catalog: Mapping[str, TasteKeyword],
    forced: ForcedLiquid,
) -> List[HydratedFlavor]:
    """
    Hydrate picks in pick order. Ids not in the candidate set are dropped.

    Args:
        result: Picks from the selector or the fallback
        rows_by_id: Candidate rows keyed by id
        catalog: Taste keywords keyed by id
        forced: Water/milk override from the user's text
    """
    flavors: List[HydratedFlavor] = []
    for pick in result.picks:
        item = rows_by_id.get(pick.id)
        if item is None:
            logger.warning("Dropping pick outside the candidate set", pick_id=pick.id)
            continue

        refs = hydrate_taste_keywords(item.get("taste_keywords"), catalog)
        flavors.append(HydratedFlavor(
            **{
                **item,
                "taste_keywords": [r for r in refs if isinstance(r, dict)] if isinstance(refs, list) else [],
                "title": build_title(item),
                "tags": build_tags(item),
                "best_with": decide_best_with(forced, item),
            }
        ))
    return flavors
