"""순위 부여 및 경쟁 광고 분석 모듈.

순위는 네이버가 내려준 노출 순서 그대로다. 가격이나 날짜로 다시 정렬하지 않는다.
"""

from __future__ import annotations

import logging
import re

from relister.errors import ValidationError
from relister.models import Article, CompetingAd, RankInfo, RankingAnalysis
from relister.price import normalize_price

logger = logging.getLogger(__name__)

# "12/25" 처럼 현재층/전체층이 숫자로 노출된 경우만 매칭 ("고/25" 등은 미노출)
_FLOOR_EXPOSED_PATTERN = re.compile(r"^\d+/\d+$")


def assign_ranks(articles: list[Article], representative_id: str | None = None) -> list[Article]:
    """광고 목록에 순위와 공유 순위를 부여한다 (in-place).

    확인일자가 같은 광고가 연속으로 이어지는 구간을 하나의 공유 순위 그룹으로 본다.

    Args:
        articles: 노출 순서대로 정렬된 같은 호수의 광고 목록
        representative_id: total 을 기록할 대표 매물 ID

    Returns:
        인자로 받은 같은 리스트
    """
    if not articles:
        return articles

    groups: list[list[Article]] = []
    for rank, article in enumerate(articles, start=1):
        article.rank = rank
        if groups and groups[-1][0].confirmation_date == article.confirmation_date:
            groups[-1].append(article)
        else:
            groups.append([article])

    shared_rank = 1
    for group in groups:
        shared_count = len(group)
        for article in group:
            article.shared_rank = shared_rank
            article.shared_count = shared_count
            article.is_shared = shared_count > 1
        shared_rank += shared_count

    if representative_id is not None:
        for article in articles:
            if article.id == representative_id:
                article.total = len(articles)

    return articles


def assign_rankings(by_representative: dict[str, list[Article] | None]) -> dict[str, RankInfo]:
    """대표 매물별 광고 목록에 순위를 매기고, 대표 매물의 순위 정보만 돌려준다.

    목록이 비었거나 대표 매물이 목록에 없으면 결과에서 빠진다.
    """
    results: dict[str, RankInfo] = {}
    for rep_id, articles in by_representative.items():
        if not articles:
            continue

        assign_ranks(articles, rep_id)
        matched = next((a for a in articles if a.id == rep_id), None)
        if matched is None:
            logger.warning("대표 매물이 광고 목록에 없습니다: %s", rep_id)
            continue

        results[rep_id] = RankInfo(
            ranking=matched.rank,
            shared_rank=matched.shared_rank,
            is_shared=matched.is_shared,
            shared_count=matched.shared_count,
            total=matched.total,
            confirmation_date=matched.confirmation_date,
        )

    return results


def is_floor_exposed(floor_text: str | None) -> bool:
    """층수가 "12/25" 형식으로 노출되어 있는지."""
    if not floor_text:
        return False
    return bool(_FLOOR_EXPOSED_PATTERN.match(floor_text.strip()))


def analyze_competition(
    articles: list[Article],
    my_id: str,
    my_price_override: str | None = None,
) -> RankingAnalysis:
    """같은 호수의 광고 목록에서 내 광고의 경쟁 상황을 분석한다.

    경쟁 광고는 (가격이 다른 광고) ∪ (내가 층수 미노출일 때 층수를 노출한 광고).
    순수 함수이며 I/O 는 하지 않는다.

    Args:
        articles: 노출 순서대로의 광고 목록
        my_id: 내 광고의 네이버 매물번호
        my_price_override: 재등록 시 바꿀 가격. 없으면 현재 광고 가격을 쓴다.

    Raises:
        ValidationError: my_id 가 비어 있을 때
    """
    if not my_id:
        raise ValidationError("내 매물번호가 비어 있습니다")

    if not articles:
        return RankingAnalysis.empty()

    my_index = next((i for i, a in enumerate(articles) if a.id == my_id), None)
    if my_index is None:
        logger.info("내 광고가 목록에 없습니다: %s (%d 건 중)", my_id, len(articles))
        return RankingAnalysis.empty()

    my_article = articles[my_index]
    my_ranking = my_index + 1
    my_floor_exposed = is_floor_exposed(my_article.floor_text)
    my_price = normalize_price(my_price_override or my_article.price_text)

    # (순위, 광고) 쌍. 순위는 원래 노출 순서
    others = [(i, a) for i, a in enumerate(articles, start=1) if a.id != my_id]
    prices = {a.id: normalize_price(a.price_text) for _, a in others}

    price_competitors = [(i, a) for i, a in others if prices[a.id] != my_price]
    floor_competitors: list[tuple[int, Article]] = []
    if not my_floor_exposed:
        floor_competitors = [(i, a) for i, a in others if is_floor_exposed(a.floor_text)]
        for _, a in floor_competitors:
            if prices[a.id] == my_price:
                logger.debug("층수 노출 경쟁 광고 (동일 가격): %s", a.id)
            else:
                logger.debug("층수 노출 경쟁 광고 (가격 차이 %d): %s", prices[a.id] - my_price, a.id)

    seen: set[str] = set()
    competing_ads: list[CompetingAd] = []
    for ranking, a in price_competitors + floor_competitors:
        if a.id in seen:
            continue
        seen.add(a.id)
        comparable = my_price > 0 and prices[a.id] > 0
        competing_ads.append(CompetingAd(
            id=a.id,
            ranking=ranking,
            price_text=a.price_text,
            floor_text=a.floor_text,
            is_floor_exposed=is_floor_exposed(a.floor_text),
            confirmation_date=a.confirmation_date,
            broker_name=a.broker_name,
            verification_code=a.verification_code,
            is_price_lower=comparable and prices[a.id] < my_price,
            is_price_higher=comparable and prices[a.id] > my_price,
        ))
    competing_ads.sort(key=lambda ad: ad.ranking)

    return RankingAnalysis(
        my_article=my_article,
        my_ranking=my_ranking,
        my_floor_exposed=my_floor_exposed,
        total_count=len(articles),
        competing_ads=competing_ads,
        has_floor_exposure_advantage=not my_floor_exposed and len(floor_competitors) > 0,
    )
