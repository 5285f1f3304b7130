"""호출자용 배치・순위 분석 API.

리포지토리와 오케스트레이터는 호출마다 새로 만든다. 모듈 전역 상태는 두지 않는다.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from relister.adapter import ScraperAdapter
from relister.db import BatchRepository, CompetingAdsRepository
from relister.errors import BatchNotFoundError, ScraperFailure
from relister.models import Batch, BatchItem, BatchRunResult, RankingAnalysis
from relister.orchestrator import BatchOrchestrator, ProgressCallback
from relister.ranking import analyze_competition, assign_ranks
from relister.scraper import fetch_articles, parse_articles

logger = logging.getLogger(__name__)


def create_batch(
    name: str,
    listing_ids: list[int],
    price_overrides: dict[int, dict] | None = None,
    scheduled_at: datetime | str | None = None,
    repository: BatchRepository | None = None,
) -> Batch:
    orchestrator = BatchOrchestrator(repository or BatchRepository())
    return orchestrator.create(name, listing_ids, price_overrides, scheduled_at)


def execute_batch(
    batch_id: int,
    adapter_factory: Callable[[], ScraperAdapter],
    progress: ProgressCallback | None = None,
    repository: BatchRepository | None = None,
) -> BatchRunResult:
    orchestrator = BatchOrchestrator(repository or BatchRepository(), adapter_factory)
    return orchestrator.execute(batch_id, progress)


def retry_batch(
    batch_id: int,
    adapter_factory: Callable[[], ScraperAdapter],
    progress: ProgressCallback | None = None,
    repository: BatchRepository | None = None,
) -> BatchRunResult:
    orchestrator = BatchOrchestrator(repository or BatchRepository(), adapter_factory)
    return orchestrator.retry(batch_id, progress)


def get_all_batches(repository: BatchRepository | None = None) -> list[Batch]:
    return (repository or BatchRepository()).find_all_batches()


def get_batch_detail(
    batch_id: int, repository: BatchRepository | None = None
) -> tuple[Batch, list[BatchItem]]:
    """배치와 그 아이템을 함께 조회한다."""
    repo = repository or BatchRepository()
    batch = repo.find_batch(batch_id)
    if batch is None:
        raise BatchNotFoundError(batch_id)
    return batch, repo.find_items(batch_id)


def delete_batch(batch_id: int, repository: BatchRepository | None = None) -> None:
    (repository or BatchRepository()).delete_batch(batch_id)


def analyze_ranking(
    article_no: str,
    price: str | None = None,
    listing_id: int | None = None,
    repository: CompetingAdsRepository | None = None,
) -> RankingAnalysis:
    """네이버에서 같은 호수의 광고를 받아 내 광고의 경쟁 상황을 분석한다.

    Args:
        article_no: 내 광고의 네이버 매물번호 (대표 매물번호로도 쓴다)
        price: 재등록 시 적용할 가격. 없으면 현재 광고 가격.
        listing_id: 지정하면 분석 결과를 competing_ads_analysis 에 저장한다.

    Raises:
        ScraperFailure: 네이버 매물 목록을 가져오지 못했을 때
    """
    logger.info("랭킹 분석 시작: %s", article_no)
    raw = fetch_articles(article_no)
    if raw is None:
        raise ScraperFailure(f"네이버 매물 목록을 가져오지 못했습니다: {article_no}")

    articles = assign_ranks(parse_articles(raw), article_no)
    analysis = analyze_competition(articles, article_no, price)

    if listing_id is not None:
        (repository or CompetingAdsRepository()).upsert(listing_id, analysis)

    logger.info(
        "랭킹 분석 완료: %s, 순위=%s/%d, 경쟁 광고=%d 건",
        article_no, analysis.my_ranking, analysis.total_count, len(analysis.competing_ads),
    )
    return analysis
