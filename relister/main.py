"""네이버 순위 수집 메인 엔트리포인트.

처리 흐름:
  1. DB 에서 광고 중인 매물을 가져온다
  2. 매물별로 같은 호수의 네이버 광고 목록을 수집한다
  3. 노출 순서대로 순위・공유 순위를 매긴다
  4. 매물에 순위를 기록하고 경쟁 광고 분석을 저장한다
"""

from __future__ import annotations

import logging
import sys
import time
from datetime import datetime

from relister.config import LOG_DIR
from relister.db import CompetingAdsRepository, ListingRepository, create_supabase_client
from relister.ranking import analyze_competition, assign_rankings
from relister.scraper import collect_articles


def setup_logging() -> None:
    """로깅 초기 설정."""
    log_file = LOG_DIR / f"relister_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def run() -> None:
    """메인 처리."""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=== 네이버 순위 수집 시작 ===")
    start_time = time.time()

    client = create_supabase_client()
    listing_repo = ListingRepository(client)
    ads_repo = CompetingAdsRepository(client)

    # 1. 광고 중인 매물
    listings = listing_repo.find_active_listings()
    if not listings:
        logger.warning("광고 중인 매물이 없습니다. 종료합니다.")
        return

    logger.info("광고 중인 매물: %d 건", len(listings))

    # 2. 네이버 광고 목록 수집
    collected = collect_articles([listing.article_no for listing in listings])

    # 3. 순위 부여 (collected 의 리스트에 직접 기록된다)
    rank_infos = assign_rankings(collected)

    # 4. 기록
    error_count = 0
    for listing in listings:
        articles = collected.get(listing.article_no)
        info = rank_infos.get(listing.article_no)
        if not articles or info is None:
            error_count += 1
            logger.warning("  %s (%s) → 순위 정보 없음", listing.name, listing.article_no)
            continue

        listing_repo.update_listing_rank(listing.id, info)
        analysis = analyze_competition(articles, listing.article_no)
        ads_repo.upsert(listing.id, analysis)

        shared = f" (공동 {info.shared_rank}위, {info.shared_count}건)" if info.is_shared else ""
        logger.info(
            "  %s → %d/%d위%s, 경쟁 광고 %d 건%s",
            listing.name, info.ranking, info.total, shared, len(analysis.competing_ads),
            ", 층수 노출 열세" if analysis.has_floor_exposure_advantage else "",
        )

    # 요약
    elapsed = time.time() - start_time
    logger.info("=== 네이버 순위 수집 완료 ===")
    logger.info("매물: %d 건, 실패: %d 건, 소요 시간: %.1f 초",
                len(listings), error_count, elapsed)


if __name__ == "__main__":
    run()
