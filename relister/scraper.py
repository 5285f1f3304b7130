"""네이버 부동산 매물 목록 수집 모듈.

대표 매물번호로 같은 호수의 광고 목록을 받아온다.
응답 배열의 순서가 곧 노출 순위이므로 그대로 유지한다.
"""

from __future__ import annotations

import logging
import random
import time

import requests

from relister.config import (
    FETCH_MAX_RETRIES,
    FETCH_RETRY_INTERVAL_MAX,
    FETCH_RETRY_INTERVAL_MIN,
    NAVER_ARTICLES_URL,
    NAVER_BEARER_TOKEN,
    REQUEST_INTERVAL_MAX,
    REQUEST_INTERVAL_MIN,
    REQUEST_TIMEOUT,
    USER_AGENTS,
)
from relister.models import Article

logger = logging.getLogger(__name__)


def _build_headers(bearer_token: str) -> dict[str, str]:
    # 좌표를 매번 조금씩 바꿔서 같은 Referer 로 연속 요청하지 않도록 한다
    loc1 = f"{random.randint(0, 9999):04d}"
    loc2 = f"{random.randint(0, 9999):04d}"
    return {
        "Authorization": f"Bearer {bearer_token}",
        "User-Agent": random.choice(USER_AGENTS),
        "Referer": (
            f"https://new.land.naver.com/complexes/364?ms=37.55{loc1},127.1{loc2},17"
            "&a=APT:ABYG:JGC&e=RETAIL&ad=true"
        ),
        "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8",
    }


def fetch_articles(
    representative_id: str,
    bearer_token: str = NAVER_BEARER_TOKEN,
    max_retries: int = FETCH_MAX_RETRIES,
) -> list[dict] | None:
    """대표 매물번호로 같은 호수의 광고 목록(JSON)을 가져온다.

    Args:
        representative_id: 네이버 대표 매물번호
        bearer_token: new.land.naver.com API 토큰
        max_retries: 최대 시도 횟수

    Returns:
        광고 dict 리스트. 모든 시도가 실패하면 None.
    """
    params = {"representativeArticleNo": representative_id}

    for attempt in range(1, max_retries + 1):
        try:
            resp = requests.get(
                NAVER_ARTICLES_URL,
                params=params,
                headers=_build_headers(bearer_token),
                timeout=REQUEST_TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
            if isinstance(data, dict):
                if data.get("error"):
                    raise ValueError(f"API Error: {data['error']}")
                data = data.get("articleList", [])
            return data
        except (requests.RequestException, ValueError) as e:
            logger.warning(
                "매물 목록 조회 실패 (%d/%d): id=%s, error=%s",
                attempt, max_retries, representative_id, e,
            )
            if attempt < max_retries:
                time.sleep(random.uniform(FETCH_RETRY_INTERVAL_MIN, FETCH_RETRY_INTERVAL_MAX))

    logger.error("매물 목록 조회 %d회 시도 후 실패: id=%s", max_retries, representative_id)
    return None


def wait_interval() -> None:
    """요청 간격을 1~3 초 랜덤으로 대기한다."""
    interval = random.uniform(REQUEST_INTERVAL_MIN, REQUEST_INTERVAL_MAX)
    time.sleep(interval)


def parse_articles(raw_articles: list[dict]) -> list[Article]:
    """API 응답을 Article 리스트로 변환한다. 순서는 유지한다.

    articleNo 가 없는 항목은 건너뛴다.
    """
    articles: list[Article] = []
    for raw in raw_articles:
        article_no = raw.get("articleNo")
        if not article_no:
            logger.warning("articleNo 가 없는 항목을 건너뜁니다: %s", raw)
            continue

        articles.append(Article(
            id=str(article_no),
            confirmation_date=str(raw.get("articleConfirmYmd") or ""),
            price_text=raw.get("dealOrWarrantPrc") or "",
            floor_text=raw.get("floorInfo") or "",
            broker_name=raw.get("realtorName") or "",
            verification_code=raw.get("verificationTypeCode"),
        ))

    return articles


def collect_articles(representative_ids: list[str]) -> dict[str, list[Article] | None]:
    """여러 대표 매물의 광고 목록을 순서대로 수집한다.

    실패한 대표 매물은 None 으로 남긴다.
    """
    logger.info("네이버 광고 목록 수집 시작: %d 건", len(representative_ids))
    collected: dict[str, list[Article] | None] = {}

    for rep_id in representative_ids:
        raw = fetch_articles(rep_id)
        collected[rep_id] = parse_articles(raw) if raw is not None else None
        if raw is not None:
            logger.info("  %s → %d 건", rep_id, len(collected[rep_id]))

        # 네이버 차단 방지
        wait_interval()

    return collected
