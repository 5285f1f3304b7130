"""네이버 가격 문자열 파싱 모듈.

모든 값은 만원 단위 정수로 돌려준다.
  "17억"        -> 170000
  "16억 5,000"  -> 165000
  "17억원"      -> 170000
  "5,000만원"   -> 5000
해석할 수 없는 문자열은 0 (알 수 없음) 으로 취급한다.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

EOK = 10000  # 1억 = 10000만원

_EOK_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)억(?:(\d+)(?:만)?)?(?:원)?$")
_MAN_PATTERN = re.compile(r"^(\d+)(?:만)?(?:원)?$")


def normalize_price(text: str | None) -> int:
    """가격 문자열을 만원 단위 정수로 변환한다.

    Args:
        text: "X억", "X억Y", "Y만원" 형식의 가격 문자열

    Returns:
        만원 단위 가격. 해석 실패 시 0.
    """
    if not text:
        logger.warning("가격 문자열이 비어 있습니다")
        return 0

    cleaned = re.sub(r"[,\s]", "", text)

    m = _EOK_PATTERN.match(cleaned)
    if m:
        eok = round(float(m.group(1)) * EOK)
        man = int(m.group(2)) if m.group(2) else 0
        return eok + man

    m = _MAN_PATTERN.match(cleaned)
    if m:
        return int(m.group(1))

    logger.warning("가격 파싱 실패: %r", text)
    return 0
