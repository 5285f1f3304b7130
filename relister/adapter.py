"""이실장 사이트 자동화 어댑터 인터페이스.

실제 브라우저 조작(로그인, 폼 클릭, 확인 대화상자 처리)은 어댑터 구현 쪽 책임이다.
오케스트레이터는 아래 네 가지 호출과 ItemResult 만 본다.

  - 매물 단위 실패: ItemResult(success=False) 를 돌려주거나 ScraperFailure 를 던진다
  - 그 밖의 예외: 세션 수준 장애로 보고 배치를 중단한다
"""

from __future__ import annotations

from typing import Protocol

from relister.models import BatchItem, ItemResult


class ScraperAdapter(Protocol):
    def login(self) -> None:
        """로그인하고 브라우저 세션을 연다. 실패 시 예외."""
        ...

    def re_advertise(self, item: BatchItem) -> ItemResult:
        """광고를 내리고 재광고 대기 상태로 만든다."""
        ...

    def re_upload(
        self,
        item: BatchItem,
        price_override: str | None = None,
        rent_override: str | None = None,
    ) -> ItemResult:
        """광고를 다시 등록한다. 가격 지정이 없으면 원래 가격을 쓴다."""
        ...

    def close(self) -> None:
        ...
