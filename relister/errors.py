"""예외 정의.

처리 방침:
  - ValidationError / InvalidStateError: 상태 변경 전에 거부
  - ScraperFailure: 매물 단위 실패. 기록만 하고 다음 매물로 진행
  - FatalSessionError: 세션 단위 실패. 배치를 failed 로 만들고 호출자에게 전달
  - PersistenceError: 재시도하지 않고 즉시 전달
"""


class RelisterError(Exception):
    """relister 예외의 기반 클래스."""


class ValidationError(RelisterError):
    """입력값이 올바르지 않음."""


class BatchNotFoundError(ValidationError):
    """배치를 찾을 수 없음."""

    def __init__(self, batch_id: int):
        super().__init__(f"배치를 찾을 수 없습니다: id={batch_id}")
        self.batch_id = batch_id


class InvalidStateError(RelisterError):
    """현재 배치 상태에서 허용되지 않는 작업."""


class NoRetryableItemsError(RelisterError):
    """재시도할 실패 항목이 없음."""


class ScraperFailure(RelisterError):
    """매물 하나에 대한 사이트 작업 실패 (복구 가능)."""


class FatalSessionError(RelisterError):
    """로그인・브라우저 세션 수준의 실패 (복구 불가)."""


class PersistenceError(RelisterError):
    """DB 호출 실패."""
