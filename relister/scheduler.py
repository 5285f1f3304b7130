"""예약 배치 스케줄러.

scheduled 상태이고 예약 시각이 지난 배치를 하나씩 실행한다.
배치끼리 동시에 실행하지 않으므로 어댑터 세션도 동시에 하나만 열린다.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from relister.config import SCHEDULER_CHECK_INTERVAL
from relister.db import BatchRepository
from relister.models import BATCH_SCHEDULED, Batch
from relister.orchestrator import BatchOrchestrator, parse_timestamp

logger = logging.getLogger(__name__)


class BatchScheduler:
    def __init__(
        self,
        repository: BatchRepository,
        orchestrator_factory: Callable[[], BatchOrchestrator],
        interval: float = SCHEDULER_CHECK_INTERVAL,
    ):
        self._repo = repository
        self._orchestrator_factory = orchestrator_factory
        self._interval = interval

    def due_batches(self, now: datetime | None = None) -> list[Batch]:
        """실행 시각이 된 예약 배치를 예약 시각 순으로 돌려준다."""
        now = now or datetime.now(timezone.utc)
        due = [
            b for b in self._repo.find_all_batches()
            if b.status == BATCH_SCHEDULED
            and b.scheduled_at
            and parse_timestamp(b.scheduled_at) <= now
        ]
        return sorted(due, key=lambda b: parse_timestamp(b.scheduled_at))

    def run_due(self, now: datetime | None = None) -> list[int]:
        """예약 시각이 지난 배치를 순서대로 실행한다.

        한 배치가 실패해도 나머지는 계속 실행한다.

        Returns:
            실행을 시도한 배치 ID 목록
        """
        executed: list[int] = []
        for batch in self.due_batches(now):
            logger.info("예약 배치 자동 실행: %s (id=%d, 예약=%s)",
                        batch.name, batch.id, batch.scheduled_at)
            executed.append(batch.id)
            try:
                self._orchestrator_factory().execute(batch.id)
            except Exception:
                logger.exception("예약 배치 실행 실패: id=%d", batch.id)
        return executed

    def run_forever(self) -> None:
        """interval 초마다 예약 배치를 확인한다."""
        logger.info("배치 스케줄러 시작 (간격 %s 초)", self._interval)
        try:
            while True:
                try:
                    self.run_due()
                except Exception:
                    logger.exception("예약 배치 확인 중 오류")
                time.sleep(self._interval)
        finally:
            logger.info("배치 스케줄러 중지")
