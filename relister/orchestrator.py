"""배치 재광고 오케스트레이터.

처리 흐름:
  1. 배치 상태를 removing 으로 바꾸고 어댑터 세션을 하나 연다 (로그인 1회)
  2. [1단계] 아이템을 생성 순서대로 하나씩 재광고 (re_advertise)
  3. [2단계] 1단계에 성공한 아이템만 다시 등록 (re_upload)
  4. 배치를 completed 로 바꾸고 세션을 닫는다

아이템 하나를 처리할 때마다 결과와 집계를 DB 에 먼저 기록한 뒤 다음으로 넘어간다.
도중에 프로세스가 죽어도 completed_count + failed_count 는 처리한 아이템 수와 같다.

매물 단위 실패는 기록만 하고 계속 진행한다. 세션 수준 예외는 배치를 failed 로 만들고
FatalSessionError 로 다시 던진다.
"""

from __future__ import annotations

import logging
import random
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator

from relister.adapter import ScraperAdapter
from relister.config import BATCH_ITEM_INTERVAL_MAX, BATCH_ITEM_INTERVAL_MIN
from relister.db import BatchRepository
from relister.errors import (
    BatchNotFoundError,
    FatalSessionError,
    InvalidStateError,
    NoRetryableItemsError,
    PersistenceError,
    ScraperFailure,
    ValidationError,
)
from relister.models import (
    BATCH_COMPLETED,
    BATCH_FAILED,
    BATCH_PENDING,
    BATCH_REMOVED,
    BATCH_REMOVING,
    BATCH_SCHEDULED,
    BATCH_UPLOADING,
    ITEM_COMPLETED,
    ITEM_FAILED,
    ITEM_REMOVED,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_PROCESSING,
    Batch,
    BatchItem,
    BatchRunResult,
    ItemResult,
)

logger = logging.getLogger(__name__)

# (현재 순번, 전체 수, 아이템, 결과)
ProgressCallback = Callable[[int, int, BatchItem, ItemResult], None]

VALID_TRANSITIONS: dict[str, set[str]] = {
    BATCH_PENDING: {BATCH_REMOVING, BATCH_FAILED},
    BATCH_SCHEDULED: {BATCH_REMOVING, BATCH_FAILED},
    BATCH_REMOVING: {BATCH_REMOVED, BATCH_FAILED},
    BATCH_REMOVED: {BATCH_UPLOADING, BATCH_FAILED},
    BATCH_UPLOADING: {BATCH_COMPLETED, BATCH_FAILED},
    # 재시도는 실패 아이템만 다시 올린다
    BATCH_COMPLETED: {BATCH_UPLOADING},
    BATCH_FAILED: {BATCH_UPLOADING},
}

EXECUTABLE_STATUSES = (BATCH_PENDING, BATCH_SCHEDULED)
RETRYABLE_STATUSES = (BATCH_COMPLETED, BATCH_FAILED)

# removed: 광고는 내렸지만 세션이 죽어 재등록하지 못한 아이템
RETRY_TARGET_STATUSES = (ITEM_FAILED, ITEM_REMOVED)
FINISHED_ITEM_STATUSES = (ITEM_COMPLETED, ITEM_FAILED)


def wait_between_items() -> None:
    """아이템 사이에 2~3 초 랜덤으로 대기한다."""
    time.sleep(random.uniform(BATCH_ITEM_INTERVAL_MIN, BATCH_ITEM_INTERVAL_MAX))


def parse_timestamp(value: str) -> datetime:
    """ISO 8601 문자열을 datetime 으로 바꾼다.

    "Z" 접미사와 시간대가 없는 값은 UTC 로 본다.
    """
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class BatchOrchestrator:
    """배치 하나의 실행을 책임진다.

    어댑터 세션은 인스턴스가 소유하며 동시에 하나만 열 수 있다.
    """

    def __init__(
        self,
        repository: BatchRepository,
        adapter_factory: Callable[[], ScraperAdapter] | None = None,
    ):
        self._repo = repository
        self._adapter_factory = adapter_factory
        self._adapter: ScraperAdapter | None = None

    # --- 생성 ---

    def create(
        self,
        name: str,
        listing_ids: list[int],
        price_overrides: dict[int, dict] | None = None,
        scheduled_at: datetime | str | None = None,
    ) -> Batch:
        """배치와 아이템을 만든다.

        Args:
            name: 배치 이름
            listing_ids: 재광고할 매물 ID. 중복은 처음 것만 남긴다.
            price_overrides: {매물 ID: {"price": str, "rent": str}}
            scheduled_at: 예약 실행 시각. 있으면 scheduled 상태로 만든다.

        Raises:
            ValidationError: 이름이나 매물 목록이 비었을 때, 예약 시각 형식이 틀렸을 때
        """
        if not name or not name.strip():
            raise ValidationError("배치 이름이 비어 있습니다")

        unique_ids = list(dict.fromkeys(listing_ids))
        if not unique_ids:
            raise ValidationError("선택된 매물이 없습니다")

        if isinstance(scheduled_at, datetime):
            scheduled_at = scheduled_at.isoformat()
        elif scheduled_at:
            try:
                scheduled_at = parse_timestamp(scheduled_at).isoformat()
            except ValueError as e:
                raise ValidationError(f"예약 시각 형식이 올바르지 않습니다: {scheduled_at}") from e
        else:
            scheduled_at = None

        status = BATCH_SCHEDULED if scheduled_at else BATCH_PENDING
        overrides = price_overrides or {}

        logger.info("배치 생성: name=%s, 매물=%d 건, status=%s", name, len(unique_ids), status)
        batch = self._repo.create_batch(name, status, len(unique_ids), scheduled_at)

        self._repo.create_items([
            {
                "batch_id": batch.id,
                "listing_id": listing_id,
                "modified_price": overrides.get(listing_id, {}).get("price"),
                "modified_rent": overrides.get(listing_id, {}).get("rent"),
            }
            for listing_id in unique_ids
        ])
        logger.info("배치 생성 완료: id=%d", batch.id)
        return batch

    # --- 실행 ---

    def execute(self, batch_id: int, progress: ProgressCallback | None = None) -> BatchRunResult:
        """pending / scheduled 배치를 1단계, 2단계 순서로 실행한다.

        Raises:
            BatchNotFoundError: 배치가 없을 때
            InvalidStateError: 실행할 수 없는 상태일 때
            ValidationError: 아이템이 없거나 어댑터가 설정되지 않았을 때
            FatalSessionError: 세션 수준 장애 (배치는 failed 로 기록된다)
            PersistenceError: DB 호출 실패
        """
        batch = self._get_batch(batch_id)
        if batch.status not in EXECUTABLE_STATUSES:
            raise InvalidStateError(
                f"대기 중이거나 예약된 배치만 실행할 수 있습니다: status={batch.status}"
            )
        items = self._repo.find_items(batch_id)
        if not items:
            raise ValidationError(f"배치 아이템이 없습니다: id={batch_id}")
        self._ensure_idle()

        self._attach_listings(items)

        logger.info("배치 실행 시작: id=%d, name=%s, 아이템=%d 건", batch_id, batch.name, len(items))
        batch = self._transition(batch, BATCH_REMOVING)
        batch = self._repo.mark_started(batch_id)

        with self._session(batch_id) as adapter:
            logger.info("[1단계] 재광고 시작: %d 건", len(items))
            removed = self._run_phase(
                batch_id, items, lambda item: self._remove_item(adapter, item),
                ITEM_REMOVED, progress,
            )
            logger.info("[1단계] 재광고 완료: 성공 %d 건, 실패 %d 건",
                        len(removed), len(items) - len(removed))

            batch = self._transition(batch, BATCH_REMOVED)
            self._transition(batch, BATCH_UPLOADING)
            self._refresh_progress(batch_id, ITEM_COMPLETED)

            logger.info("[2단계] 재등록 시작: %d 건", len(removed))
            uploaded = self._run_phase(
                batch_id, removed, lambda item: self._upload_item(adapter, item),
                ITEM_COMPLETED, progress,
            )
            logger.info("[2단계] 재등록 완료: 성공 %d 건, 실패 %d 건",
                        len(uploaded), len(removed) - len(uploaded))

        self._finish(batch_id)
        result = BatchRunResult(batch_id=batch_id, succeeded=len(uploaded),
                                failed=len(items) - len(uploaded))
        logger.info("배치 실행 완료: id=%d, 성공 %d 건, 실패 %d 건",
                    batch_id, result.succeeded, result.failed)
        return result

    def retry(self, batch_id: int, progress: ProgressCallback | None = None) -> BatchRunResult:
        """실패한 아이템과 재등록하지 못한 아이템의 2단계(재등록)를 다시 실행한다.

        아이템은 재등록 직전에 하나씩 초기화한다. 세션이 먼저 죽으면
        남은 아이템은 failed 그대로 남아 다음 재시도 대상이 된다.

        Raises:
            BatchNotFoundError: 배치가 없을 때
            InvalidStateError: completed / failed 가 아닌 배치일 때
            NoRetryableItemsError: 재시도할 아이템이 없을 때
            FatalSessionError: 세션 수준 장애 (배치는 failed 로 기록된다)
        """
        batch = self._get_batch(batch_id)
        if batch.status not in RETRYABLE_STATUSES:
            raise InvalidStateError(
                f"완료되었거나 실패한 배치만 재시도할 수 있습니다: status={batch.status}"
            )
        items = [i for i in self._repo.find_items(batch_id) if i.status in RETRY_TARGET_STATUSES]
        if not items:
            raise NoRetryableItemsError(f"재시도할 실패 항목이 없습니다: id={batch_id}")
        self._ensure_idle()
        self._attach_listings(items)

        logger.info("배치 재시도 시작: id=%d, name=%s, 대상=%d 건",
                    batch_id, batch.name, len(items))
        self._transition(batch, BATCH_UPLOADING)

        with self._session(batch_id) as adapter:
            uploaded = self._run_phase(
                batch_id, items,
                lambda item: self._upload_item(adapter, self._reset_for_retry(item)),
                ITEM_COMPLETED, progress,
            )

        self._finish(batch_id)
        result = BatchRunResult(batch_id=batch_id, succeeded=len(uploaded),
                                failed=len(items) - len(uploaded))
        logger.info("배치 재시도 완료: id=%d, 성공 %d 건, 실패 %d 건",
                    batch_id, result.succeeded, result.failed)
        return result

    # --- 단계 처리 ---

    def _run_phase(
        self,
        batch_id: int,
        items: list[BatchItem],
        step: Callable[[BatchItem], tuple[BatchItem, ItemResult]],
        completed_status: str,
        progress: ProgressCallback | None,
    ) -> list[BatchItem]:
        """아이템을 순서대로 처리하고 성공한 아이템을 돌려준다."""
        succeeded: list[BatchItem] = []
        total = len(items)

        for index, item in enumerate(items, start=1):
            updated, result = step(item)
            self._refresh_progress(batch_id, completed_status)

            name = item.listing.name if item.listing else f"listing={item.listing_id}"
            if result.success:
                succeeded.append(updated)
                logger.info("[%d/%d] %s: 성공", index, total, name)
            else:
                logger.warning("[%d/%d] %s: 실패 (%s)", index, total, name, result.error)

            self._notify(progress, index, total, updated, result)

            if index < total:
                wait_between_items()

        return succeeded

    def _remove_item(self, adapter: ScraperAdapter, item: BatchItem) -> tuple[BatchItem, ItemResult]:
        self._repo.update_item_remove_status(item.id, STEP_PROCESSING)
        if item.listing is None:
            result = ItemResult.failure("매물 정보를 찾을 수 없습니다")
        else:
            result = self._call_adapter(adapter.re_advertise, item)

        if result.success:
            updated = self._repo.update_item_remove_status(item.id, STEP_COMPLETED)
        else:
            updated = self._repo.update_item_remove_status(item.id, STEP_FAILED, result.error)
        updated.listing = item.listing
        return updated, result

    def _upload_item(self, adapter: ScraperAdapter, item: BatchItem) -> tuple[BatchItem, ItemResult]:
        self._repo.update_item_upload_status(item.id, STEP_PROCESSING)
        if item.listing is None:
            result = ItemResult.failure("매물 정보를 찾을 수 없습니다")
        else:
            result = self._call_adapter(
                adapter.re_upload, item, item.modified_price, item.modified_rent
            )

        if result.success:
            updated = self._repo.update_item_upload_status(item.id, STEP_COMPLETED)
        else:
            updated = self._repo.update_item_upload_status(item.id, STEP_FAILED, result.error)
        updated.listing = item.listing
        return updated, result

    def _reset_for_retry(self, item: BatchItem) -> BatchItem:
        updated = self._repo.reset_item_for_retry(item)
        updated.listing = item.listing
        return updated

    @staticmethod
    def _call_adapter(call: Callable[..., ItemResult], *args) -> ItemResult:
        # ScraperFailure 만 매물 단위 실패로 흡수한다
        try:
            result = call(*args)
        except ScraperFailure as e:
            return ItemResult.failure(str(e) or type(e).__name__)
        if not result.success and not result.error:
            result = ItemResult.failure("알 수 없는 오류")
        return result

    def _refresh_progress(self, batch_id: int, completed_status: str) -> Batch:
        """전체 아이템을 다시 읽어 집계를 기록한다."""
        items = self._repo.find_items(batch_id)
        completed = sum(1 for i in items if i.status == completed_status)
        failed = sum(1 for i in items if i.status == ITEM_FAILED)
        return self._repo.update_progress(batch_id, completed, failed)

    @staticmethod
    def _notify(
        progress: ProgressCallback | None,
        index: int,
        total: int,
        item: BatchItem,
        result: ItemResult,
    ) -> None:
        if progress is None:
            return
        try:
            progress(index, total, item, result)
        except Exception:
            logger.exception("진행 상황 콜백 오류 (무시하고 계속): item=%d", item.id)

    # --- 세션 ---

    def _ensure_idle(self) -> None:
        if self._adapter_factory is None:
            raise ValidationError("어댑터가 설정되지 않았습니다")
        if self._adapter is not None:
            raise InvalidStateError("이미 열린 어댑터 세션이 있습니다")

    @contextmanager
    def _session(self, batch_id: int) -> Iterator[ScraperAdapter]:
        """어댑터 세션을 열고, 세션 수준 예외는 배치 실패로 처리한다."""
        self._ensure_idle()
        try:
            self._adapter = self._adapter_factory()
            logger.info("이실장 로그인 중...")
            self._adapter.login()
            logger.info("로그인 성공")
            yield self._adapter
        except PersistenceError:
            self._close_session()
            raise
        except Exception as e:
            logger.exception("배치 실행 중 세션 오류: id=%d", batch_id)
            self._close_session()
            self._fail(batch_id)
            if isinstance(e, FatalSessionError):
                raise
            raise FatalSessionError(f"세션 오류로 배치가 중단되었습니다: {e}") from e
        finally:
            self._close_session()

    def _close_session(self) -> None:
        adapter, self._adapter = self._adapter, None
        if adapter is None:
            return
        try:
            adapter.close()
        except Exception:
            logger.exception("어댑터 세션 종료 실패")

    # --- 배치 상태 ---

    def _get_batch(self, batch_id: int) -> Batch:
        batch = self._repo.find_batch(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def _transition(self, batch: Batch, status: str) -> Batch:
        if status not in VALID_TRANSITIONS.get(batch.status, set()):
            raise InvalidStateError(f"허용되지 않는 상태 전이: {batch.status} -> {status}")
        updated = self._repo.update_status(batch.id, status)
        logger.info("배치 상태: id=%d, %s -> %s", batch.id, batch.status, status)
        return updated

    def _attach_listings(self, items: list[BatchItem]) -> None:
        listings = self._repo.find_listings([item.listing_id for item in items])
        for item in items:
            item.listing = listings.get(item.listing_id)
            if item.listing is None:
                logger.warning("매물 정보 없음: item=%d, listing=%d", item.id, item.listing_id)

    def _finish(self, batch_id: int) -> None:
        """배치를 닫는다. 끝나지 않은 아이템이 남아 있으면 completed 가 아니라 failed."""
        batch = self._get_batch(batch_id)
        unfinished = [
            i for i in self._repo.find_items(batch_id) if i.status not in FINISHED_ITEM_STATUSES
        ]
        if unfinished:
            logger.warning(
                "끝나지 않은 아이템이 남아 배치를 failed 로 기록: id=%d, 아이템=%s",
                batch_id, [(i.id, i.status) for i in unfinished],
            )
            self._transition(batch, BATCH_FAILED)
        else:
            self._transition(batch, BATCH_COMPLETED)
        self._repo.mark_completed(batch_id)

    def _fail(self, batch_id: int) -> None:
        self._repo.update_status(batch_id, BATCH_FAILED)
        self._repo.mark_completed(batch_id)
        logger.error("배치 실패 처리: id=%d", batch_id)
