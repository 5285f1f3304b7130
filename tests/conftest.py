"""테스트 공용 픽스처: 메모리 리포지토리와 가짜 어댑터."""

import copy
from datetime import datetime, timezone

import pytest

from relister.errors import ScraperFailure
from relister.models import (
    ITEM_COMPLETED,
    ITEM_FAILED,
    ITEM_PENDING,
    ITEM_REMOVED,
    ITEM_REMOVING,
    ITEM_UPLOADING,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_PENDING,
    STEP_PROCESSING,
    Batch,
    BatchItem,
    ItemResult,
    Listing,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryBatchRepository:
    """BatchRepository 와 같은 인터페이스의 메모리 구현."""

    def __init__(self):
        self.batches: dict[int, Batch] = {}
        self.items: dict[int, BatchItem] = {}
        self.listings: dict[int, Listing] = {}
        self.progress_updates: list[tuple[int, int, int]] = []
        self._next_batch_id = 1
        self._next_item_id = 1

    def add_listing(self, listing_id: int, name: str | None = None) -> Listing:
        listing = Listing(
            id=listing_id,
            article_no=f"26{listing_id:08d}",
            name=name or f"매물{listing_id}",
            deal_type="매매",
            price="170000",
        )
        self.listings[listing_id] = listing
        return listing

    def snapshot(self):
        return copy.deepcopy((self.batches, self.items))

    # --- batches ---

    def create_batch(self, name, status, total_count, scheduled_at=None):
        batch = Batch(
            id=self._next_batch_id,
            name=name,
            status=status,
            total_count=total_count,
            scheduled_at=scheduled_at,
            created_at=_now(),
        )
        self._next_batch_id += 1
        self.batches[batch.id] = batch
        return copy.copy(batch)

    def find_batch(self, batch_id):
        batch = self.batches.get(batch_id)
        return copy.copy(batch) if batch else None

    def find_all_batches(self):
        return [copy.copy(b) for b in sorted(self.batches.values(), key=lambda b: -b.id)]

    def _update_batch(self, batch_id, **values):
        batch = self.batches[batch_id]
        for key, value in values.items():
            setattr(batch, key, value)
        return copy.copy(batch)

    def update_status(self, batch_id, status):
        return self._update_batch(batch_id, status=status)

    def update_progress(self, batch_id, completed_count, failed_count):
        self.progress_updates.append((batch_id, completed_count, failed_count))
        return self._update_batch(
            batch_id, completed_count=completed_count, failed_count=failed_count
        )

    def mark_started(self, batch_id):
        return self._update_batch(batch_id, started_at=_now())

    def mark_completed(self, batch_id):
        return self._update_batch(batch_id, completed_at=_now())

    def delete_batch(self, batch_id):
        self.batches.pop(batch_id, None)
        for item_id in [i.id for i in self.items.values() if i.batch_id == batch_id]:
            del self.items[item_id]

    # --- batch_items ---

    def create_items(self, items):
        created = []
        for values in items:
            item = BatchItem(id=self._next_item_id, created_at=_now(), **values)
            self._next_item_id += 1
            self.items[item.id] = item
            created.append(copy.copy(item))
        return created

    def find_items(self, batch_id):
        return [
            copy.copy(i)
            for i in sorted(self.items.values(), key=lambda i: i.id)
            if i.batch_id == batch_id
        ]

    def _update_item(self, item_id, **values):
        item = self.items[item_id]
        for key, value in values.items():
            setattr(item, key, value)
        return copy.copy(item)

    def update_item_remove_status(self, item_id, remove_status, error_message=None):
        values = {"remove_status": remove_status}
        if remove_status == STEP_PROCESSING:
            values.update(status=ITEM_REMOVING, remove_started_at=_now(), error_message=None)
        elif remove_status == STEP_COMPLETED:
            values.update(status=ITEM_REMOVED, remove_completed_at=_now())
        elif remove_status == STEP_FAILED:
            values.update(status=ITEM_FAILED, error_message=error_message)
        return self._update_item(item_id, **values)

    def update_item_upload_status(self, item_id, upload_status, error_message=None):
        values = {"upload_status": upload_status}
        if upload_status == STEP_PROCESSING:
            values.update(status=ITEM_UPLOADING, upload_started_at=_now(), error_message=None)
        elif upload_status == STEP_COMPLETED:
            values.update(status=ITEM_COMPLETED, upload_completed_at=_now())
        elif upload_status == STEP_FAILED:
            values.update(status=ITEM_FAILED, error_message=error_message)
        return self._update_item(item_id, **values)

    def reset_item_for_retry(self, item):
        return self._update_item(
            item.id,
            status=ITEM_PENDING,
            upload_status=STEP_PENDING,
            error_message=None,
            upload_started_at=None,
            upload_completed_at=None,
            retry_count=item.retry_count + 1,
        )

    # --- listings ---

    def find_listings(self, listing_ids):
        return {i: self.listings[i] for i in listing_ids if i in self.listings}


class FakeAdapter:
    """호출을 기록하는 가짜 어댑터.

    remove_failures / upload_failures 에 있는 listing_id 는 실패 결과를 돌려주고,
    crash_on_remove / crash_on_upload 의 listing_id 에서는 세션 예외를 던진다.
    """

    def __init__(
        self,
        remove_failures=(),
        upload_failures=(),
        crash_on_remove=None,
        crash_on_upload=None,
        raise_scraper_failure=False,
        login_error=None,
    ):
        self.remove_failures = set(remove_failures)
        self.upload_failures = set(upload_failures)
        self.crash_on_remove = crash_on_remove
        self.crash_on_upload = crash_on_upload
        self.raise_scraper_failure = raise_scraper_failure
        self.login_error = login_error
        self.calls: list[tuple] = []
        self.logged_in = False
        self.closed = False

    def login(self):
        self.calls.append(("login",))
        if self.login_error:
            raise self.login_error
        self.logged_in = True

    def _fail(self, message):
        if self.raise_scraper_failure:
            raise ScraperFailure(message)
        return ItemResult.failure(message)

    def re_advertise(self, item):
        self.calls.append(("re_advertise", item.listing_id))
        if item.listing_id == self.crash_on_remove:
            raise RuntimeError("browser closed")
        if item.listing_id in self.remove_failures:
            return self._fail("광고 내리기 버튼을 찾을 수 없습니다")
        return ItemResult.ok()

    def re_upload(self, item, price_override=None, rent_override=None):
        self.calls.append(("re_upload", item.listing_id, price_override, rent_override))
        if item.listing_id == self.crash_on_upload:
            raise RuntimeError("browser closed")
        if item.listing_id in self.upload_failures:
            return self._fail("등록 확인 대화상자 오류")
        return ItemResult.ok()

    def close(self):
        self.calls.append(("close",))
        self.closed = True

    def called(self, name):
        return [c[1] for c in self.calls if c[0] == name]


@pytest.fixture
def repo():
    repository = InMemoryBatchRepository()
    for listing_id in range(1, 6):
        repository.add_listing(listing_id)
    return repository


@pytest.fixture
def no_sleep(monkeypatch):
    """아이템 사이 대기를 기록만 하고 건너뛴다."""
    sleeps: list[float] = []
    monkeypatch.setattr("relister.orchestrator.time.sleep", sleeps.append)
    return sleeps
