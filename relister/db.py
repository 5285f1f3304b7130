"""Supabase 데이터베이스 조작 모듈.

모든 테이블은 relister 스키마에 있다.
리포지토리는 클라이언트를 주입받는다. 생략하면 config 값으로 만든다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from postgrest.exceptions import APIError
from supabase import Client, create_client

from relister.config import DB_SCHEMA, SUPABASE_SECRET_KEY, SUPABASE_URL
from relister.errors import PersistenceError
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
    Listing,
    RankInfo,
    RankingAnalysis,
)

logger = logging.getLogger(__name__)


def create_supabase_client() -> Client:
    """config 의 접속 정보로 Supabase 클라이언트를 만든다."""
    if not SUPABASE_URL or not SUPABASE_SECRET_KEY:
        raise PersistenceError("SUPABASE_URL / SUPABASE_SECRET_KEY 가 설정되지 않았습니다")
    return create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _SupabaseRepository:
    """relister 스키마 테이블 접근의 공통 부분."""

    def __init__(self, client: Client | None = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = create_supabase_client()
        return self._client

    def _table(self, name: str):
        """relister 스키마의 테이블을 참조한다."""
        return self.client.schema(DB_SCHEMA).table(name)

    @staticmethod
    def _execute(query, action: str) -> list[dict]:
        try:
            return query.execute().data or []
        except APIError as e:
            logger.error("DB 호출 실패: %s, error=%s", action, e)
            raise PersistenceError(f"{action} 실패: {e}") from e

    @staticmethod
    def _first(rows: list[dict], action: str) -> dict:
        if not rows:
            raise PersistenceError(f"{action} 결과 행이 없습니다")
        return rows[0]


class BatchRepository(_SupabaseRepository):
    """batches / batch_items / listings 테이블 조작."""

    # --- batches ---

    def create_batch(
        self, name: str, status: str, total_count: int, scheduled_at: str | None = None
    ) -> Batch:
        row = {
            "name": name,
            "status": status,
            "total_count": total_count,
            "completed_count": 0,
            "failed_count": 0,
            "scheduled_at": scheduled_at,
        }
        rows = self._execute(self._table("batches").insert(row), "배치 생성")
        return Batch.from_row(self._first(rows, "배치 생성"))

    def find_batch(self, batch_id: int) -> Batch | None:
        rows = self._execute(
            self._table("batches").select("*").eq("id", batch_id), "배치 조회"
        )
        return Batch.from_row(rows[0]) if rows else None

    def find_all_batches(self) -> list[Batch]:
        """모든 배치를 최신순으로 조회한다."""
        rows = self._execute(
            self._table("batches").select("*").order("created_at", desc=True), "배치 목록 조회"
        )
        return [Batch.from_row(r) for r in rows]

    def _update_batch(self, batch_id: int, values: dict, action: str) -> Batch:
        rows = self._execute(
            self._table("batches").update(values).eq("id", batch_id), action
        )
        return Batch.from_row(self._first(rows, action))

    def update_status(self, batch_id: int, status: str) -> Batch:
        return self._update_batch(batch_id, {"status": status}, "배치 상태 갱신")

    def update_progress(self, batch_id: int, completed_count: int, failed_count: int) -> Batch:
        return self._update_batch(
            batch_id,
            {"completed_count": completed_count, "failed_count": failed_count},
            "배치 진행 상황 갱신",
        )

    def mark_started(self, batch_id: int) -> Batch:
        return self._update_batch(batch_id, {"started_at": _now()}, "배치 시작 시간 기록")

    def mark_completed(self, batch_id: int) -> Batch:
        return self._update_batch(batch_id, {"completed_at": _now()}, "배치 완료 시간 기록")

    def delete_batch(self, batch_id: int) -> None:
        """배치를 삭제한다. batch_items 는 FK cascade 로 함께 지워진다."""
        self._execute(self._table("batches").delete().eq("id", batch_id), "배치 삭제")
        logger.info("배치 삭제: id=%d", batch_id)

    # --- batch_items ---

    def create_items(self, items: list[dict]) -> list[BatchItem]:
        """배치 아이템을 일괄 생성한다.

        Args:
            items: [{"batch_id", "listing_id", "modified_price", "modified_rent"}, ...]
        """
        if not items:
            return []
        rows = [
            {
                **item,
                "status": ITEM_PENDING,
                "remove_status": STEP_PENDING,
                "upload_status": STEP_PENDING,
                "retry_count": 0,
            }
            for item in items
        ]
        created = self._execute(self._table("batch_items").insert(rows), "배치 아이템 생성")
        logger.info("batch_items 에 %d 건 삽입", len(created))
        return [BatchItem.from_row(r) for r in created]

    def find_items(self, batch_id: int) -> list[BatchItem]:
        """배치의 아이템을 생성 순서대로 조회한다."""
        rows = self._execute(
            self._table("batch_items").select("*").eq("batch_id", batch_id).order("id"),
            "배치 아이템 조회",
        )
        return [BatchItem.from_row(r) for r in rows]

    def _update_item(self, item_id: int, values: dict, action: str) -> BatchItem:
        rows = self._execute(
            self._table("batch_items").update(values).eq("id", item_id), action
        )
        return BatchItem.from_row(self._first(rows, action))

    def update_item_remove_status(
        self, item_id: int, remove_status: str, error_message: str | None = None
    ) -> BatchItem:
        """광고 내리기/재광고 단계 상태를 갱신하고 아이템 상태도 맞춘다."""
        values: dict = {"remove_status": remove_status}
        if remove_status == STEP_PROCESSING:
            values.update(status=ITEM_REMOVING, remove_started_at=_now(), error_message=None)
        elif remove_status == STEP_COMPLETED:
            values.update(status=ITEM_REMOVED, remove_completed_at=_now())
        elif remove_status == STEP_FAILED:
            values.update(status=ITEM_FAILED, error_message=error_message)
        return self._update_item(item_id, values, "재광고 상태 갱신")

    def update_item_upload_status(
        self, item_id: int, upload_status: str, error_message: str | None = None
    ) -> BatchItem:
        """재등록 단계 상태를 갱신하고 아이템 상태도 맞춘다."""
        values: dict = {"upload_status": upload_status}
        if upload_status == STEP_PROCESSING:
            values.update(status=ITEM_UPLOADING, upload_started_at=_now(), error_message=None)
        elif upload_status == STEP_COMPLETED:
            values.update(status=ITEM_COMPLETED, upload_completed_at=_now())
        elif upload_status == STEP_FAILED:
            values.update(status=ITEM_FAILED, error_message=error_message)
        return self._update_item(item_id, values, "재등록 상태 갱신")

    def reset_item_for_retry(self, item: BatchItem) -> BatchItem:
        """실패한 아이템을 재시도용으로 초기화한다."""
        values = {
            "status": ITEM_PENDING,
            "upload_status": STEP_PENDING,
            "error_message": None,
            "upload_started_at": None,
            "upload_completed_at": None,
            "retry_count": item.retry_count + 1,
        }
        return self._update_item(item.id, values, "아이템 초기화")

    # --- listings ---

    def find_listings(self, listing_ids: list[int]) -> dict[int, Listing]:
        """매물 스냅샷을 id 기준 dict 로 조회한다."""
        if not listing_ids:
            return {}
        rows = self._execute(
            self._table("listings").select("*").in_("id", listing_ids), "매물 조회"
        )
        return {r["id"]: Listing.from_row(r) for r in rows}


class ListingRepository(_SupabaseRepository):
    """listings 테이블 조작 (순위 수집용)."""

    def find_active_listings(self) -> list[Listing]:
        """광고 중인 매물을 모두 조회한다."""
        rows = self._execute(
            self._table("listings").select("*").eq("ad_status", "광고중").order("id"),
            "광고중 매물 조회",
        )
        return [Listing.from_row(r) for r in rows]

    def update_listing_rank(self, listing_id: int, info: RankInfo) -> None:
        """매물에 네이버 순위 정보를 기록한다."""
        values = {
            "ranking": info.ranking,
            "shared_rank": info.shared_rank,
            "is_shared": info.is_shared,
            "shared_count": info.shared_count,
            "total": info.total,
            "updated_at": _now(),
        }
        self._execute(
            self._table("listings").update(values).eq("id", listing_id), "매물 순위 갱신"
        )


class CompetingAdsRepository(_SupabaseRepository):
    """competing_ads_analysis 테이블 조작. listing_id 당 1행."""

    def upsert(self, listing_id: int, analysis: RankingAnalysis) -> dict:
        row = {"listing_id": listing_id, **analysis.to_row(), "updated_at": _now()}
        rows = self._execute(
            self._table("competing_ads_analysis").upsert(row, on_conflict="listing_id"),
            "경쟁 광고 분석 저장",
        )
        return self._first(rows, "경쟁 광고 분석 저장")

    def find_by_listing_id(self, listing_id: int) -> dict | None:
        rows = self._execute(
            self._table("competing_ads_analysis").select("*").eq("listing_id", listing_id),
            "경쟁 광고 분석 조회",
        )
        return rows[0] if rows else None

    def delete_by_listing_id(self, listing_id: int) -> None:
        self._execute(
            self._table("competing_ads_analysis").delete().eq("listing_id", listing_id),
            "경쟁 광고 분석 삭제",
        )
