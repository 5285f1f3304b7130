"""db 모듈의 목 테스트."""

from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from relister.db import BatchRepository, CompetingAdsRepository, ListingRepository
from relister.errors import PersistenceError
from relister.models import RankInfo, RankingAnalysis


def _mock_client(data=None):
    """client.schema().table() 이후의 쿼리 체인을 목으로 만든다."""
    client = MagicMock()
    chain = MagicMock()
    client.schema.return_value.table.return_value = chain
    for method in ("select", "insert", "update", "upsert", "delete", "eq", "in_", "order"):
        getattr(chain, method).return_value = chain
    chain.execute.return_value = MagicMock(data=data if data is not None else [])
    return client, chain


BATCH_ROW = {
    "id": 1,
    "name": "10월 재광고",
    "status": "pending",
    "total_count": 2,
    "completed_count": 0,
    "failed_count": 0,
    "scheduled_at": None,
    "created_at": "2026-10-17T00:00:00+00:00",
    "started_at": None,
    "completed_at": None,
}

ITEM_ROW = {
    "id": 10,
    "batch_id": 1,
    "listing_id": 3,
    "status": "removed",
    "remove_status": "completed",
    "upload_status": "pending",
    "modified_price": "165000",
    "modified_rent": None,
    "error_message": None,
    "retry_count": 0,
}


class TestBatchRepository:
    """BatchRepository 테스트."""

    def test_create_batch(self):
        client, chain = _mock_client([BATCH_ROW])
        repo = BatchRepository(client)

        batch = repo.create_batch("10월 재광고", "pending", 2)

        client.schema.assert_called_with("relister")
        client.schema.return_value.table.assert_called_with("batches")
        row = chain.insert.call_args.args[0]
        assert row["name"] == "10월 재광고"
        assert row["status"] == "pending"
        assert row["completed_count"] == 0
        assert batch.id == 1
        assert batch.total_count == 2

    def test_find_batch_not_found(self):
        client, chain = _mock_client([])
        assert BatchRepository(client).find_batch(404) is None
        chain.eq.assert_called_with("id", 404)

    def test_find_all_latest_first(self):
        client, chain = _mock_client([BATCH_ROW])
        batches = BatchRepository(client).find_all_batches()

        chain.order.assert_called_with("created_at", desc=True)
        assert [b.id for b in batches] == [1]

    def test_create_items(self):
        client, chain = _mock_client([ITEM_ROW])
        items = BatchRepository(client).create_items(
            [{"batch_id": 1, "listing_id": 3, "modified_price": "165000", "modified_rent": None}]
        )

        rows = chain.insert.call_args.args[0]
        assert rows[0]["status"] == "pending"
        assert rows[0]["remove_status"] == "pending"
        assert rows[0]["retry_count"] == 0
        assert items[0].modified_price == "165000"

    def test_create_items_skip_empty(self):
        client, _ = _mock_client()
        assert BatchRepository(client).create_items([]) == []
        client.schema.assert_not_called()

    def test_find_items_in_creation_order(self):
        client, chain = _mock_client([ITEM_ROW])
        items = BatchRepository(client).find_items(1)

        chain.eq.assert_called_with("batch_id", 1)
        chain.order.assert_called_with("id")
        assert items[0].listing_id == 3

    def test_remove_completed_sets_item_status(self):
        client, chain = _mock_client([ITEM_ROW])
        BatchRepository(client).update_item_remove_status(10, "completed")

        values = chain.update.call_args.args[0]
        assert values["remove_status"] == "completed"
        assert values["status"] == "removed"
        assert "remove_completed_at" in values

    def test_upload_failed_records_error(self):
        client, chain = _mock_client([ITEM_ROW])
        BatchRepository(client).update_item_upload_status(10, "failed", "등록 실패")

        values = chain.update.call_args.args[0]
        assert values == {"upload_status": "failed", "status": "failed", "error_message": "등록 실패"}

    def test_reset_item_for_retry(self):
        client, chain = _mock_client([ITEM_ROW])
        repo = BatchRepository(client)
        item = repo.find_items(1)[0]
        item.retry_count = 2

        repo.reset_item_for_retry(item)

        values = chain.update.call_args.args[0]
        assert values["status"] == "pending"
        assert values["upload_status"] == "pending"
        assert values["error_message"] is None
        assert values["retry_count"] == 3

    def test_update_without_row_raises(self):
        client, _ = _mock_client([])
        with pytest.raises(PersistenceError):
            BatchRepository(client).update_status(1, "removing")

    def test_api_error_wrapped(self):
        client, chain = _mock_client()
        chain.execute.side_effect = APIError({"message": "connection refused", "code": "500"})

        with pytest.raises(PersistenceError) as exc_info:
            BatchRepository(client).find_batch(1)
        assert isinstance(exc_info.value.__cause__, APIError)

    def test_find_listings(self):
        client, chain = _mock_client([
            {"id": 3, "article_no": "2512345678", "name": "고덕그라시움 101동", "deal_type": "매매",
             "price": "170000"},
        ])
        listings = BatchRepository(client).find_listings([3, 4])

        chain.in_.assert_called_with("id", [3, 4])
        assert listings[3].article_no == "2512345678"
        assert 4 not in listings


class TestListingRepository:
    """ListingRepository 테스트."""

    def test_update_listing_rank(self):
        client, chain = _mock_client([{}])
        info = RankInfo(ranking=2, shared_rank=1, is_shared=True, shared_count=2, total=5,
                        confirmation_date="20251015")

        ListingRepository(client).update_listing_rank(7, info)

        client.schema.return_value.table.assert_called_with("listings")
        values = chain.update.call_args.args[0]
        assert values["ranking"] == 2
        assert values["is_shared"] is True
        assert values["total"] == 5
        chain.eq.assert_called_with("id", 7)


class TestCompetingAdsRepository:
    """CompetingAdsRepository 테스트."""

    def test_upsert(self):
        client, chain = _mock_client([{"id": 1, "listing_id": 7}])
        analysis = RankingAnalysis(my_article=None, my_ranking=3, my_floor_exposed=False,
                                   total_count=5, has_floor_exposure_advantage=True)

        CompetingAdsRepository(client).upsert(7, analysis)

        client.schema.return_value.table.assert_called_with("competing_ads_analysis")
        row, = chain.upsert.call_args.args
        assert chain.upsert.call_args.kwargs == {"on_conflict": "listing_id"}
        assert row["listing_id"] == 7
        assert row["my_ranking"] == 3
        assert row["has_floor_exposure_advantage"] is True
        assert row["competing_ads_data"] == []
