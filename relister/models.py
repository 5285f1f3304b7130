"""데이터 모델 정의."""

from dataclasses import asdict, dataclass, field

# --- 배치 상태 ---
BATCH_PENDING = "pending"
BATCH_SCHEDULED = "scheduled"
BATCH_REMOVING = "removing"
BATCH_REMOVED = "removed"
BATCH_UPLOADING = "uploading"
BATCH_COMPLETED = "completed"
BATCH_FAILED = "failed"

# --- 배치 아이템 상태 ---
ITEM_PENDING = "pending"
ITEM_REMOVING = "removing"
ITEM_REMOVED = "removed"
ITEM_UPLOADING = "uploading"
ITEM_COMPLETED = "completed"
ITEM_FAILED = "failed"

# --- 단계별 상태 (remove_status / upload_status) ---
STEP_PENDING = "pending"
STEP_PROCESSING = "processing"
STEP_COMPLETED = "completed"
STEP_FAILED = "failed"


@dataclass
class Article:
    """네이버 부동산에 노출 중인 광고 1건.

    rank 이후 필드는 ranking.assign_ranks 가 채운다.
    """

    id: str  # 네이버 매물번호 (articleNo)
    confirmation_date: str  # 확인일자 (예: "20251015"), 문자열 정렬 가능
    price_text: str  # 예: "16억 5,000"
    floor_text: str  # 예: "12/25", "고/25"
    broker_name: str = ""
    verification_code: str | None = None
    rank: int | None = None
    shared_rank: int | None = None
    shared_count: int | None = None
    is_shared: bool | None = None
    total: int | None = None  # 대표 매물에만 기록


@dataclass
class RankInfo:
    """대표 매물의 순위 정보."""

    ranking: int
    shared_rank: int
    is_shared: bool
    shared_count: int
    total: int
    confirmation_date: str


@dataclass
class CompetingAd:
    """경쟁 광고 1건."""

    id: str
    ranking: int  # 원래 노출 순서 (1 시작)
    price_text: str
    floor_text: str
    is_floor_exposed: bool
    confirmation_date: str
    broker_name: str
    verification_code: str | None
    is_price_lower: bool  # 내 광고보다 싼지
    is_price_higher: bool  # 내 광고보다 비싼지


@dataclass
class RankingAnalysis:
    """내 광고와 같은 호수의 경쟁 광고 분석 결과."""

    my_article: Article | None
    my_ranking: int | None
    my_floor_exposed: bool
    total_count: int
    competing_ads: list[CompetingAd] = field(default_factory=list)
    has_floor_exposure_advantage: bool = False  # 경쟁 광고 중 층수를 노출한 광고가 있는지

    @classmethod
    def empty(cls) -> "RankingAnalysis":
        return cls(
            my_article=None,
            my_ranking=None,
            my_floor_exposed=False,
            total_count=0,
        )

    def to_row(self) -> dict:
        """competing_ads_analysis 테이블에 쓰는 형태로 변환한다."""
        return {
            "my_ranking": self.my_ranking,
            "my_floor_exposed": self.my_floor_exposed,
            "total_count": self.total_count,
            "has_floor_exposure_advantage": self.has_floor_exposure_advantage,
            "competing_ads_data": [asdict(ad) for ad in self.competing_ads],
        }


@dataclass
class Listing:
    """이실장에 등록된 내 매물의 스냅샷."""

    id: int
    article_no: str  # 네이버 매물번호, 대표 매물 ID 로 쓴다
    name: str
    deal_type: str  # 매매 / 전세 / 월세
    price: str  # 만원 단위 (예: "175000")
    rent: str | None = None  # 월세인 경우만
    ad_start_date: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Listing":
        return cls(
            id=row["id"],
            article_no=row["article_no"],
            name=row.get("name", ""),
            deal_type=row.get("deal_type", ""),
            price=row.get("price", ""),
            rent=row.get("rent"),
            ad_start_date=row.get("ad_start_date"),
        )


@dataclass
class Batch:
    """여러 매물을 묶어 재광고하는 배치 작업."""

    id: int
    name: str
    status: str
    total_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    scheduled_at: str | None = None  # ISO 8601
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Batch":
        return cls(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            total_count=row.get("total_count") or 0,
            completed_count=row.get("completed_count") or 0,
            failed_count=row.get("failed_count") or 0,
            scheduled_at=row.get("scheduled_at"),
            created_at=row.get("created_at"),
            started_at=row.get("started_at"),
            completed_at=row.get("completed_at"),
        )


@dataclass
class BatchItem:
    """배치 안의 매물 1건의 작업 상태."""

    id: int
    batch_id: int
    listing_id: int
    status: str = ITEM_PENDING
    remove_status: str = STEP_PENDING
    upload_status: str = STEP_PENDING
    modified_price: str | None = None  # None 이면 원래 가격으로 재등록
    modified_rent: str | None = None
    error_message: str | None = None
    retry_count: int = 0
    created_at: str | None = None
    remove_started_at: str | None = None
    remove_completed_at: str | None = None
    upload_started_at: str | None = None
    upload_completed_at: str | None = None
    # 실행 시점에 붙이는 매물 스냅샷 (DB 에는 저장하지 않음)
    listing: Listing | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_row(cls, row: dict) -> "BatchItem":
        return cls(
            id=row["id"],
            batch_id=row["batch_id"],
            listing_id=row["listing_id"],
            status=row.get("status") or ITEM_PENDING,
            remove_status=row.get("remove_status") or STEP_PENDING,
            upload_status=row.get("upload_status") or STEP_PENDING,
            modified_price=row.get("modified_price"),
            modified_rent=row.get("modified_rent"),
            error_message=row.get("error_message"),
            retry_count=row.get("retry_count") or 0,
            created_at=row.get("created_at"),
            remove_started_at=row.get("remove_started_at"),
            remove_completed_at=row.get("remove_completed_at"),
            upload_started_at=row.get("upload_started_at"),
            upload_completed_at=row.get("upload_completed_at"),
        )


@dataclass
class ItemResult:
    """어댑터 작업 1건의 결과."""

    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> "ItemResult":
        return cls(success=True)

    @classmethod
    def failure(cls, error: str) -> "ItemResult":
        return cls(success=False, error=error)


@dataclass
class BatchRunResult:
    """execute / retry 1회 실행의 요약."""

    batch_id: int
    succeeded: int
    failed: int
