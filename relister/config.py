"""설정 모듈: 환경변수와 상수 정의."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env 는 프로젝트 루트에 둔다
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase ---
SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.environ.get("SUPABASE_SECRET_KEY", "")
DB_SCHEMA = "relister"

# --- 네이버 부동산 ---
NAVER_API_BASE_URL = "https://new.land.naver.com/api/"
NAVER_ARTICLES_URL = NAVER_API_BASE_URL + "articles"
NAVER_BEARER_TOKEN: str = os.environ.get("NAVER_BEARER_TOKEN", "")

# --- User-Agent ---
USER_AGENTS = [
    "Mozilla/5.0 (iPad; CPU OS 6_0 like Mac OS X) AppleWebKit/536.26",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_7_4) AppleWebKit/537.13",
]

# --- 요청 설정 ---
REQUEST_TIMEOUT = 5  # 초
FETCH_MAX_RETRIES = 10
FETCH_RETRY_INTERVAL_MIN = 1.0
FETCH_RETRY_INTERVAL_MAX = 5.0
REQUEST_INTERVAL_MIN = 1.0
REQUEST_INTERVAL_MAX = 3.0

# --- 배치 ---
# 매물 사이 대기 (이실장 측 어뷰징 탐지 회피)
BATCH_ITEM_INTERVAL_MIN = 2.0
BATCH_ITEM_INTERVAL_MAX = 3.0
SCHEDULER_CHECK_INTERVAL = 60  # 초

# --- 로그 ---
LOG_DIR = _PROJECT_ROOT / "logs"
LOG_DIR.mkdir(exist_ok=True)
