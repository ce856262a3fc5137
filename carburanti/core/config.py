from pydantic_settings import BaseSettings, SettingsConfigDict, NoDecode
from pydantic import field_validator, model_validator
from typing import Annotated, List, Optional, Tuple
from pathlib import Path
from dotenv import load_dotenv
import json

# --------------------------
# .env 파일 로드
# --------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env", override=False)


def _split_list(v):
    """Accept a JSON list or a comma separated string."""
    if isinstance(v, str):
        raw = v.strip()
        if raw.startswith("["):
            return json.loads(raw)
        return [part.strip() for part in raw.split(",") if part.strip()]
    return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file_encoding="utf-8", extra="ignore")

    # --------------------------
    # 기본 정보
    # --------------------------
    PROJECT_NAME: str = "Carburanti API"
    API_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "production"   # development / docker / production
    LOG_LEVEL: str = "INFO"
    # Comma separated list of origins allowed by CORS; empty disables CORS.
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = []

    # --------------------------
    # Ministry CSV datasets (primary first, mirrors after)
    # --------------------------
    STATIONS_CSV_URLS: Annotated[List[str], NoDecode] = [
        "https://www.mise.gov.it/images/exportCSV/anagrafica_impianti_attivi.csv",
        "https://www.mimit.gov.it/images/exportCSV/anagrafica_impianti_attivi.csv",
    ]
    PRICES_CSV_URLS: Annotated[List[str], NoDecode] = [
        "https://www.mise.gov.it/images/exportCSV/prezzo_alle_8.csv",
        "https://www.mimit.gov.it/images/exportCSV/prezzo_alle_8.csv",
    ]
    CSV_SEPARATOR: str = ";"
    # Exports start with an "Estrazione del ..." line followed by the header line.
    CSV_HEADER_ROWS: int = 2
    CSV_FETCH_TIMEOUT_SECONDS: float = 20.0

    # --------------------------
    # Refresh policy
    # --------------------------
    # Upstream publishes once a day, so a day-old cache is still acceptable.
    STALENESS_THRESHOLD_SECONDS: int = 86400
    # Minimum wait between remote attempts after a failed cycle (0 = retry on every request).
    FAILED_REFRESH_COOLDOWN_SECONDS: int = 300
    # Background refresh timer; 0 disables it and leaves only request-time refresh.
    REFRESH_INTERVAL_SECONDS: int = 3600
    STARTUP_REFRESH: bool = True

    # --------------------------
    # Query engine
    # --------------------------
    MAX_RESULTS: int = 30
    TOP_STATIONS_LIMIT: int = 10
    ELECTRIC_FUEL_LABEL: str = "Elettrica"

    # --------------------------
    # EV charge point search (Open Charge Map compatible)
    # --------------------------
    EV_API_BASE_URL: str = "https://api.openchargemap.io/v3"
    EV_API_KEY: Optional[str] = None
    EV_API_TIMEOUT_SECONDS: float = 10.0
    EV_API_RETRIES: int = 1
    EV_API_MAX_RESULTS: int = 500
    EV_STALENESS_SECONDS: int = 900
    EV_MIN_SEARCH_RADIUS_KM: float = 10.0
    # [min_kw, eur_per_kwh] rows; the row with the highest min_kw <= power applies.
    EV_PRICE_TIERS: List[Tuple[float, float]] = [
        (0.0, 0.49),
        (11.0, 0.59),
        (50.0, 0.69),
        (100.0, 0.79),
    ]

    # --------------------------
    # Snapshot persistence
    # --------------------------
    SNAPSHOT_BACKEND: str = "file"   # file / redis / none
    SNAPSHOT_DIR: Path = BASE_DIR / "saved_data"
    PERSIST_SNAPSHOTS: bool = True

    # --------------------------
    # Redis 관련 (SNAPSHOT_BACKEND=redis)
    # --------------------------
    REDIS_HOST: Optional[str] = None
    REDIS_PORT: Optional[int] = None
    REDIS_PASSWORD: Optional[str] = None
    SNAPSHOT_REDIS_PREFIX: str = "carburanti:snapshot"

    @field_validator("ALLOWED_ORIGINS", "STATIONS_CSV_URLS", "PRICES_CSV_URLS", mode="before")
    def parse_list(cls, v):
        return _split_list(v)

    @field_validator("EV_PRICE_TIERS", mode="before")
    def parse_price_tiers(cls, v):
        """EV_PRICE_TIERS 값을 JSON 문자열에서 리스트로 변환"""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("STARTUP_REFRESH", "PERSIST_SNAPSHOTS", mode="before")
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes")
        return v

    @field_validator("SNAPSHOT_BACKEND", mode="before")
    def parse_backend(cls, v):
        value = (v or "none").strip().lower()
        if value not in ("file", "redis", "none"):
            raise ValueError(f"Unsupported SNAPSHOT_BACKEND: {v}")
        return value

    @model_validator(mode="after")
    def switch_redis_host(self):
        """
        Docker 환경에서는 내부 서비스 이름으로 Redis를 지정합니다.
        Production(Render) 및 Development에서는 환경변수를 그대로 사용합니다.
        """
        env = (self.ENVIRONMENT or "").lower()

        if env == "docker":
            self.REDIS_HOST = self.REDIS_HOST or "carburanti_redis"
            self.REDIS_PORT = self.REDIS_PORT or 6379

        if self.SNAPSHOT_BACKEND == "redis":
            self.REDIS_HOST = self.REDIS_HOST or "localhost"
            self.REDIS_PORT = self.REDIS_PORT or 6379

        return self


# --------------------------
# 설정 인스턴스 생성
# --------------------------
settings = Settings()
