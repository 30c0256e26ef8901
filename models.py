import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, AwareDatetime, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class BenchmarkSettings(BaseSettings):
    """Benchmark run settings from environment variables."""
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    api_base_url: Optional[str] = None
    api_path: str = "/ping"
    # Comma-separated, overrides api_path when set
    api_paths: Optional[str] = None
    cold_calls: int = Field(5, ge=0)
    warm_calls: int = Field(10, ge=0)
    delay_between_calls_sec: float = Field(30, ge=0)
    concurrency: int = Field(10, ge=1)
    request_timeout_sec: float = Field(30, gt=0)
    region: str = Field(
        "local",
        validation_alias=AliasChoices("BENCHMARK_REGION", "AWS_REGION"),
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def paths(self) -> List[str]:
        """Target paths in declaration order."""
        raw = self.api_paths if self.api_paths is not None else self.api_path
        paths = [p.strip() for p in raw.split(",") if p.strip()]
        return paths or [self.api_path]


class Phase(str, Enum):
    """Measurement window of a benchmark row."""
    COLD = "Cold"
    WARM = "Warm"
    TOTAL = "Total"


class BenchmarkResult(BaseModel):
    """One row per phase per path per run.

    Field names serialize as camelCase (runId, p50Ms, ...), which is the shape
    the dashboard consumes.
    """
    run_id: str
    timestamp: AwareDatetime
    path: str
    phase: Phase

    sent: int = Field(ge=0)
    ok: int = Field(ge=0)
    errors: int = Field(ge=0)

    elapsed_seconds: float
    rps: float

    min_ms: float
    p50_ms: float
    avg_ms: float
    p90_ms: float
    p99_ms: float
    max_ms: float

    # Run context
    base_uri: str
    concurrency: int
    cold_calls: int
    warm_calls: int
    region: str

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="after")
    def _check_counts(self) -> "BenchmarkResult":
        if self.sent != self.ok + self.errors:
            raise ValueError(
                f"sent ({self.sent}) must equal ok ({self.ok}) + errors ({self.errors})"
            )
        return self


class PhaseSummary(BaseModel):
    """Latency summary of one phase across a run's paths."""
    p50_ms: float = 0.0
    p90_ms: float = 0.0
    p99_ms: float = 0.0
    avg_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class RegionSummary(BaseModel):
    """Cold vs warm summary for one region and run."""
    region: str
    run_id: str
    timestamp: datetime
    cold_start: PhaseSummary
    warm_start: PhaseSummary

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class HealthResponse(BaseModel):
    """Response model for the health endpoint."""
    status: str
    table: str
