import logging
from functools import lru_cache
from typing import List, Optional

from botocore.exceptions import ClientError
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from benchmarking.aggregation import aggregate_by_region
from models import BenchmarkResult, HealthResponse, RegionSummary
from storage.results_store import BenchmarkResultStore
from storage.table_adapter import create_table_adapter

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_result_store() -> BenchmarkResultStore:
    """Shared result store (overridden in tests)."""
    return BenchmarkResultStore(create_table_adapter())


app = FastAPI(
    title="Cold Start Benchmark Results",
    version="0.1.0",
)

# The dashboard is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _storage_unavailable(e: ClientError) -> HTTPException:
    code = e.response.get("Error", {}).get("Code", "Unknown")
    logger.error(f"Benchmark table read failed: {code}: {e}")
    return HTTPException(status_code=503, detail=f"Result storage unavailable: {code}")


@app.get("/health", response_model=HealthResponse)
def health_check(store: BenchmarkResultStore = Depends(get_result_store)):
    """Health check endpoint."""
    return HealthResponse(status="healthy", table=store.table_name)


@app.get("/results", response_model=List[BenchmarkResult])
def list_results_endpoint(
    limit: Optional[int] = Query(None, ge=1, le=5000),
    store: BenchmarkResultStore = Depends(get_result_store),
):
    """All stored benchmark rows, newest first."""
    try:
        return store.list_results(limit=limit)
    except ClientError as e:
        raise _storage_unavailable(e)


@app.get("/results/latest", response_model=List[BenchmarkResult])
def latest_results_endpoint(store: BenchmarkResultStore = Depends(get_result_store)):
    """Rows of each region's most recent run."""
    try:
        return store.latest_results()
    except ClientError as e:
        raise _storage_unavailable(e)


@app.get("/results/summary", response_model=List[RegionSummary])
def results_summary_endpoint(store: BenchmarkResultStore = Depends(get_result_store)):
    """Cold vs warm percentile summary per region for the latest runs."""
    try:
        latest = store.latest_results()
    except ClientError as e:
        raise _storage_unavailable(e)

    summaries = aggregate_by_region(latest)
    logger.debug(f"Summarized {len(latest)} rows into {len(summaries)} region summaries")
    return summaries


# Mangum handler for AWS Lambda
handler = Mangum(app, lifespan="off")
