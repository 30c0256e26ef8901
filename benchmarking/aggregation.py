"""Per-region cold vs warm summaries over stored benchmark rows."""

from typing import Dict, Iterable, List, Tuple

from models import BenchmarkResult, Phase, PhaseSummary, RegionSummary


def summarize_phase(rows: List[BenchmarkResult]) -> PhaseSummary:
    """Average the percentiles of a phase's rows; min/max are taken over all rows."""
    if not rows:
        return PhaseSummary()

    n = len(rows)
    return PhaseSummary(
        p50_ms=sum(r.p50_ms for r in rows) / n,
        p90_ms=sum(r.p90_ms for r in rows) / n,
        p99_ms=sum(r.p99_ms for r in rows) / n,
        avg_ms=sum(r.avg_ms for r in rows) / n,
        min_ms=min(r.min_ms for r in rows),
        max_ms=max(r.max_ms for r in rows),
    )


def aggregate_by_region(results: Iterable[BenchmarkResult]) -> List[RegionSummary]:
    """
    Group rows by region and run, summarizing the Cold and Warm phases.

    Total rows are ignored. Groups keep the order in which they are first seen.

    Args:
        results: Benchmark rows, possibly from several regions and runs

    Returns:
        One RegionSummary per (region, run_id)
    """
    groups: Dict[Tuple[str, str], Dict[Phase, List[BenchmarkResult]]] = {}
    first_seen: Dict[Tuple[str, str], BenchmarkResult] = {}

    for row in results:
        key = (row.region, row.run_id)
        if key not in groups:
            groups[key] = {Phase.COLD: [], Phase.WARM: []}
            first_seen[key] = row
        if row.phase in groups[key]:
            groups[key][row.phase].append(row)

    return [
        RegionSummary(
            region=region,
            run_id=run_id,
            timestamp=first_seen[(region, run_id)].timestamp,
            cold_start=summarize_phase(phases[Phase.COLD]),
            warm_start=summarize_phase(phases[Phase.WARM]),
        )
        for (region, run_id), phases in groups.items()
    ]
