#!/usr/bin/env python3
"""
Progression simulation.

Plays many headless players from an empty collection until every item
(including the hidden one) is unlocked, and writes a one-row pacing CSV.

Usage:
    python -m scripts.progression_sim --players 2000 --seed PACING_2025 --out out/pacing.csv
"""
import argparse
import csv
import subprocess
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dreamslot.config import settings
from dreamslot.config_hash import get_config_hash
from dreamslot.logic.engine import OutcomeEngine
from dreamslot.logic.ledger import commit, record_pull
from dreamslot.logic.models import EngineConfig, OutcomeKind, ProgressionState
from dreamslot.logic.rng import SeededRNG, seed_to_int


DEFAULT_MAX_PULLS = 700


@dataclass
class SimulationStats:
    """Statistics accumulated during simulation."""
    players: int = 0
    total_pulls: int = 0
    completed_players: int = 0
    kinds: Counter = field(default_factory=Counter)
    # Per-player milestones (pull number at which they happened)
    pulls_to_first_unlock: list[int] = field(default_factory=list)
    pulls_to_standard_complete: list[int] = field(default_factory=list)
    pulls_to_hidden: list[int] = field(default_factory=list)
    # Invariant checks
    hidden_before_gate: int = 0
    max_pulls_observed: int = 0


def get_git_commit() -> str:
    """Get current git commit hash (short)."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=Path(__file__).parent.parent.parent,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return "unknown"


def get_timestamp_iso() -> str:
    """Get ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def simulate_player(
    engine: OutcomeEngine, stats: SimulationStats, max_pulls: int
) -> ProgressionState:
    """Pull from an empty collection until complete or max_pulls."""
    progression = ProgressionState()
    total_items = len(engine.catalog)
    first_unlock = standard_complete = hidden = None

    while progression.pull_count < max_pulls and len(progression.unlocked) < total_items:
        progression = record_pull(progression)
        is_special = engine.is_guaranteed_special_pull(progression)
        is_failure = engine.is_failure_pull(is_special)
        result = engine.decide(progression, is_special=is_special, is_failure=is_failure)
        stats.kinds[result.kind.value] += 1

        progression, was_new = commit(progression, result)
        if not was_new:
            continue

        summary = progression.summary(engine.catalog)
        pulls = progression.pull_count
        if first_unlock is None:
            first_unlock = pulls
        if standard_complete is None and summary.all_standard_unlocked:
            standard_complete = pulls
        if hidden is None and summary.hidden_unlocked:
            hidden = pulls
            if pulls < engine.config.hidden_threshold_pulls:
                stats.hidden_before_gate += 1

    stats.players += 1
    stats.total_pulls += progression.pull_count
    stats.max_pulls_observed = max(stats.max_pulls_observed, progression.pull_count)
    if first_unlock is not None:
        stats.pulls_to_first_unlock.append(first_unlock)
    if standard_complete is not None:
        stats.pulls_to_standard_complete.append(standard_complete)
    if hidden is not None:
        stats.pulls_to_hidden.append(hidden)
    if len(progression.unlocked) == total_items:
        stats.completed_players += 1
    return progression


def run_simulation(
    players: int,
    seed_str: str,
    max_pulls: int = DEFAULT_MAX_PULLS,
    config: EngineConfig | None = None,
    verbose: bool = False,
) -> SimulationStats:
    """
    Run headless simulation.

    Args:
        players: Number of independent collections to play out
        seed_str: Seed string for reproducibility
        max_pulls: Per-player pull cap
        config: Engine tuning (defaults to settings)
        verbose: Print progress

    Returns:
        SimulationStats with aggregated results
    """
    rng = SeededRNG(seed=seed_to_int(seed_str))
    engine = OutcomeEngine(rng=rng, config=config or settings.engine)
    stats = SimulationStats()

    progress_interval = max(1, players // 100)
    for index in range(players):
        if verbose and index % progress_interval == 0:
            pct = (index / players) * 100
            print(f"\rProgress: {pct:.1f}%", end="", flush=True)
        simulate_player(engine, stats, max_pulls)

    if verbose:
        print("\rProgress: 100.0%")

    return stats


def calculate_percentile(values: list[int], percentile: float) -> float:
    """Calculate percentile from sorted list."""
    if not values:
        return 0.0
    sorted_vals = sorted(values)
    idx = int(len(sorted_vals) * percentile / 100)
    idx = min(idx, len(sorted_vals) - 1)
    return float(sorted_vals[idx])


def _mean(values: list[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def _rate(count: int, total: int) -> float:
    return (count / total * 100) if total > 0 else 0.0


def build_row(
    players: int, seed_str: str, stats: SimulationStats, config: EngineConfig | None = None
) -> dict[str, str | int]:
    """Flatten stats into the CSV row."""
    pulls = stats.total_pulls
    wins = sum(
        stats.kinds[kind.value]
        for kind in (OutcomeKind.WIN, OutcomeKind.BLOCKED_WIN, OutcomeKind.GUARANTEED, OutcomeKind.SPECIAL)
    )
    return {
        "timestamp": get_timestamp_iso(),
        "git_commit": get_git_commit(),
        "config_hash": get_config_hash(config or settings.engine),
        "players": players,
        "seed": seed_str,
        "completion_rate": f"{_rate(stats.completed_players, stats.players):.4f}",
        "hit_freq": f"{_rate(wins, pulls):.4f}",
        "malfunction_rate": f"{_rate(stats.kinds[OutcomeKind.MALFUNCTION.value], pulls):.4f}",
        "blocked_win_rate": f"{_rate(stats.kinds[OutcomeKind.BLOCKED_WIN.value], pulls):.4f}",
        "guaranteed_rate": f"{_rate(stats.kinds[OutcomeKind.GUARANTEED.value], pulls):.4f}",
        "mean_first_unlock": f"{_mean(stats.pulls_to_first_unlock):.2f}",
        "mean_standard_complete": f"{_mean(stats.pulls_to_standard_complete):.2f}",
        "p50_standard_complete": f"{calculate_percentile(stats.pulls_to_standard_complete, 50):.0f}",
        "p95_standard_complete": f"{calculate_percentile(stats.pulls_to_standard_complete, 95):.0f}",
        "mean_hidden": f"{_mean(stats.pulls_to_hidden):.2f}",
        "p95_hidden": f"{calculate_percentile(stats.pulls_to_hidden, 95):.0f}",
        "max_pulls": stats.max_pulls_observed,
        "hidden_before_gate": stats.hidden_before_gate,
    }


def generate_csv(
    players: int,
    seed_str: str,
    stats: SimulationStats,
    output_path: str,
    config: EngineConfig | None = None,
) -> None:
    """Write the pacing CSV."""
    row = build_row(players, seed_str, stats, config)

    # Ensure output directory exists
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=row.keys())
        writer.writeheader()
        writer.writerow(row)

    print(f"CSV written to: {output_path}")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Progression pacing simulation")
    parser.add_argument(
        "--players",
        type=int,
        default=1000,
        help="Number of simulated players (default: 1000)",
    )
    parser.add_argument(
        "--seed",
        type=str,
        default="PACING_2025",
        help="Seed string for reproducibility",
    )
    parser.add_argument(
        "--max-pulls",
        type=int,
        default=DEFAULT_MAX_PULLS,
        help=f"Per-player pull cap (default: {DEFAULT_MAX_PULLS})",
    )
    parser.add_argument(
        "--out",
        type=str,
        required=True,
        help="Output CSV path",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print progress",
    )
    args = parser.parse_args()

    if args.players <= 0:
        print("Error: --players must be positive", file=sys.stderr)
        return 1

    stats = run_simulation(
        players=args.players,
        seed_str=args.seed,
        max_pulls=args.max_pulls,
        verbose=args.verbose,
    )
    generate_csv(args.players, args.seed, stats, args.out)

    print(f"Completion rate: {_rate(stats.completed_players, stats.players):.2f}%")
    print(f"Mean pulls to full standard set: {_mean(stats.pulls_to_standard_complete):.1f}")
    print(f"Mean pulls to hidden item: {_mean(stats.pulls_to_hidden):.1f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
