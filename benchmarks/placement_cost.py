"""Placement cost benchmark.

Times both placement algorithms over a range of frequencies and durations and
reports how long one plan takes. A plan runs inside a single coordinator tick,
so this is the worst-case latency an edit adds to one UI frame.

Usage:
    python benchmarks/placement_cost.py [--duration SECONDS] [--octaves N]
                                        [--repeats N] [--frequency F ...]

Options:
    --duration SECONDS  Selection length to plan over (default: 300)
    --octaves N         Noise octaves (default: 4)
    --repeats N         Timed runs per case (default: 5)
    --frequency F       Frequencies to test (default: 0.5 2 8 32)
"""

import argparse
import logging
import statistics
import time

# Suppress cap warnings during benchmark; we want clean output.
logging.basicConfig(level=logging.ERROR)

import ambiance.noise
import ambiance.placement

# ---------------------------------------------------------------------------

FRAME_BUDGET_MS = 1000.0 / 30.0


def _time_plan (
	params: ambiance.noise.NoiseParameters,
	duration: float,
	repeats: int,
) -> tuple[list[float], int]:

	"""Run *repeats* plans and return per-run wall time (ms) and the event count."""

	timings: list[float] = []
	events = 0

	for _ in range(repeats):
		started = time.perf_counter()
		events = len(ambiance.placement.plan(0.0, duration, params))
		timings.append((time.perf_counter() - started) * 1000)

	return timings, events


def _print_report (rows: list[tuple[str, float, int, list[float]]], duration: float, octaves: int) -> None:

	print(f"\nPlacement Cost Benchmark: {duration:.0f}s selection, {octaves} octaves")
	print(f"{'─' * 62}")
	print(f"  {'algorithm':<14}{'freq':>8}{'events':>10}{'median ms':>14}{'max ms':>12}")
	print(f"{'─' * 62}")

	for algorithm, frequency, events, timings in rows:
		median_ms = statistics.median(timings)
		flag = "  *" if median_ms > FRAME_BUDGET_MS else ""
		print(f"  {algorithm:<14}{frequency:>8.2f}{events:>10}{median_ms:>14.2f}{max(timings):>12.2f}{flag}")

	print(f"{'─' * 62}")
	print(f"  * exceeds one {FRAME_BUDGET_MS:.1f} ms frame")
	print()


def main () -> None:

	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("--duration",  type=float, default=300.0, help="Selection length in seconds (default: 300)")
	parser.add_argument("--octaves",   type=int,   default=4,     help="Noise octaves (default: 4)")
	parser.add_argument("--repeats",   type=int,   default=5,     help="Timed runs per case (default: 5)")
	parser.add_argument("--frequency", type=float, nargs="+", default=[0.5, 2.0, 8.0, 32.0], help="Frequencies to test")
	args = parser.parse_args()

	rows = []

	for algorithm in ambiance.noise.Algorithm:
		for frequency in args.frequency:
			params = ambiance.noise.NoiseParameters(seed=1, frequency=frequency, octaves=args.octaves, algorithm=algorithm)
			timings, events = _time_plan(params, args.duration, args.repeats)
			rows.append((algorithm.value, frequency, events, timings))

	_print_report(rows, args.duration, args.octaves)


if __name__ == "__main__":
	main()
