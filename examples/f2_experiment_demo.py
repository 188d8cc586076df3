"""
Count-Sketch F2 estimation experiment.

This example generates a synthetic stream, computes its exact second
frequency moment with a chained hash table, and compares it with the
estimates of 100 independent Count-Sketches for several sketch sizes.

Usage:
    python examples/f2_experiment_demo.py [results.csv]

When a path is given, every estimate is also written to a CSV file.
"""

import csv
import logging
import sys

from tiny_moments import CountSketchEstimator, ExperimentConfig, ExperimentRunner
from tiny_moments.core.stream import create_stream


def demonstrate_single_sketch(stream):
    """Estimate F2 with a single sketch and inspect it."""
    print("\n=== Single Count-Sketch ===")

    sketch = CountSketchEstimator(t=10)
    sketch.process(stream)

    print(f"Items processed: {sketch.items_processed}")
    print(f"Estimated F2: {sketch.estimate_square_sum()}")
    print(f"Expected relative error: {sketch.error_bounds()['relative_std_error']:.3f}")
    print(f"Approximate memory usage: {sketch.estimate_size()} bytes")

    stats = sketch.get_stats()
    print(f"Non-zero counters: {stats['non_zero_counters']} of {stats['width']}")


def print_results(results):
    """Print the summary of one experiment run."""
    print(f"\n--- t = {results.t} (m = {2 ** results.t} counters) ---")
    print(f"Exact F2:        {results.exact}")
    print(f"Mean estimate:   {results.mean():.1f}")
    print(f"MSE:             {results.mse():.1f}")
    print(f"Relative error:  {results.relative_error():.4f}")
    print(f"Theory:          {(2 / 2 ** results.t) ** 0.5:.4f}")
    print(f"Median of means: {results.median_of_means():.1f}")
    print(f"Time:            {results.elapsed_seconds:.2f} seconds")

    print("Group medians:")
    for i, median in enumerate(results.group_medians()):
        print(f"  Group {i + 1}: {median}")


def write_csv(path, all_results):
    """Write one row per trial: t, trial number, estimate and exact F2."""
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["t", "trial", "estimate", "exact"])
        for results in all_results:
            for trial, estimate in enumerate(results.estimates, start=1):
                writer.writerow([results.t, trial, estimate, results.exact])
    print(f"\nWrote {sum(len(r.estimates) for r in all_results)} rows to {path}")


def demonstrate_experiment(stream, csv_path=None):
    """Run 100 trials for each sketch size and report the error."""
    print("\n=== Repeated-Trial Experiment ===")

    all_results = []
    for t in (7, 10, 20):
        config = ExperimentConfig(t=t, trials=100, groups=9, table_bits=20)
        results = ExperimentRunner(stream, config).run()
        print_results(results)
        all_results.append(results)

    if csv_path:
        write_csv(csv_path, all_results)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("Generating stream of 20000 updates over 2^16 keys...")
    stream = create_stream(20000, 16)

    demonstrate_single_sketch(stream)
    demonstrate_experiment(stream, sys.argv[1] if len(sys.argv) > 1 else None)
