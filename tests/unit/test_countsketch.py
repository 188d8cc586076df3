"""
Unit tests for the Count-Sketch F2 estimator.
"""

import math
import random
import unittest

from tiny_moments.algorithms.countsketch import CountSketchEstimator
from tiny_moments.core.errors import InvalidParameter, UninitializedEstimator
from tiny_moments.core.hash import SketchPair, degree3_poly, make_sketch_pair

# Net frequencies {5, -2, 3}: exact F2 = 25 + 4 + 9 = 38
SMALL_STREAM = [(11, 1)] * 5 + [(22, -1)] * 2 + [(33, 1)] * 3
SMALL_F2 = 38


class TestCountSketchEstimator(unittest.TestCase):
    """Test cases for CountSketchEstimator."""

    def test_init(self):
        sketch = CountSketchEstimator(t=10, rng=random.Random(1))
        self.assertEqual(sketch.t, 10)
        self.assertEqual(sketch.width, 1024)
        self.assertTrue(sketch.initialized)
        self.assertEqual(sketch.hash_pair.t, 10)

        for t in (0, -1, 65):
            with self.assertRaises(InvalidParameter):
                CountSketchEstimator(t=t)

    def test_mismatched_pair(self):
        with self.assertRaises(InvalidParameter):
            CountSketchEstimator(t=8, hash_pair=make_sketch_pair(9))

    def test_empty_estimates_are_zero(self):
        sketch = CountSketchEstimator(t=6)
        self.assertEqual(sketch.estimate_square_sum(), 0)
        self.assertEqual(sketch.estimate_frequency(123), 0)

    def test_uninitialized(self):
        sketch = CountSketchEstimator(t=6, defer_init=True)
        self.assertFalse(sketch.initialized)
        with self.assertRaises(UninitializedEstimator):
            sketch.estimate_square_sum()
        with self.assertRaises(UninitializedEstimator):
            sketch.estimate_frequency(1)
        with self.assertRaises(UninitializedEstimator):
            sketch.update(1, 1)
        self.assertFalse(sketch.get_stats()["initialized"])

        sketch.initialize()
        self.assertEqual(sketch.estimate_square_sum(), 0)

    def test_counter_invariant(self):
        """C[j] equals the signed sum of frequencies hashed to j."""
        pair = make_sketch_pair(4, random.Random(2))
        sketch = CountSketchEstimator(t=4, hash_pair=pair)
        rng = random.Random(3)
        frequencies = {}
        for _ in range(500):
            key = rng.randrange(40)
            delta = rng.choice((1, -1, 2))
            sketch.update(key, delta)
            frequencies[key] = frequencies.get(key, 0) + delta

        expected = [0] * 16
        for key, f in frequencies.items():
            bucket, sign = pair.evaluate(key)
            expected[bucket] += sign * f

        self.assertEqual(list(sketch._counters), expected)
        self.assertEqual(sketch.estimate_square_sum(), sum(c * c for c in expected))

    def test_single_key_is_exact(self):
        """Without collisions the point estimate is the true frequency."""
        sketch = CountSketchEstimator(t=8, rng=random.Random(4))
        sketch.process([(77, 1)] * 6 + [(77, -1)] * 2)
        self.assertEqual(sketch.estimate_frequency(77), 4)
        self.assertEqual(sketch.estimate_square_sum(), 16)

    def test_known_sign_and_bucket(self):
        """A constant polynomial maps every key to bucket 5 with sign -1."""
        pair = SketchPair(poly=degree3_poly(2**88 + 5, 0, 0, 0), t=3)
        sketch = CountSketchEstimator(t=3, hash_pair=pair)
        sketch.update(1, 2)
        sketch.update(2, 3)
        self.assertEqual(list(sketch._counters), [0, 0, 0, 0, 0, -5, 0, 0])
        self.assertEqual(sketch.estimate_frequency(1), 5)
        self.assertEqual(sketch.estimate_square_sum(), 25)

    def test_unbiased(self):
        """The mean estimate over many trials converges to the exact F2."""
        rng = random.Random(2024)
        estimates = []
        for _ in range(300):
            sketch = CountSketchEstimator(t=10, rng=rng)
            sketch.process(SMALL_STREAM)
            estimates.append(sketch.estimate_square_sum())

        mean = sum(estimates) / len(estimates)
        self.assertLess(abs(mean - SMALL_F2), 0.1 * SMALL_F2)

    def test_unbiased_with_collisions(self):
        """With many keys in few buckets the mean is still close to F2."""
        stream = [(key, 1) for key in range(200) for _ in range(1 + key % 3)]
        exact = sum((1 + key % 3) ** 2 for key in range(200))

        rng = random.Random(99)
        estimates = []
        for _ in range(300):
            sketch = CountSketchEstimator(t=5, rng=rng)
            sketch.process(stream)
            estimates.append(sketch.estimate_square_sum())

        mean = sum(estimates) / len(estimates)
        # Standard error of the mean is about sqrt(2 / 32) * F2 / sqrt(300)
        self.assertLess(abs(mean - exact), 0.1 * exact)

    def test_smallest_sketch(self):
        sketch = CountSketchEstimator(t=1, rng=random.Random(5))
        sketch.process(SMALL_STREAM)
        estimate = sketch.estimate_square_sum()
        self.assertTrue(math.isfinite(estimate))
        self.assertGreaterEqual(estimate, 0)

    def test_largest_sketch(self):
        """t = 64 keeps counters sparsely instead of allocating 2^64."""
        sketch = CountSketchEstimator(t=64, rng=random.Random(6))
        sketch.process(SMALL_STREAM)
        self.assertEqual(sketch.estimate_square_sum(), SMALL_F2)
        self.assertEqual(sketch.estimate_frequency(22), -2)
        self.assertEqual(sketch.get_stats()["non_zero_counters"], 3)

    def test_order_independent(self):
        pair = make_sketch_pair(5, random.Random(7))
        forward = CountSketchEstimator(t=5, hash_pair=pair)
        backward = CountSketchEstimator(t=5, hash_pair=pair)
        forward.process(SMALL_STREAM)
        backward.process(reversed(SMALL_STREAM))
        self.assertEqual(forward.estimate_square_sum(), backward.estimate_square_sum())

    def test_merge_is_linear(self):
        """Merging sketches of two halves equals sketching the whole stream."""
        pair = make_sketch_pair(6, random.Random(8))
        whole = CountSketchEstimator(t=6, hash_pair=pair)
        first = CountSketchEstimator(t=6, hash_pair=pair)
        second = CountSketchEstimator(t=6, hash_pair=pair)

        whole.process(SMALL_STREAM)
        first.process(SMALL_STREAM[:4])
        second.process(SMALL_STREAM[4:])

        merged = first.merge(second)
        self.assertEqual(list(merged._counters), list(whole._counters))
        self.assertEqual(merged.items_processed, len(SMALL_STREAM))

        with self.assertRaises(ValueError):
            first.merge(CountSketchEstimator(t=6, rng=random.Random(9)))

    def test_serialization(self):
        sketch = CountSketchEstimator(t=7, rng=random.Random(10))
        sketch.process(SMALL_STREAM)

        restored = CountSketchEstimator.deserialize(sketch.serialize())
        self.assertEqual(restored.hash_pair, sketch.hash_pair)
        self.assertEqual(restored.estimate_square_sum(), sketch.estimate_square_sum())
        self.assertEqual(restored.items_processed, len(SMALL_STREAM))

        deferred = CountSketchEstimator.from_dict(
            CountSketchEstimator(t=7, defer_init=True).to_dict()
        )
        self.assertFalse(deferred.initialized)

    def test_error_bounds_and_stats(self):
        sketch = CountSketchEstimator(t=8, rng=random.Random(11))
        sketch.process(SMALL_STREAM)
        bounds = sketch.error_bounds()
        self.assertAlmostEqual(bounds["relative_std_error"], math.sqrt(2 / 256))

        stats = sketch.get_stats()
        self.assertEqual(stats["width"], 256)
        self.assertEqual(stats["items_processed"], len(SMALL_STREAM))
        self.assertIn("square_sum", stats)
        self.assertLessEqual(stats["non_zero_counters"], 3)

    def test_clear(self):
        sketch = CountSketchEstimator(t=4, rng=random.Random(12))
        pair = sketch.hash_pair
        sketch.process(SMALL_STREAM)
        sketch.clear()
        self.assertEqual(sketch.estimate_square_sum(), 0)
        self.assertEqual(sketch.hash_pair, pair)
        self.assertEqual(sketch.items_processed, 0)

    def test_large_deltas(self):
        """Dense and sparse counters both hold deltas beyond 64 bits."""
        poly = make_sketch_pair(1, random.Random(13)).poly
        dense = CountSketchEstimator(t=10, hash_pair=SketchPair(poly=poly, t=10))
        sparse = CountSketchEstimator(t=21, hash_pair=SketchPair(poly=poly, t=21))

        for sketch in (dense, sparse):
            sketch.update(7, 2**64)
            sketch.update(7, 2**64)
            self.assertEqual(sketch.estimate_frequency(7), 2**65)
            self.assertEqual(sketch.estimate_square_sum(), 2**130)
            self.assertEqual(sketch.items_processed, 2)

        self.assertEqual(dense.estimate_square_sum(), sparse.estimate_square_sum())

    def test_restore_counters_requires_pair(self):
        data = CountSketchEstimator(t=5, rng=random.Random(14)).to_dict()
        data["hash_pair"] = None
        with self.assertRaises(ValueError):
            CountSketchEstimator.from_dict(data)

    def test_sparse_serialization_and_merge(self):
        """Counters kept in a dict survive binary round trips and merges."""
        pair = make_sketch_pair(24, random.Random(15))
        first = CountSketchEstimator(t=24, hash_pair=pair)
        second = CountSketchEstimator(t=24, hash_pair=pair)
        whole = CountSketchEstimator(t=24, hash_pair=pair)

        first.process(SMALL_STREAM[:6])
        second.process(SMALL_STREAM[6:])
        whole.process(SMALL_STREAM)

        payload = first.serialize(format="binary")
        self.assertIsInstance(payload, bytes)
        restored = CountSketchEstimator.deserialize(payload, format="binary")
        self.assertIsInstance(restored._counters, dict)
        self.assertEqual(restored._counters, first._counters)
        self.assertEqual(restored.items_processed, 6)

        merged = restored.merge(second)
        self.assertEqual(
            {b: v for b, v in merged._counters.items() if v},
            {b: v for b, v in whole._counters.items() if v},
        )
        self.assertEqual(merged.estimate_square_sum(), whole.estimate_square_sum())
        self.assertEqual(merged.items_processed, len(SMALL_STREAM))


if __name__ == "__main__":
    unittest.main()
