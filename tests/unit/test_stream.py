"""
Unit tests for the synthetic stream generator.
"""

import unittest

from tiny_moments.core.errors import InvalidParameter
from tiny_moments.core.stream import KEY_SHIFT, create_stream, iter_stream


class TestCreateStream(unittest.TestCase):
    """Test cases for create_stream and iter_stream."""

    def test_length(self):
        for n in (0, 1, 2, 3, 10, 1000):
            self.assertEqual(len(create_stream(n, 8, seed=1)), n)

    def test_sign_thirds(self):
        """+1 for the first third, -1 for the middle, +1 for the rest."""
        deltas = [delta for _, delta in create_stream(10, 8, seed=2)]
        self.assertEqual(deltas, [1] * 3 + [-1] * 3 + [1] * 4)

        deltas = [delta for _, delta in create_stream(2, 8, seed=2)]
        self.assertEqual(deltas, [-1, 1])

    def test_key_range(self):
        """Keys are multiples of 2^30 below 2^(l + 30)."""
        for l in (1, 6, 20, 34):
            for key, _ in create_stream(300, l, seed=3):
                self.assertEqual(key % 2**KEY_SHIFT, 0)
                self.assertLess(key, 2 ** (l + KEY_SHIFT))
                self.assertGreaterEqual(key, 0)

    def test_keys_cover_range(self):
        keys = {key for key, _ in create_stream(2000, 4, seed=4)}
        self.assertEqual(len(keys), 16)

    def test_reproducible(self):
        self.assertEqual(create_stream(500, 10, seed=5), create_stream(500, 10, seed=5))
        self.assertNotEqual(create_stream(500, 10, seed=5), create_stream(500, 10, seed=6))

    def test_iter_matches_create(self):
        self.assertEqual(list(iter_stream(99, 12, seed=7)), create_stream(99, 12, seed=7))

    def test_invalid_parameters(self):
        for n, l in ((10, 0), (10, 35), (-1, 8)):
            with self.assertRaises(InvalidParameter):
                create_stream(n, l)
            # Validation happens before iteration starts
            with self.assertRaises(InvalidParameter):
                iter_stream(n, l)


if __name__ == "__main__":
    unittest.main()
