"""
Throughput of the two bucket hash families.

Hashes every key of a generated stream with multiply-shift and with
multiply-mod-p and reports the time taken. The sums are printed so the
work cannot be skipped and two runs can be compared.
"""

import random
import time

from tiny_moments.core.hash import multiply_mod_p, multiply_shift
from tiny_moments.core.stream import create_stream


def benchmark(name, hash_function, stream):
    """Hash every key once and print the sum of the hash values."""
    start = time.perf_counter()
    total = 0
    for key, _ in stream:
        total += hash_function(key)
    elapsed = time.perf_counter() - start

    print(f"{name:<15} Sum = {total}, Time = {elapsed * 1000:.0f} ms")
    return elapsed


def demonstrate_single_values():
    """Hash one fixed key with fixed coefficients."""
    print("\n=== Single Key ===")
    x = 12345678901234567890
    print(f"MultiplyShift:  {multiply_shift(1234567890123, 16)(x)}")
    print(f"MultiplyModP:   {multiply_mod_p(1234567890123, 987654321098, 16)(x)}")


def demonstrate_benchmark(n=1000000, l=16):
    """Compare the two families over the same stream."""
    print("\n=== Hash Function Benchmark ===")
    print(f"n = {n}, l = {l}")

    rng = random.SystemRandom()
    # The same 64-bit coefficients for both families
    a = rng.getrandbits(64)
    b = rng.getrandbits(64)

    stream = create_stream(n, l)
    shift_time = benchmark("MultiplyShift:", multiply_shift(a, l), stream)
    modp_time = benchmark("MultiplyModP:", multiply_mod_p(a, b, l), stream)

    print(f"MultiplyModP / MultiplyShift: {modp_time / shift_time:.2f}x")


if __name__ == "__main__":
    demonstrate_single_values()
    demonstrate_benchmark()
