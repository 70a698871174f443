"""
Performance Tests for the Screening Engine

Generous bounds meant to catch accidental full scans or quadratic work,
not to benchmark:
- Normalization: <1ms per call
- Decision against 10k entries: <200ms average
- Index build for 10k entries: <15s
- Candidates per query: <10% of a random 10k list on average

Uses time measurement since pytest-benchmark may not be available.
"""

import random
import string
import time
from typing import Callable

import pytest

from aml_screening.blocklist_index import BlockListIndex
from aml_screening.engine import BlockDecisionEngine
from aml_screening.log_utils import sanitize_for_logging
from aml_screening.models import BlockListEntry, RiskCategory
from aml_screening.normalizer import normalize

ENTRY_COUNT = 10_000


def measure_time(func: Callable, *args, iterations: int = 1000, **kwargs) -> float:
    """Average execution time of a function in milliseconds"""
    start = time.perf_counter()
    for _ in range(iterations):
        func(*args, **kwargs)
    end = time.perf_counter()
    return (end - start) / iterations * 1000


def synthetic_name(rng: random.Random) -> str:
    words = rng.randint(2, 4)
    return " ".join(
        "".join(rng.choice(string.ascii_lowercase) for _ in range(rng.randint(3, 9))).title()
        for _ in range(words)
    )


@pytest.fixture(scope="module")
def synthetic_entries():
    rng = random.Random(42)
    categories = list(RiskCategory)
    return [
        BlockListEntry(
            id=f"S{i:05d}",
            canonical_name=synthetic_name(rng),
            aliases=frozenset({synthetic_name(rng)}) if i % 3 == 0 else frozenset(),
            risk_category=categories[i % len(categories)],
        )
        for i in range(ENTRY_COUNT)
    ]


class TestNormalizationPerformance:
    """Per-call cost of input handling"""

    def test_short_name(self):
        avg_time = measure_time(normalize, "Li Wei")
        assert avg_time < 1.0, f"Short name normalization took {avg_time:.3f}ms, expected <1ms"

    def test_long_name(self):
        long_name = ("José María García-López " * 11)[:256]
        avg_time = measure_time(normalize, long_name)
        assert avg_time < 1.0, f"Long name normalization took {avg_time:.3f}ms, expected <1ms"

    def test_log_sanitization(self):
        avg_time = measure_time(sanitize_for_logging, "John\nSmith\r\n" * 50)
        assert avg_time < 0.5, f"Log sanitization took {avg_time:.3f}ms, expected <0.5ms"


class TestScreeningPerformance:
    """Decisions against a large synthetic blocklist"""

    def test_index_build(self, config, synthetic_entries):
        start = time.perf_counter()
        generation = BlockListIndex(config).load(synthetic_entries)
        elapsed = time.perf_counter() - start

        assert generation.active_count == ENTRY_COUNT
        assert elapsed < 15.0, f"Index build took {elapsed:.2f}s, expected <15s"

    def test_candidate_fraction(self, config, synthetic_entries):
        generation = BlockListIndex(config).load(synthetic_entries)
        rng = random.Random(7)
        queries = [normalize(synthetic_name(rng)) for _ in range(50)]

        fractions = [
            sum(1 for _ in generation.candidates(q)) / ENTRY_COUNT for q in queries
        ]
        mean_fraction = sum(fractions) / len(fractions)

        assert mean_fraction < 0.10, f"Mean candidate fraction {mean_fraction:.3f}, expected <0.10"

    def test_check_latency(self, config, synthetic_entries):
        index = BlockListIndex(config)
        index.load(synthetic_entries)
        engine = BlockDecisionEngine(index, config=config)

        rng = random.Random(7)
        queries = [synthetic_name(rng) for _ in range(50)]
        queries += [e.canonical_name for e in synthetic_entries[:50]]

        start = time.perf_counter()
        results = [engine.check(q) for q in queries]
        avg_ms = (time.perf_counter() - start) / len(queries) * 1000

        assert all(r.is_blocked for r in results[50:])
        assert avg_ms < 200.0, f"Average decision took {avg_ms:.2f}ms, expected <200ms"

    def test_bulk_matches_sequential(self, config, synthetic_entries):
        index = BlockListIndex(config)
        index.load(synthetic_entries[:1000])
        engine = BlockDecisionEngine(index, config=config)
        names = [e.canonical_name for e in synthetic_entries[:200]]

        assert engine.bulk_check(names, max_workers=4) == [engine.check(n) for n in names]
