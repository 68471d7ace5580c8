"""
Tests for the bounded collision-retry loop
"""
import pytest

from qr_assets.buisness.token_generator import TokenGenerator
from qr_assets.buisness.uniqueness_resolver import UniquenessResolver
from qr_assets.errors import ExhaustedRetries


class StaticExistsStore:
    """Store stub: reports a fixed set of tokens as present and counts lookups"""

    def __init__(self, present=()):
        self.present = set(present)
        self.calls = []

    def exists_any(self, tokens):
        tokens = list(tokens)
        self.calls.append(tokens)
        return self.present.intersection(tokens)


class ScriptedGenerator:
    """Generator stub that replays a fixed sequence of candidates"""

    def __init__(self, tokens):
        self.tokens = list(tokens)

    def generate_many(self, count):
        batch, self.tokens = self.tokens[:count], self.tokens[count:]
        return batch


def test_returns_exact_count_of_distinct_tokens():
    resolver = UniquenessResolver(StaticExistsStore())
    tokens = resolver.generate_unique_tokens(250)
    assert len(tokens) == 250
    assert len(set(tokens)) == 250


def test_one_bulk_lookup_per_round_with_oversampling():
    store = StaticExistsStore()
    resolver = UniquenessResolver(store, oversample_factor=2)
    resolver.generate_unique_tokens(40)
    assert len(store.calls) == 1
    assert len(store.calls[0]) == 80


def test_round_size_is_capped():
    store = StaticExistsStore()
    resolver = UniquenessResolver(store, oversample_factor=2, max_round_size=100)
    tokens = resolver.generate_unique_tokens(250)
    assert len(tokens) == 250
    # Surplus candidates from the first round count towards the total
    assert len(store.calls) == 2
    assert all(len(call) <= 200 for call in store.calls)


def test_skips_tokens_already_in_store_and_in_batch():
    generator = ScriptedGenerator(["taken001", "fresh001", "fresh001", "fresh002"])
    store = StaticExistsStore(present={"taken001"})
    resolver = UniquenessResolver(store, generator=generator, oversample_factor=2)
    assert resolver.generate_unique_tokens(2) == ["fresh001", "fresh002"]


def test_retries_until_deficit_filled():
    generator = ScriptedGenerator(["taken001", "taken002", "fresh001", "fresh002"])
    store = StaticExistsStore(present={"taken001", "taken002"})
    resolver = UniquenessResolver(store, generator=generator, oversample_factor=1)
    assert resolver.generate_unique_tokens(2) == ["fresh001", "fresh002"]
    assert len(store.calls) == 2


def test_exhausted_retries_when_namespace_collides():
    generator = ScriptedGenerator(["taken001"] * 100)
    store = StaticExistsStore(present={"taken001"})
    resolver = UniquenessResolver(store, generator=generator, max_attempts=3)

    with pytest.raises(ExhaustedRetries) as excinfo:
        resolver.generate_unique_tokens(5)

    assert excinfo.value.requested == 5
    assert excinfo.value.obtained == 0
    assert excinfo.value.attempts == 3
    assert len(store.calls) == 3


def test_max_attempts_override():
    generator = ScriptedGenerator(["same0001"] * 100)
    resolver = UniquenessResolver(StaticExistsStore(), generator=generator, max_attempts=10)

    with pytest.raises(ExhaustedRetries) as excinfo:
        resolver.generate_unique_tokens(2, max_attempts=1)

    assert excinfo.value.obtained == 1
    assert excinfo.value.attempts == 1


@pytest.mark.parametrize("count", [1, 37, 5000])
def test_tokens_absent_from_store_at_call_start(store, count):
    existing = TokenGenerator().generate_many(300)
    store.insert_many([{'token': token} for token in existing])

    tokens = UniquenessResolver(store).generate_unique_tokens(count)

    assert len(tokens) == count
    assert len(set(tokens)) == count
    assert not set(tokens) & set(existing)
    assert store.exists_any(tokens) == set()
