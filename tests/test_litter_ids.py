from __future__ import annotations

import pytest

from pigfarm.litter_ids import highest_number, next_litter_id, suggest_alternate


class FakeLitters:
    def __init__(self, ids=(), taken=()):
        self.ids = list(ids)
        # Ids another request inserted after the scan
        self.taken = set(taken)

    def ids_with_prefix(self, prefix):
        return [i for i in self.ids if i.startswith(prefix)]

    def exists(self, litter_id):
        return litter_id in self.ids or litter_id in self.taken


def test_first_litter_id():
    assert next_litter_id(FakeLitters()) == "LT001"


def test_next_litter_id_uses_highest_numeric_suffix():
    litters = FakeLitters(["LT001", "LT002", "LT010", "LTX", "LT005-1", "XX999"])

    assert highest_number(litters.ids, "LT") == 10
    assert next_litter_id(litters) == "LT011"


def test_numbers_past_three_digits_are_not_truncated():
    assert next_litter_id(FakeLitters(["LT999"])) == "LT1000"


def test_next_litter_id_skips_ids_taken_concurrently():
    litters = FakeLitters(["LT001"], taken={"LT002", "LT003"})

    assert next_litter_id(litters) == "LT004"


def test_falls_back_to_suffix_after_bounded_attempts():
    taken = {f"LT{n:03d}" for n in range(2, 12)}
    litters = FakeLitters(["LT001"], taken=taken)

    assert next_litter_id(litters, max_attempts=10) == "LT002-1"


def test_fallback_is_deterministic():
    taken = {"LT002", "LT003", "LT002-1"}

    first = next_litter_id(FakeLitters(["LT001"], taken=taken), max_attempts=2)
    second = next_litter_id(FakeLitters(["LT001"], taken=taken), max_attempts=2)

    assert first == second == "LT002-2"


@pytest.mark.parametrize(
    "existing, expected",
    [
        (["LT004"], "LT004-1"),
        (["LT004", "LT004-1", "LT004-2"], "LT004-3"),
    ],
)
def test_suggest_alternate(existing, expected):
    assert suggest_alternate(FakeLitters(existing), "LT004") == expected


def test_custom_prefix():
    assert next_litter_id(FakeLitters(["FA007", "LT050"]), prefix="FA") == "FA008"
