"""Tests for the per-profile TTL cache."""

from __future__ import annotations
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
import pytest
from lirt.cache import INVALIDATIONS, CacheStore, build_key, invalidate_for
from lirt.errors import ValidationError


TTL = timedelta(minutes=5)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(tmp_path: Path, clock: FakeClock) -> CacheStore:
    return CacheStore(tmp_path / "cache", clock=clock)


def test_miss_when_absent(cache: CacheStore) -> None:
    assert cache.get("default", "teams", TTL) == (None, False)


def test_hit_within_ttl(cache: CacheStore, clock: FakeClock) -> None:
    cache.set("default", "teams", [{"key": "ENG"}])
    clock.advance(timedelta(minutes=4))
    assert cache.get("default", "teams", TTL) == ([{"key": "ENG"}], True)


def test_expired_entry_is_a_miss(cache: CacheStore, clock: FakeClock) -> None:
    cache.set("default", "teams", [])
    clock.advance(timedelta(minutes=6))
    assert cache.get("default", "teams", TTL) == (None, False)


def test_zero_ttl_disables_reads(cache: CacheStore) -> None:
    cache.set("default", "teams", [])
    assert cache.get("default", "teams", timedelta(0)) == (None, False)


def test_cached_empty_payload_is_a_hit(cache: CacheStore) -> None:
    cache.set("default", "teams", [])
    assert cache.get("default", "teams", TTL) == ([], True)


def test_corrupt_entry_is_a_miss(cache: CacheStore) -> None:
    cache.set("default", "teams", [])
    (cache.profile_dir("default") / "teams.json").write_text("{", encoding="utf-8")
    assert cache.get("default", "teams", TTL) == (None, False)


def test_profiles_are_isolated(cache: CacheStore) -> None:
    cache.set("work", "teams", ["work"])
    assert cache.get("default", "teams", TTL) == (None, False)
    assert cache.get("work", "teams", TTL) == (["work"], True)


def test_entry_file_permissions(cache: CacheStore) -> None:
    cache.set("default", "teams", [])
    directory = cache.profile_dir("default")
    assert os.stat(directory).st_mode & 0o777 == 0o700
    assert os.stat(directory / "teams.json").st_mode & 0o777 == 0o600
    assert not list(directory.glob("*.tmp"))


def test_build_key_is_stable_and_qualified() -> None:
    assert build_key("teams") == "teams"
    first = build_key("issues", {"team": "ENG"}, 50)
    assert first == build_key("issues", {"team": "ENG"}, 50)
    assert first.startswith("issues--")
    assert first != build_key("issues", {"team": "OPS"}, 50)


@pytest.mark.parametrize("namespace", ["", "../x", "a/b", "a--b"])
def test_build_key_rejects_unsafe_namespaces(namespace: str) -> None:
    with pytest.raises(ValidationError):
        build_key(namespace)


def test_unsafe_key_is_rejected(cache: CacheStore) -> None:
    with pytest.raises(ValidationError):
        cache.set("default", "../escape", [])


def test_invalidate_single_entry(cache: CacheStore) -> None:
    cache.set("default", "teams", [])
    cache.invalidate("default", "teams")
    cache.invalidate("default", "teams")
    assert cache.get("default", "teams", TTL) == (None, False)


def test_invalidate_namespace_keeps_other_namespaces(cache: CacheStore) -> None:
    issues_key = build_key("issues", {"team": "ENG"})
    issue_key = build_key("issue", "abc")
    cache.set("default", "issues", [])
    cache.set("default", issues_key, [])
    cache.set("default", issue_key, {})

    assert cache.invalidate_namespace("default", "issues") == 2

    assert cache.get("default", issues_key, TTL) == (None, False)
    assert cache.get("default", issue_key, TTL) == ({}, True)


def test_clear_and_entries(cache: CacheStore, clock: FakeClock) -> None:
    cache.set("default", "teams", [])
    cache.set("default", "states", [])
    entries = cache.entries("default")
    assert [entry.key for entry in entries] == ["states", "teams"]
    assert entries[0].fetched_at == clock.now
    assert entries[0].size > 0

    cache.clear("default")

    assert cache.entries("default") == []
    cache.clear("default")


def test_invalidate_for_declared_mutations(cache: CacheStore) -> None:
    cache.set("default", "teams", [])
    cache.set("default", build_key("issues", "x"), [])
    cache.set("default", build_key("issue", "id-1"), {})

    invalidate_for(cache, "default", "issue.update")

    assert [entry.key for entry in cache.entries("default")] == ["teams"]


def test_invalidate_for_unknown_mutation_fails(cache: CacheStore) -> None:
    with pytest.raises(KeyError):
        invalidate_for(cache, "default", "issue.archive")


def test_invalidation_map_covers_issue_mutations() -> None:
    assert set(INVALIDATIONS) == {"issue.create", "issue.update", "issue.delete"}
