"""Tests for the cache-through client wrappers."""

import sys
from datetime import timedelta
from pathlib import Path
from unittest.mock import Mock

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import FakeCircleCISource, FakeDeploySource, FakeGitHubSource, make_commit, utc
from statstracker.cached_clients import CachedCircleCIClient, CachedDeployClient, CachedGitHubClient
from statstracker.config import CacheSettings
from statstracker.errors import CacheError, CacheMiss
from statstracker.models import FlakyTest, PullRequest, Release, Review, Rollout

NOW = utc(2024, 3, 1)
SETTINGS = CacheSettings()
PIPELINE = "projects/p/locations/r/deliveryPipelines/test"


class RecordingCache:
    """Dict-backed cache that records the TTL of every write."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        if key not in self.data:
            raise CacheMiss(key)
        return self.data[key]

    def set(self, key, value, ttl=None):
        self.data[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.data.pop(key, None)

    def close(self):
        pass


def _pr(number, state="open"):
    merged = utc(2024, 1, 6) if state == "closed" else None
    return PullRequest(
        number=number,
        title="t",
        author="alice",
        created_at=utc(2024, 1, 5),
        state=state,
        merged_at=merged,
        closed_at=merged,
    )


def _github(source, cache):
    return CachedGitHubClient(source, cache, SETTINGS, clock=lambda: NOW)


def test_pr_list_is_served_from_cache_on_second_call():
    """Verify a cached PR listing avoids a second upstream call and decodes equal records."""
    source = FakeGitHubSource(prs=[_pr(1), _pr(2, state="closed")])
    cache = RecordingCache()
    client = _github(source, cache)

    first = client.list_pull_requests("o", "r", utc(2024, 1, 1), utc(2024, 1, 31))
    second = client.list_pull_requests("o", "r", utc(2024, 1, 1), utc(2024, 1, 31))

    assert first == second
    assert sum(1 for call in source.calls if call[0] == "list_pull_requests") == 1


def test_pr_list_ttl_depends_on_window_age():
    """Verify windows ending over seven days ago use the long TTL, recent ones the short TTL."""
    source = FakeGitHubSource(prs=[])
    cache = RecordingCache()
    client = _github(source, cache)

    client.list_pull_requests("o", "r", utc(2024, 1, 1), utc(2024, 1, 31))
    client.list_pull_requests("o", "r", utc(2024, 2, 1), utc(2024, 2, 28))

    assert cache.ttls["github:prs_list:o:r:2024-01-01:2024-01-31"] == timedelta(hours=24)
    assert cache.ttls["github:prs_list:o:r:2024-02-01:2024-02-28"] == timedelta(hours=1)


def test_closed_prs_cached_individually_and_extend_review_ttl():
    """Verify closed PRs are stored individually and their reviews get the long TTL."""
    source = FakeGitHubSource(
        prs=[_pr(1), _pr(2, state="closed")],
        reviews={1: [], 2: [Review(author="bob", state="APPROVED", submitted_at=utc(2024, 1, 6))]},
    )
    cache = RecordingCache()
    client = _github(source, cache)

    client.list_pull_requests("o", "r", utc(2024, 1, 1), utc(2024, 1, 31))
    client.list_reviews("o", "r", 1)
    reviews = client.list_reviews("o", "r", 2)

    assert "github:pr:o:r:1" not in cache.data
    assert cache.ttls["github:pr:o:r:2"] == timedelta(hours=24)
    assert cache.ttls["github:pr_reviews:o:r:1"] == timedelta(hours=1)
    assert cache.ttls["github:pr_reviews:o:r:2"] == timedelta(hours=24)
    assert client.list_reviews("o", "r", 2) == reviews


def test_commits_cached_without_expiry():
    """Verify fetched commits are cached with a zero (never expiring) TTL."""
    commit = make_commit("abc", patch="+x: pull-1_abcdef1", author_date=utc(2024, 1, 1))
    source = FakeGitHubSource(commits={("o", "r", "abc"): commit})
    cache = RecordingCache()
    client = _github(source, cache)

    assert client.get_commit("o", "r", "abc") == commit
    assert client.get_commit("o", "r", "abc") == commit
    assert cache.ttls["github:commit:o:r:abc"] == timedelta(0)
    assert sum(1 for call in source.calls if call[0] == "get_commit") == 1


def test_cache_read_failure_falls_back_to_upstream():
    """Verify a CacheError on read is treated as a miss."""
    source = FakeGitHubSource(prs=[_pr(1)])
    cache = Mock()
    cache.get.side_effect = CacheError("disk on fire")
    cache.set.side_effect = CacheError("still on fire")
    client = _github(source, cache)

    prs = client.list_pull_requests("o", "r", utc(2024, 1, 1), utc(2024, 1, 31))

    assert [pr.number for pr in prs] == [1]


def test_undecodable_cache_entry_is_ignored():
    """Verify a cached value of the wrong shape is discarded in favour of the API."""
    source = FakeGitHubSource(prs=[_pr(1)])
    cache = RecordingCache()
    cache.data["github:prs_list:o:r:2024-01-01:2024-01-31"] = [{"unexpected": True}]
    client = _github(source, cache)

    prs = client.list_pull_requests("o", "r", utc(2024, 1, 1), utc(2024, 1, 31))

    assert [pr.number for pr in prs] == [1]


def _release(release_id, render_state="SUCCEEDED"):
    return Release(
        name=f"{PIPELINE}/releases/{release_id}",
        create_time=utc(2024, 1, 10),
        render_state=render_state,
        annotations={"git-sha": "abc"},
    )


def _deploy(source, cache):
    return CachedDeployClient(source, cache, "p", "r", SETTINGS, clock=lambda: NOW)


def test_release_listing_cached_and_terminal_releases_stored():
    """Verify release listings are cached per window and terminal releases stored individually."""
    done = _release("rel-1")
    pending = _release("rel-2", render_state="IN_PROGRESS")
    source = FakeDeploySource(releases={PIPELINE: [done, pending]})
    cache = RecordingCache()
    client = _deploy(source, cache)

    first = client.list_releases(PIPELINE, utc(2024, 1, 1), utc(2024, 1, 31))
    second = client.list_releases(PIPELINE, utc(2024, 1, 1), utc(2024, 1, 31))

    assert first == second
    assert sum(1 for call in source.calls if call[0] == "list_releases") == 1
    assert cache.ttls[f"deploy:releases_list:p:r:{PIPELINE}:2024-01-01:2024-01-31"] == timedelta(hours=24)
    assert cache.ttls[f"deploy:release:p:r:{done.name}"] == timedelta(hours=24)
    assert f"deploy:release:p:r:{pending.name}" not in cache.data


def test_rollouts_long_ttl_only_when_release_and_rollouts_are_settled():
    """Verify rollouts get the long TTL only for a terminal release with terminal rollouts."""
    settled = _release("rel-1")
    running = _release("rel-2")
    source = FakeDeploySource(
        releases={PIPELINE: [settled, running]},
        rollouts={
            settled.name: [Rollout(name="a", state="SUCCEEDED", deploy_end_time=utc(2024, 1, 10, 1))],
            running.name: [Rollout(name="b", state="IN_PROGRESS")],
        },
    )
    cache = RecordingCache()
    client = _deploy(source, cache)

    client.list_releases(PIPELINE, utc(2024, 1, 1), utc(2024, 1, 31))
    client.list_rollouts(settled.name)
    client.list_rollouts(running.name)
    client.list_rollouts(f"{PIPELINE}/releases/unknown")

    assert cache.ttls[f"deploy:rollouts:p:r:{settled.name}"] == timedelta(hours=24)
    assert cache.ttls[f"deploy:rollouts:p:r:{running.name}"] == timedelta(hours=1)
    assert cache.ttls[f"deploy:rollouts:p:r:{PIPELINE}/releases/unknown"] == timedelta(hours=1)


def test_flaky_tests_cached_for_one_hour():
    """Verify flaky test listings are cached with the flaky-test TTL."""
    source = FakeCircleCISource(tests=[FlakyTest(test_name="a", class_name="A", times_flaky=2)])
    cache = RecordingCache()
    client = CachedCircleCIClient(source, cache, SETTINGS, clock=lambda: NOW)

    first = client.fetch_flaky_tests("org", "repo")
    second = client.fetch_flaky_tests("org", "repo")

    assert first == second
    assert len(source.calls) == 1
    assert cache.ttls["circleci:flaky-tests:org:repo"] == timedelta(hours=1)
