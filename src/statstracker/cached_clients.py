"""Cache-through wrappers for the GitHub, Cloud Deploy and CircleCI clients.

Each wrapper exposes the same operations as the client it wraps. Cache
failures are logged and treated as misses so the upstream API always remains
the source of truth; TTLs depend on whether the cached resource can still
change.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, TypeVar

from .cache import Cache, Clock
from .cache_keys import CacheKeyBuilder
from .config import CacheSettings
from .errors import CacheError, CacheMiss
from .models import (
    Commit,
    CommitRef,
    DeliveryPipeline,
    FlakyTest,
    PullRequest,
    Release,
    Review,
    Rollout,
)
from .sources import DeploymentSource, FlakyTestSource, PullRequestSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

TERMINAL_RELEASE_STATES = frozenset({"SUCCEEDED", "FAILED"})
TERMINAL_ROLLOUT_STATES = frozenset(
    {"SUCCEEDED", "FAILED", "CANCELLED", "HALTED", "APPROVAL_REJECTED"}
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _CachedClientBase:
    """Read/write helpers that never let a cache problem reach the caller."""

    def __init__(self, cache: Cache, settings: CacheSettings, clock: Optional[Clock] = None) -> None:
        self._cache = cache
        self._settings = settings
        self._clock = clock or _utc_now

    def _read(self, key: str, decode: Callable[[Any], T]) -> Optional[T]:
        try:
            raw = self._cache.get(key)
        except CacheMiss:
            return None
        except CacheError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc, extra={"cache_key": key})
            return None

        try:
            return decode(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Discarding undecodable cache entry %s: %s", key, exc, extra={"cache_key": key})
            return None

    def _write(self, key: str, value: Any, ttl: timedelta) -> None:
        try:
            self._cache.set(key, value, ttl)
        except CacheError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc, extra={"cache_key": key})

    def _window_ttl(self, until: datetime) -> timedelta:
        """Long TTL for windows that ended long ago, short TTL for recent ones."""
        if self._clock() - until > self._settings.historical_after:
            return self._settings.long_ttl
        return self._settings.short_ttl


class CachedGitHubClient(_CachedClientBase):
    """GitHub client with state-dependent caching of PRs, reviews and commits."""

    def __init__(
        self,
        client: PullRequestSource,
        cache: Cache,
        settings: CacheSettings,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(cache, settings, clock)
        self._client = client
        self._keys = CacheKeyBuilder("github")

    def list_pull_requests(
        self,
        owner: str,
        repo: str,
        since: datetime,
        until: datetime,
    ) -> List[PullRequest]:
        key = self._keys.prs_list_key(owner, repo, since, until)
        cached = self._read(key, lambda raw: [PullRequest.from_dict(item) for item in raw])
        if cached is not None:
            logger.debug("Serving pull request list from cache", extra={"cache_key": key})
            return cached

        prs = self._client.list_pull_requests(owner, repo, since, until)
        self._write(key, [pr.to_dict() for pr in prs], self._window_ttl(until))

        # Closed PRs no longer change; remember them so review TTLs can be extended.
        for pr in prs:
            if pr.is_closed:
                self._write(self._keys.pr_key(owner, repo, pr.number), pr.to_dict(), self._settings.long_ttl)

        return prs

    def list_reviews(self, owner: str, repo: str, pr_number: int) -> List[Review]:
        key = self._keys.pr_reviews_key(owner, repo, pr_number)
        cached = self._read(key, lambda raw: [Review.from_dict(item) for item in raw])
        if cached is not None:
            return cached

        reviews = self._client.list_reviews(owner, repo, pr_number)

        pr = self._read(self._keys.pr_key(owner, repo, pr_number), PullRequest.from_dict)
        ttl = self._settings.long_ttl if pr is not None and pr.is_closed else self._settings.short_ttl
        self._write(key, [review.to_dict() for review in reviews], ttl)

        return reviews

    def list_commits(
        self,
        owner: str,
        repo: str,
        since: datetime,
        until: datetime,
    ) -> List[CommitRef]:
        return self._client.list_commits(owner, repo, since, until)

    def get_commit(self, owner: str, repo: str, sha: str) -> Commit:
        key = self._keys.commit_key(owner, repo, sha)
        cached = self._read(key, Commit.from_dict)
        if cached is not None:
            return cached

        commit = self._client.get_commit(owner, repo, sha)
        self._write(key, commit.to_dict(), self._settings.commit_ttl)
        return commit


class CachedDeployClient(_CachedClientBase):
    """Cloud Deploy client with caching of terminal releases and their rollouts."""

    def __init__(
        self,
        client: DeploymentSource,
        cache: Cache,
        project: str,
        region: str,
        settings: CacheSettings,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(cache, settings, clock)
        self._client = client
        self._project = project
        self._region = region
        self._keys = CacheKeyBuilder("deploy")

    def list_delivery_pipelines(self, project: str, region: str) -> List[DeliveryPipeline]:
        return self._client.list_delivery_pipelines(project, region)

    def list_releases(
        self,
        pipeline_name: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Release]:
        if since is None or until is None:
            releases = self._client.list_releases(pipeline_name, since, until)
        else:
            key = self._keys.releases_list_key(self._project, self._region, pipeline_name, since, until)
            cached = self._read(key, lambda raw: [Release.from_dict(item) for item in raw])
            if cached is not None:
                return cached

            releases = self._client.list_releases(pipeline_name, since, until)
            self._write(key, [release.to_dict() for release in releases], self._window_ttl(until))

        for release in releases:
            if release.render_state in TERMINAL_RELEASE_STATES:
                release_key = self._keys.release_key(self._project, self._region, release.name)
                self._write(release_key, release.to_dict(), self._settings.long_ttl)

        return releases

    def list_rollouts(self, release_name: str) -> List[Rollout]:
        key = self._keys.rollouts_key(self._project, self._region, release_name)
        cached = self._read(key, lambda raw: [Rollout.from_dict(item) for item in raw])
        if cached is not None:
            return cached

        rollouts = self._client.list_rollouts(release_name)

        release = self._read(
            self._keys.release_key(self._project, self._region, release_name),
            Release.from_dict,
        )
        settled = (
            release is not None
            and release.render_state in TERMINAL_RELEASE_STATES
            and all(rollout.state in TERMINAL_ROLLOUT_STATES for rollout in rollouts)
        )
        ttl = self._settings.long_ttl if settled else self._settings.short_ttl
        self._write(key, [rollout.to_dict() for rollout in rollouts], ttl)

        return rollouts


class CachedCircleCIClient(_CachedClientBase):
    """CircleCI client that caches flaky test listings for a short period."""

    def __init__(
        self,
        client: FlakyTestSource,
        cache: Cache,
        settings: CacheSettings,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(cache, settings, clock)
        self._client = client
        self._keys = CacheKeyBuilder("circleci")

    def fetch_flaky_tests(self, org: str, repo: str) -> List[FlakyTest]:
        key = self._keys.flaky_tests_key(org, repo)
        cached = self._read(key, lambda raw: [FlakyTest.from_dict(item) for item in raw])
        if cached is not None:
            return cached

        tests = self._client.fetch_flaky_tests(org, repo)
        self._write(key, [test.to_dict() for test in tests], self._settings.flaky_tests_ttl)
        return tests
