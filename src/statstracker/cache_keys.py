"""Deterministic cache key construction for each cached resource type.

Field order and type literals are part of the on-disk cache layout; changing
them orphans every existing entry.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Union

KeyPart = Union[str, int, date, datetime]

_DATE_FORMAT = "%Y-%m-%d"


class CacheKeyBuilder:
    """Builds ``prefix:type:field:...`` keys for one API namespace."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def pr_key(self, owner: str, repo: str, pr_number: int) -> str:
        return self._build_key("pr", owner, repo, pr_number)

    def pr_reviews_key(self, owner: str, repo: str, pr_number: int) -> str:
        return self._build_key("pr_reviews", owner, repo, pr_number)

    def prs_list_key(self, owner: str, repo: str, start: datetime, end: datetime) -> str:
        return self._build_key("prs_list", owner, repo, start, end)

    def commit_key(self, owner: str, repo: str, sha: str) -> str:
        return self._build_key("commit", owner, repo, sha)

    def release_key(self, project_id: str, region: str, release_name: str) -> str:
        return self._build_key("release", project_id, region, release_name)

    def rollouts_key(self, project_id: str, region: str, release_name: str) -> str:
        return self._build_key("rollouts", project_id, region, release_name)

    def releases_list_key(
        self,
        project_id: str,
        region: str,
        pipeline: str,
        start: datetime,
        end: datetime,
    ) -> str:
        return self._build_key("releases_list", project_id, region, pipeline, start, end)

    def flaky_tests_key(self, org: str, repo: str) -> str:
        return self._build_key("flaky-tests", org, repo)

    def _build_key(self, *parts: KeyPart) -> str:
        """Join the prefix and parts with ``:``, formatting dates at day granularity."""
        return ":".join([self._prefix] + [_format_part(part) for part in parts])


def _format_part(part: KeyPart) -> str:
    if isinstance(part, (datetime, date)):
        return part.strftime(_DATE_FORMAT)
    return str(part)
