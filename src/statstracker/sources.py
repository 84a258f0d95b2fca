"""Capability interfaces for the external systems the correlators consume.

Production adapters live in ``github_client``, ``deploy_client`` and
``circleci_client``; ``cached_clients`` wraps them with the local cache.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

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


class PullRequestSource(Protocol):
    """Issue/PR and commit source (GitHub)."""

    def list_pull_requests(
        self, owner: str, repo: str, since: datetime, until: datetime
    ) -> List[PullRequest]: ...

    def list_reviews(self, owner: str, repo: str, pr_number: int) -> List[Review]: ...

    def list_commits(
        self, owner: str, repo: str, since: datetime, until: datetime
    ) -> List[CommitRef]: ...

    def get_commit(self, owner: str, repo: str, sha: str) -> Commit: ...


class DeploymentSource(Protocol):
    """Deployment source (Cloud Deploy)."""

    def list_delivery_pipelines(self, project: str, region: str) -> List[DeliveryPipeline]: ...

    def list_releases(
        self,
        pipeline_name: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Release]: ...

    def list_rollouts(self, release_name: str) -> List[Rollout]: ...


class FlakyTestSource(Protocol):
    """CI source (CircleCI insights)."""

    def fetch_flaky_tests(self, org: str, repo: str) -> List[FlakyTest]: ...
