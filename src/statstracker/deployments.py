"""Commit-to-deploy latency extraction for Cloud Deploy releases.

A release is traced back to the application commit it shipped:

1. The release's ``git-sha`` (or ``commit`` URL) annotation names a commit
   in the tags repository.
2. That commit's diff references the application commit, and possibly the
   pull request it was built from.
3. The application commit in the services repository supplies the commit
   time; the last succeeded rollout supplies the finish time.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .errors import ApiError, CorrelationError
from .matcher import CommitReferenceMatcher
from .models import DeploymentMetric, PRDeploymentStats, Release
from .sources import DeploymentSource, PullRequestSource

logger = logging.getLogger(__name__)

ANNOTATION_GIT_SHA = "git-sha"
ANNOTATION_COMMIT_URL = "commit"
RENDER_SUCCEEDED = "SUCCEEDED"
ROLLOUT_SUCCEEDED = "SUCCEEDED"


@dataclass(frozen=True, slots=True)
class ResolvedCommit:
    """Application commit behind a release."""

    sha: str
    pr_number: str
    commit_time: datetime


def collect_releases(
    source: DeploymentSource,
    project: str,
    region: str,
    since: datetime,
    until: datetime,
    pipeline_filter: str,
) -> List[Release]:
    """Collect successfully rendered releases from matching delivery pipelines.

    Pipelines are selected by a case-insensitive substring match on their
    name. Releases must have been created within ``[since, until]``.
    """
    needle = pipeline_filter.lower()
    pipelines = [
        pipeline
        for pipeline in source.list_delivery_pipelines(project, region)
        if needle in pipeline.name.lower()
    ]
    if not pipelines:
        logger.warning(
            "No delivery pipelines matching %r found",
            pipeline_filter,
            extra={"project": project, "region": region},
        )
        return []

    releases: List[Release] = []
    for pipeline in pipelines:
        pipeline_releases = source.list_releases(pipeline.name, since, until)
        succeeded = [release for release in pipeline_releases if release.render_state == RENDER_SUCCEEDED]
        logger.info(
            "Pipeline %s: %d releases in date range, %d successfully rendered",
            pipeline.name,
            len(pipeline_releases),
            len(succeeded),
            extra={"pipeline": pipeline.name},
        )
        releases.extend(succeeded)

    return releases


def tags_commit_sha(release: Release) -> Optional[str]:
    """Return the tags-repository commit SHA recorded on a release, if any."""
    git_sha = release.annotations.get(ANNOTATION_GIT_SHA)
    if git_sha:
        return git_sha.strip()

    commit_url = release.annotations.get(ANNOTATION_COMMIT_URL)
    if commit_url:
        sha = commit_url.rstrip("/").rsplit("/", 1)[-1]
        return sha or None

    return None


class DeploymentCorrelator:
    """Turns Cloud Deploy releases into ``DeploymentMetric`` records."""

    def __init__(
        self,
        deploy_source: DeploymentSource,
        github_source: PullRequestSource,
        github_org: str,
        tags_repo: str,
        services_repo: str,
        matcher: Optional[CommitReferenceMatcher] = None,
    ) -> None:
        self._deploy_source = deploy_source
        self._github_source = github_source
        self._github_org = github_org
        self._tags_repo = tags_repo
        self._services_repo = services_repo
        self._matcher = matcher or CommitReferenceMatcher()

    def resolve_commit(self, release: Release) -> ResolvedCommit:
        """Resolve the application commit, PR number and commit time of a release.

        Raises:
            CorrelationError: If an annotation is missing or the diff has no reference.
            ApiError: If a commit cannot be fetched.
        """
        tags_sha = tags_commit_sha(release)
        if not tags_sha:
            raise CorrelationError("no commit SHA found in release annotations")

        tags_commit = self._github_source.get_commit(self._github_org, self._tags_repo, tags_sha)
        if not tags_commit.files:
            raise CorrelationError(f"no files in diff of tags commit {tags_sha}")

        reference = self._matcher.find_release_reference(tags_commit)
        if reference is None:
            raise CorrelationError(f"no application commit SHA found in diff of tags commit {tags_sha}")

        app_commit = self._github_source.get_commit(
            self._github_org, self._services_repo, reference.app_commit_sha
        )
        if app_commit.timestamp is None:
            raise CorrelationError(f"application commit {reference.app_commit_sha} has no timestamp")

        return ResolvedCommit(
            sha=reference.app_commit_sha,
            pr_number=reference.pr_number,
            commit_time=app_commit.timestamp,
        )

    def release_finish_time(self, release: Release) -> datetime:
        """Return the latest end time among the release's succeeded rollouts.

        Raises:
            CorrelationError: If no rollout has succeeded yet.
            ApiError: If rollouts cannot be listed.
        """
        finish_times = [
            rollout.deploy_end_time
            for rollout in self._deploy_source.list_rollouts(release.name)
            if rollout.state == ROLLOUT_SUCCEEDED and rollout.deploy_end_time is not None
        ]
        if not finish_times:
            raise CorrelationError(f"no successful rollouts found for release {release.release_id}")
        return max(finish_times)

    def correlate(self, releases: Iterable[Release]) -> List[DeploymentMetric]:
        """Compute a ``DeploymentMetric`` for each release that can be traced.

        Releases that fail any step are logged and omitted; the latency is
        kept as-is even when negative.
        """
        results: List[DeploymentMetric] = []

        for release in releases:
            release_id = release.release_id

            try:
                resolved = self.resolve_commit(release)
            except (CorrelationError, ApiError) as exc:
                logger.warning(
                    "Error extracting commit SHA for release %s: %s",
                    release_id,
                    exc,
                    extra={"release_id": release_id},
                )
                continue

            try:
                finish_time = self.release_finish_time(release)
            except (CorrelationError, ApiError) as exc:
                logger.warning(
                    "Error getting release finish time for release %s: %s",
                    release_id,
                    exc,
                    extra={"release_id": release_id},
                )
                continue

            logger.debug(
                "Correlated release",
                extra={
                    "release_id": release_id,
                    "commit_sha": resolved.sha,
                    "pr_number": resolved.pr_number,
                },
            )
            results.append(
                DeploymentMetric(
                    release_id=release_id,
                    release_name=release.name,
                    commit_sha=resolved.sha,
                    pr_number=resolved.pr_number,
                    commit_time=resolved.commit_time,
                    release_start_time=release.create_time,
                    release_finish_time=finish_time,
                    latency=finish_time - resolved.commit_time,
                    successful=True,
                )
            )

        return results


def calculate_pr_deployment_stats(deployments: Iterable[DeploymentMetric]) -> List[PRDeploymentStats]:
    """Group deployments by pull request number.

    Deployments without a PR number are not part of any group. Groups are
    returned in order of first appearance.
    """
    by_pr: Dict[str, List[DeploymentMetric]] = defaultdict(list)
    for deployment in deployments:
        if deployment.pr_number:
            by_pr[deployment.pr_number].append(deployment)

    stats: List[PRDeploymentStats] = []
    for pr_number, pr_deployments in by_pr.items():
        first_commit_time = min(deployment.commit_time for deployment in pr_deployments)
        last_finish_time = max(deployment.release_finish_time for deployment in pr_deployments)
        stats.append(
            PRDeploymentStats(
                pr_number=pr_number,
                deployment_count=len(pr_deployments),
                first_commit_time=first_commit_time,
                last_finish_time=last_finish_time,
                delta=last_finish_time - first_commit_time,
                commit_shas=frozenset(deployment.commit_sha for deployment in pr_deployments),
                deployments=tuple(pr_deployments),
            )
        )

    return stats
