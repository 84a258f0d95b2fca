"""Pull request review latency extraction.

For every eligible pull request this module computes:
- time to first review (first non-author, non-pending review of any state)
- time to first approval
- time waiting for review, when there is none yet
- the tags-repository commits that deployed the pull request, if a tags
  repository is configured
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from .errors import ApiError
from .matcher import CommitReferenceMatcher
from .models import PullRequest, PullRequestMetric, Review, TagCommit
from .sources import PullRequestSource

logger = logging.getLogger(__name__)

OPEN_PR_TAG_WINDOW = timedelta(days=30)

STATE_APPROVED = "APPROVED"
STATE_PENDING = "PENDING"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PullRequestCorrelator:
    """Turns pull requests and their reviews into ``PullRequestMetric`` records."""

    def __init__(
        self,
        source: PullRequestSource,
        deny_list: Iterable[str] = (),
        matcher: Optional[CommitReferenceMatcher] = None,
        tags_owner: Optional[str] = None,
        tags_repo: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the correlator.

        Args:
            source: Pull request, review and commit source.
            deny_list: Logins whose PRs and reviews are ignored (bots, etc.).
            matcher: Diff matcher used for tag-commit enrichment.
            tags_owner: Owner of the tags repository; enrichment is skipped
                unless both owner and repository are set.
            tags_repo: Name of the tags repository.
            clock: Callable returning the current UTC time.
        """
        self._source = source
        self._deny_list = frozenset(deny_list)
        self._matcher = matcher or CommitReferenceMatcher()
        self._tags_owner = tags_owner
        self._tags_repo = tags_repo
        self._clock = clock or _utc_now

    @property
    def tags_enabled(self) -> bool:
        return bool(self._tags_owner and self._tags_repo)

    def is_eligible(self, pr: PullRequest) -> bool:
        """Drop drafts, closed-unmerged PRs and deny-listed authors, in that order."""
        if pr.draft:
            return False
        if pr.is_closed and pr.merged_at is None:
            return False
        if pr.author in self._deny_list:
            return False
        return True

    def correlate(self, owner: str, repo: str, prs: Iterable[PullRequest]) -> List[PullRequestMetric]:
        """Compute review metrics for every eligible pull request.

        A PR whose reviews cannot be fetched is logged and left out; a PR
        with no qualifying review is still reported with ``has_review=False``.
        """
        results: List[PullRequestMetric] = []
        skipped = 0

        for pr in prs:
            if not self.is_eligible(pr):
                skipped += 1
                continue

            try:
                reviews = self._source.list_reviews(owner, repo, pr.number)
            except ApiError as exc:
                logger.warning(
                    "Error fetching reviews for PR #%s: %s",
                    pr.number,
                    exc,
                    extra={"pr_number": pr.number},
                )
                continue

            tag_commits: Tuple[TagCommit, ...] = ()
            if self.tags_enabled:
                tag_commits = tuple(self.find_tag_commits(pr))

            results.append(self._build_metric(pr, reviews, tag_commits))

        logger.info(
            "Processed pull requests",
            extra={"owner": owner, "repo": repo, "metrics": len(results), "ineligible": skipped},
        )
        return results

    def _build_metric(
        self,
        pr: PullRequest,
        reviews: Iterable[Review],
        tag_commits: Tuple[TagCommit, ...],
    ) -> PullRequestMetric:
        first_review: Optional[Review] = None
        first_approval: Optional[Review] = None

        for review in reviews:
            state = review.state.upper()
            if state == STATE_PENDING or review.author == pr.author:
                continue
            if review.author in self._deny_list:
                continue
            if review.submitted_at is None:
                continue

            # Strict comparison: on equal timestamps the earlier API entry wins.
            if first_review is None or review.submitted_at < first_review.submitted_at:
                first_review = review
            if state == STATE_APPROVED:
                if first_approval is None or review.submitted_at < first_approval.submitted_at:
                    first_approval = review

        if first_review is None:
            return PullRequestMetric(
                pr_number=pr.number,
                title=pr.title,
                author=pr.author,
                has_review=False,
                time_since_creation=self._clock() - pr.created_at,
                tag_commits=tag_commits,
            )

        return PullRequestMetric(
            pr_number=pr.number,
            title=pr.title,
            author=pr.author,
            has_review=True,
            first_reviewer=first_review.author,
            first_review_state=first_review.state.upper(),
            time_to_first_review=first_review.submitted_at - pr.created_at,
            approver=first_approval.author if first_approval else None,
            time_to_approval=(first_approval.submitted_at - pr.created_at) if first_approval else None,
            tag_commits=tag_commits,
        )

    def tag_window(self, pr: PullRequest) -> Tuple[datetime, datetime]:
        """Return the period in which deployments of ``pr`` are searched.

        The window ends at the merge time, else the close time, else 30 days
        after creation for PRs that are still open.
        """
        end = pr.merged_at or pr.closed_at or pr.created_at + OPEN_PR_TAG_WINDOW
        return pr.created_at, end

    def find_tag_commits(self, pr: PullRequest) -> List[TagCommit]:
        """Return every tags-repository commit whose diff deploys ``pr``.

        Listing errors yield no tag commits; a commit that cannot be fetched
        is skipped. Neither aborts processing of the pull request.
        """
        if not self.tags_enabled:
            return []

        since, until = self.tag_window(pr)
        try:
            candidates = self._source.list_commits(self._tags_owner, self._tags_repo, since, until)
        except ApiError as exc:
            logger.warning(
                "Error fetching commits from tags repo for PR #%s: %s",
                pr.number,
                exc,
                extra={"pr_number": pr.number, "tags_repo": self._tags_repo},
            )
            return []

        tag_commits: List[TagCommit] = []
        for candidate in candidates:
            try:
                commit = self._source.get_commit(self._tags_owner, self._tags_repo, candidate.sha)
            except ApiError as exc:
                logger.warning(
                    "Error fetching commit %s from tags repo: %s",
                    candidate.sha,
                    exc,
                    extra={"pr_number": pr.number, "sha": candidate.sha},
                )
                continue

            match = self._matcher.find_pr_reference(commit, pr.number, pr.head_ref)
            if match is not None:
                tag_commits.append(match)

        return tag_commits
