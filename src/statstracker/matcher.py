"""Commit diff matching for deployment tag references.

Deployment tooling records what it deployed by committing lines such as::

    app2: pull-123_abc123def456
    app2: 2024_01_15__14_30_45__feature-branch__abc123def456

to a tags repository. This module scans the added lines of such a commit's
diff to link it back to a pull request or to the application commit.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional

from .models import Commit, TagCommit

logger = logging.getLogger(__name__)

_LINE_PREFIX = r"\+\s*\w+:\s*"
_SHA = r"[a-f0-9]{7,40}"
_TIMESTAMP = r"\d{4}_\d{2}_\d{2}__\d{2}_\d{2}_\d{2}"

DEFAULT_MAIN_BRANCH = "main"


@dataclass(frozen=True, slots=True)
class ReleaseReference:
    """Application commit and optional PR number recovered from a tag commit."""

    app_commit_sha: str
    pr_number: str = ""


def iter_added_lines(commit: Commit) -> Iterator[str]:
    """Yield added diff lines in file order, then line order."""
    for commit_file in commit.files:
        if not commit_file.patch:
            continue
        for line in commit_file.patch.split("\n"):
            if line.startswith("+"):
                yield line


class CommitReferenceMatcher:
    """Matches tag-repository commit diffs against PRs and releases."""

    def __init__(self, main_branch: str = DEFAULT_MAIN_BRANCH) -> None:
        """Initialize the release-search patterns.

        Args:
            main_branch: Branch token expected in timestamped tags produced by
                default-branch builds.
        """
        self._main_branch = main_branch
        self._release_pull_pattern = re.compile(_LINE_PREFIX + rf"pull-(\d+)_({_SHA})")
        self._release_branch_pattern = re.compile(
            _LINE_PREFIX + _TIMESTAMP + "__" + re.escape(main_branch) + rf"__({_SHA})"
        )

    @property
    def main_branch(self) -> str:
        return self._main_branch

    def find_pr_reference(
        self,
        commit: Commit,
        pr_number: int,
        pr_branch: str = "",
    ) -> Optional[TagCommit]:
        """Return a ``TagCommit`` when the diff deploys the given pull request.

        A line matches when it references ``pull-<pr_number>_<sha>`` or, if
        ``pr_branch`` is set, a timestamped tag for exactly that branch.
        """
        pull_pattern = re.compile(_LINE_PREFIX + f"pull-{int(pr_number)}_{_SHA}")
        branch_pattern: Optional[re.Pattern[str]] = None
        if pr_branch:
            branch_pattern = re.compile(
                _LINE_PREFIX + _TIMESTAMP + "__" + re.escape(pr_branch) + f"__{_SHA}"
            )

        for line in iter_added_lines(commit):
            if pull_pattern.search(line) or (branch_pattern is not None and branch_pattern.search(line)):
                return TagCommit(
                    sha=commit.sha,
                    message=commit.message,
                    date=commit.author_date,
                    author=commit.author_name,
                )

        return None

    def find_release_reference(self, commit: Commit) -> Optional[ReleaseReference]:
        """Recover the application commit SHA (and PR number) a tag commit deployed."""
        for line in iter_added_lines(commit):
            match = self._release_pull_pattern.search(line)
            if match:
                return ReleaseReference(app_commit_sha=match.group(2), pr_number=match.group(1))

            match = self._release_branch_pattern.search(line)
            if match:
                return ReleaseReference(app_commit_sha=match.group(1))

        logger.debug("No release reference in tag commit", extra={"sha": commit.sha})
        return None
