"""GitHub REST API client for pull request, review and commit retrieval."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from .errors import ApiError
from .models import (
    Commit,
    CommitFile,
    CommitRef,
    PullRequest,
    Review,
    format_timestamp,
    parse_timestamp,
)
from .rest import JsonApiClient, Timeout

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubClient(JsonApiClient):
    """Typed client for the subset of GitHub APIs used by the trackers."""

    _SERVICE_NAME = "GitHub"
    _PAGE_SIZE = 100
    _REVIEW_TIMEOUT_SECONDS = 10

    def __init__(self, token: str, base_url: str = GITHUB_API_URL) -> None:
        super().__init__(
            base_url,
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
        )

    def _iter_pages(
        self,
        path: str,
        params: Dict[str, Any],
        timeout: Timeout = None,
    ) -> Iterator[List[Dict[str, Any]]]:
        """Yield each page of a list endpoint, following ``Link: rel=next``."""
        url: Optional[str] = path
        query: Optional[Dict[str, Any]] = dict(params, per_page=self._PAGE_SIZE)

        while url:
            response = self._get(url, params=query, timeout=timeout)
            page = self._decode(response, self._build_url(url))
            if not isinstance(page, list):
                raise ApiError(f"GitHub API returned unexpected payload shape: GET {url}")
            yield page

            # The next link already carries the query string.
            url = (response.links.get("next") or {}).get("url")
            query = None

    def list_pull_requests(
        self,
        owner: str,
        repo: str,
        since: datetime,
        until: datetime,
    ) -> List[PullRequest]:
        """List pull requests created within ``[since, until]``.

        Pages are requested newest first, so listing stops at the first page
        whose oldest pull request predates ``since``.
        """
        pull_requests: List[PullRequest] = []
        params = {"state": "all", "sort": "created", "direction": "desc"}

        for page in self._iter_pages(f"repos/{owner}/{repo}/pulls", params):
            page_prs = [self._parse_pull_request(item) for item in page]
            for pr in page_prs:
                if since <= pr.created_at <= until:
                    pull_requests.append(pr)

            if not page_prs or page_prs[-1].created_at < since:
                break

        logger.debug(
            "Listed pull requests",
            extra={"owner": owner, "repo": repo, "count": len(pull_requests)},
        )
        return pull_requests

    def list_reviews(self, owner: str, repo: str, pr_number: int) -> List[Review]:
        """List reviews for a pull request using a short fixed timeout."""
        reviews: List[Review] = []
        path = f"repos/{owner}/{repo}/pulls/{pr_number}/reviews"

        for page in self._iter_pages(path, {}, timeout=self._REVIEW_TIMEOUT_SECONDS):
            for item in page:
                user = item.get("user") or {}
                reviews.append(
                    Review(
                        author=str(user.get("login") or ""),
                        state=str(item.get("state") or ""),
                        submitted_at=parse_timestamp(item.get("submitted_at")),
                    )
                )

        return reviews

    def list_commits(
        self,
        owner: str,
        repo: str,
        since: datetime,
        until: datetime,
    ) -> List[CommitRef]:
        """List commit SHAs on the default branch between ``since`` and ``until``."""
        params = {"since": format_timestamp(since), "until": format_timestamp(until)}
        commits: List[CommitRef] = []

        for page in self._iter_pages(f"repos/{owner}/{repo}/commits", params):
            for item in page:
                sha = item.get("sha")
                if sha:
                    commits.append(CommitRef(sha=str(sha)))

        return commits

    def get_commit(self, owner: str, repo: str, sha: str) -> Commit:
        """Fetch a single commit including its per-file patches."""
        payload = self._get_json(f"repos/{owner}/{repo}/commits/{sha}")
        details = payload.get("commit") or {}
        author = details.get("author") or {}
        committer = details.get("committer") or {}

        return Commit(
            sha=str(payload.get("sha") or sha),
            message=str(details.get("message") or ""),
            author_name=str(author.get("name") or ""),
            author_date=parse_timestamp(author.get("date")),
            committer_date=parse_timestamp(committer.get("date")),
            files=tuple(
                CommitFile(filename=str(item.get("filename") or ""), patch=item.get("patch"))
                for item in payload.get("files") or []
            ),
        )

    def _parse_pull_request(self, item: Dict[str, Any]) -> PullRequest:
        number = item.get("number")
        created_at = parse_timestamp(item.get("created_at"))
        if number is None or created_at is None:
            raise ApiError(f"GitHub pull request payload is missing required fields: payload={item}")

        user = item.get("user") or {}
        head = item.get("head") or {}
        return PullRequest(
            number=int(number),
            title=str(item.get("title") or ""),
            author=str(user.get("login") or ""),
            created_at=created_at,
            state=str(item.get("state") or ""),
            draft=bool(item.get("draft", False)),
            merged_at=parse_timestamp(item.get("merged_at")),
            closed_at=parse_timestamp(item.get("closed_at")),
            head_ref=str(head.get("ref") or ""),
        )
