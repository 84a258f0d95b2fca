"""Domain models for GitHub, Cloud Deploy and CircleCI statistics.

Source records model only the subset of API payload fields the correlators
need. Records that are stored in the local cache expose ``to_dict`` and
``from_dict`` so they survive a JSON round trip.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO8601 API timestamp into a timezone-aware UTC datetime."""
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    # Cloud Deploy reports nanosecond precision which fromisoformat rejects.
    if "." in normalized:
        head, _, tail = normalized.partition(".")
        digits = tail
        offset = ""
        for marker in ("+", "-"):
            if marker in tail:
                digits, _, rest = tail.partition(marker)
                offset = marker + rest
                break
        normalized = f"{head}.{digits[:6].ljust(6, '0')}{offset}"

    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as a UTC ISO8601 string, or ``None``."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class PullRequest:
    """Represents the pull request fields used for review and tag analysis."""

    number: int
    title: str
    author: str
    created_at: datetime
    state: str
    draft: bool = False
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    head_ref: str = ""

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "author": self.author,
            "created_at": format_timestamp(self.created_at),
            "state": self.state,
            "draft": self.draft,
            "merged_at": format_timestamp(self.merged_at),
            "closed_at": format_timestamp(self.closed_at),
            "head_ref": self.head_ref,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PullRequest:
        return cls(
            number=int(data["number"]),
            title=str(data.get("title") or ""),
            author=str(data.get("author") or ""),
            created_at=parse_timestamp(data["created_at"]),
            state=str(data.get("state") or ""),
            draft=bool(data.get("draft", False)),
            merged_at=parse_timestamp(data.get("merged_at")),
            closed_at=parse_timestamp(data.get("closed_at")),
            head_ref=str(data.get("head_ref") or ""),
        )


@dataclass(frozen=True, slots=True)
class Review:
    """Represents a single pull request review submission."""

    author: str
    state: str
    submitted_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "author": self.author,
            "state": self.state,
            "submitted_at": format_timestamp(self.submitted_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Review:
        return cls(
            author=str(data.get("author") or ""),
            state=str(data.get("state") or ""),
            submitted_at=parse_timestamp(data.get("submitted_at")),
        )


@dataclass(frozen=True, slots=True)
class CommitRef:
    """Represents a commit listing entry, before its diff is fetched."""

    sha: str


@dataclass(frozen=True, slots=True)
class CommitFile:
    """Represents one changed file of a commit and its unified diff patch."""

    filename: str
    patch: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Commit:
    """Represents a fully fetched commit including per-file patches."""

    sha: str
    message: str
    author_name: str
    author_date: Optional[datetime]
    committer_date: Optional[datetime]
    files: Tuple[CommitFile, ...] = ()

    @property
    def timestamp(self) -> Optional[datetime]:
        """Committer time when known, otherwise author time."""
        return self.committer_date or self.author_date

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "message": self.message,
            "author_name": self.author_name,
            "author_date": format_timestamp(self.author_date),
            "committer_date": format_timestamp(self.committer_date),
            "files": [{"filename": item.filename, "patch": item.patch} for item in self.files],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Commit:
        return cls(
            sha=str(data["sha"]),
            message=str(data.get("message") or ""),
            author_name=str(data.get("author_name") or ""),
            author_date=parse_timestamp(data.get("author_date")),
            committer_date=parse_timestamp(data.get("committer_date")),
            files=tuple(
                CommitFile(filename=str(item.get("filename") or ""), patch=item.get("patch"))
                for item in data.get("files") or []
            ),
        )


@dataclass(frozen=True, slots=True)
class DeliveryPipeline:
    """Represents a Cloud Deploy delivery pipeline by its full resource name."""

    name: str


@dataclass(frozen=True, slots=True)
class Release:
    """Represents a Cloud Deploy release."""

    name: str
    create_time: Optional[datetime]
    render_state: str
    annotations: Mapping[str, str] = field(default_factory=dict)

    @property
    def release_id(self) -> str:
        """Trailing path segment of the release resource name."""
        return self.name.rsplit("/", 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "create_time": format_timestamp(self.create_time),
            "render_state": self.render_state,
            "annotations": dict(self.annotations),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Release:
        return cls(
            name=str(data["name"]),
            create_time=parse_timestamp(data.get("create_time")),
            render_state=str(data.get("render_state") or ""),
            annotations={str(k): str(v) for k, v in (data.get("annotations") or {}).items()},
        )


@dataclass(frozen=True, slots=True)
class Rollout:
    """Represents one rollout (stage execution) of a release."""

    name: str
    state: str
    deploy_end_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state,
            "deploy_end_time": format_timestamp(self.deploy_end_time),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rollout:
        return cls(
            name=str(data.get("name") or ""),
            state=str(data.get("state") or ""),
            deploy_end_time=parse_timestamp(data.get("deploy_end_time")),
        )


@dataclass(frozen=True, slots=True)
class PipelineRun:
    """Represents the CI pipeline run in which a flaky test last occurred."""

    workflow_id: str
    pipeline_id: str
    created_at: Optional[datetime]


@dataclass(frozen=True, slots=True)
class FlakyTest:
    """Represents a flaky test reported by CircleCI insights."""

    test_name: str
    class_name: str
    times_flaky: int
    pipeline_run: Optional[PipelineRun] = None

    def to_dict(self) -> Dict[str, Any]:
        run = None
        if self.pipeline_run is not None:
            run = {
                "workflow_id": self.pipeline_run.workflow_id,
                "pipeline_id": self.pipeline_run.pipeline_id,
                "created_at": format_timestamp(self.pipeline_run.created_at),
            }
        return {
            "test_name": self.test_name,
            "class_name": self.class_name,
            "times_flaky": self.times_flaky,
            "pipeline_run": run,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FlakyTest:
        run_data = data.get("pipeline_run")
        run = None
        if run_data:
            run = PipelineRun(
                workflow_id=str(run_data.get("workflow_id") or ""),
                pipeline_id=str(run_data.get("pipeline_id") or ""),
                created_at=parse_timestamp(run_data.get("created_at")),
            )
        return cls(
            test_name=str(data.get("test_name") or ""),
            class_name=str(data.get("class_name") or ""),
            times_flaky=int(data.get("times_flaky") or 0),
            pipeline_run=run,
        )


@dataclass(frozen=True, slots=True)
class TagCommit:
    """A tags-repository commit whose diff references a pull request."""

    sha: str
    message: str
    date: Optional[datetime]
    author: str


@dataclass(frozen=True, slots=True)
class DeploymentMetric:
    """Commit-to-deploy latency for a single release."""

    release_id: str
    release_name: str
    commit_sha: str
    pr_number: str
    commit_time: datetime
    release_start_time: Optional[datetime]
    release_finish_time: datetime
    latency: timedelta
    successful: bool = True


@dataclass(frozen=True, slots=True)
class PRDeploymentStats:
    """Deployment statistics aggregated for one pull request."""

    pr_number: str
    deployment_count: int
    first_commit_time: datetime
    last_finish_time: datetime
    delta: timedelta
    commit_shas: FrozenSet[str]
    deployments: Tuple[DeploymentMetric, ...]


@dataclass(frozen=True, slots=True)
class PullRequestMetric:
    """Review latency measurements for one eligible pull request."""

    pr_number: int
    title: str
    author: str
    has_review: bool
    first_reviewer: str = ""
    first_review_state: str = ""
    time_to_first_review: Optional[timedelta] = None
    approver: Optional[str] = None
    time_to_approval: Optional[timedelta] = None
    time_since_creation: Optional[timedelta] = None
    tag_commits: Tuple[TagCommit, ...] = ()


@dataclass(frozen=True, slots=True)
class FlakyTestMetric:
    """Reporting view of a flaky test."""

    test_name: str
    class_name: str
    times_flaky: int
    last_occurred: Optional[datetime] = None
