"""Configuration parsing and validation for the stats tracker CLIs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from .errors import AuthenticationError, ConfigurationError
from .matcher import DEFAULT_MAIN_BRANCH

DATE_FORMAT = "%Y-%m-%d"
DEFAULT_LOOKBACK_DAYS = 30
DEFAULT_REGION = "us-east4"
DEFAULT_PIPELINE_FILTER = "test"

GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
CIRCLECI_TOKEN_ENV = "CIRCLECI_TOKEN"
GCP_TOKEN_ENV = "GOOGLE_OAUTH_ACCESS_TOKEN"


@dataclass(frozen=True)
class CacheSettings:
    """TTL policy for cached API responses."""

    enabled: bool = True
    long_ttl: timedelta = timedelta(hours=24)
    short_ttl: timedelta = timedelta(hours=1)
    historical_after: timedelta = timedelta(days=7)
    flaky_tests_ttl: timedelta = timedelta(hours=1)
    # Commits never change once pushed.
    commit_ttl: timedelta = timedelta(0)


@dataclass(frozen=True)
class DateWindow:
    """Validated ``[since, until]`` query window in UTC."""

    since: datetime
    until: datetime


@dataclass(frozen=True)
class PRTrackerConfig:
    """Validated runtime settings for ``pr-tracker``."""

    owner: str
    repo: str
    window: DateWindow
    deny_list: Tuple[str, ...]
    github_token: str
    tags_owner: Optional[str] = None
    tags_repo: Optional[str] = None
    cache: CacheSettings = CacheSettings()


@dataclass(frozen=True)
class DeployTrackerConfig:
    """Validated runtime settings for ``deploy-tracker``."""

    project: str
    region: str
    github_org: str
    tags_repo: str
    services_repo: str
    window: DateWindow
    github_token: str
    gcp_token: str
    pipeline_filter: str = DEFAULT_PIPELINE_FILTER
    main_branch: str = DEFAULT_MAIN_BRANCH
    cache: CacheSettings = CacheSettings()


@dataclass(frozen=True)
class FlakyTestsConfig:
    """Validated runtime settings for ``flaky-tests``."""

    org: str
    repo: str
    circleci_token: str
    cache: CacheSettings = CacheSettings()


def parse_date(value: str, option: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` string as UTC midnight.

    Raises:
        ConfigurationError: If the value is not a valid date.
    """
    try:
        parsed = datetime.strptime(value.strip(), DATE_FORMAT)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid date format for '{option}': {value!r}. Please use YYYY-MM-DD."
        ) from exc
    return parsed.replace(tzinfo=timezone.utc)


def build_window(
    since: Optional[str],
    until: Optional[str],
    now: Optional[datetime] = None,
) -> DateWindow:
    """Build the query window, defaulting to the last 30 days.

    Raises:
        ConfigurationError: If a date is malformed or the window is empty.
    """
    current = now or datetime.now(timezone.utc)
    start = parse_date(since, "since") if since else current - timedelta(days=DEFAULT_LOOKBACK_DAYS)
    end = parse_date(until, "until") if until else current

    if start > end:
        raise ConfigurationError("Start date cannot be after end date.")
    if start == end:
        raise ConfigurationError("Date range is empty: start and end date are the same.")

    return DateWindow(since=start, until=end)


def parse_deny_list(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated list of logins, dropping blanks."""
    if not value:
        return ()
    return tuple(login.strip() for login in value.split(",") if login.strip())


def parse_repository(value: str, option: str = "repository") -> Tuple[str, str]:
    """Split an ``owner/repo`` string.

    Raises:
        ConfigurationError: If the value is not exactly ``owner/repo``.
    """
    parts = value.strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(f"Invalid {option} format {value!r}. Use 'owner/repo'.")
    return parts[0], parts[1]


def _require_token(env_name: str, purpose: str) -> str:
    token = os.getenv(env_name, "").strip()
    if not token:
        raise AuthenticationError(
            f"Missing required {purpose} token. "
            f"Set the '{env_name}' environment variable before running."
        )
    return token


def _require(value: Optional[str], option: str) -> str:
    if not value or not value.strip():
        raise ConfigurationError(f"Missing required parameter '{option}'.")
    return value.strip()


def load_pr_tracker_config(
    repository: str,
    since: Optional[str] = None,
    until: Optional[str] = None,
    exclude: Optional[str] = None,
    tags_repo: Optional[str] = None,
    use_cache: bool = True,
) -> PRTrackerConfig:
    """Build and validate ``pr-tracker`` configuration.

    Raises:
        ConfigurationError: If the repository or dates are invalid.
        AuthenticationError: If ``GITHUB_TOKEN`` is not configured.
    """
    owner, repo = parse_repository(repository)
    window = build_window(since, until)

    tags_owner: Optional[str] = None
    tags_name: Optional[str] = None
    if tags_repo:
        tags_owner, tags_name = parse_repository(tags_repo, "tags repository")

    return PRTrackerConfig(
        owner=owner,
        repo=repo,
        window=window,
        deny_list=parse_deny_list(exclude),
        github_token=_require_token(GITHUB_TOKEN_ENV, "GitHub"),
        tags_owner=tags_owner,
        tags_repo=tags_name,
        cache=CacheSettings(enabled=use_cache),
    )


def load_deploy_tracker_config(
    project: Optional[str],
    github_org: Optional[str],
    tags_repo: Optional[str],
    services_repo: Optional[str],
    region: str = DEFAULT_REGION,
    since: Optional[str] = None,
    until: Optional[str] = None,
    pipeline_filter: str = DEFAULT_PIPELINE_FILTER,
    main_branch: str = DEFAULT_MAIN_BRANCH,
    use_cache: bool = True,
) -> DeployTrackerConfig:
    """Build and validate ``deploy-tracker`` configuration.

    Raises:
        ConfigurationError: If a required parameter is missing or dates are invalid.
        AuthenticationError: If a GitHub or Google Cloud token is not configured.
    """
    project_id = _require(project, "project")
    org = _require(github_org, "github-org")
    tags = _require(tags_repo, "tags-repo")
    services = _require(services_repo, "services-repo")
    window = build_window(since, until)

    return DeployTrackerConfig(
        project=project_id,
        region=_require(region, "region"),
        github_org=org,
        tags_repo=tags,
        services_repo=services,
        window=window,
        github_token=_require_token(GITHUB_TOKEN_ENV, "GitHub"),
        gcp_token=_require_token(GCP_TOKEN_ENV, "Google Cloud access"),
        pipeline_filter=pipeline_filter,
        main_branch=_require(main_branch, "main-branch"),
        cache=CacheSettings(enabled=use_cache),
    )


def load_flaky_tests_config(org: str, repo: str, use_cache: bool = True) -> FlakyTestsConfig:
    """Build and validate ``flaky-tests`` configuration.

    Raises:
        ConfigurationError: If org or repo is empty.
        AuthenticationError: If ``CIRCLECI_TOKEN`` is not configured.
    """
    return FlakyTestsConfig(
        org=_require(org, "org"),
        repo=_require(repo, "repo"),
        circleci_token=_require_token(CIRCLECI_TOKEN_ENV, "CircleCI"),
        cache=CacheSettings(enabled=use_cache),
    )
