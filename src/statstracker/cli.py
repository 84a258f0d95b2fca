"""Command-line argument parsing for the stats tracker CLIs."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from .config import DEFAULT_PIPELINE_FILTER, DEFAULT_REGION
from .matcher import DEFAULT_MAIN_BRANCH


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--no-cache",
        dest="use_cache",
        action="store_false",
        help="Bypass the local response cache.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging on stderr.",
    )


def _add_date_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--since",
        default=None,
        help="Start date (YYYY-MM-DD, UTC). Defaults to 30 days ago.",
    )
    parser.add_argument(
        "--until",
        default=None,
        help="End date (YYYY-MM-DD, UTC). Defaults to now.",
    )


def parse_pr_tracker_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for ``pr-tracker``.

    Returns:
        Parsed CLI arguments containing the repository, date range, deny-list,
        optional tags repository and cache/logging switches.
    """
    parser = argparse.ArgumentParser(
        prog="pr-tracker",
        description=(
            "Report GitHub pull-request review latency: time to first review, "
            "time to approval and time waiting for review."
        ),
    )
    parser.add_argument(
        "repository",
        help="GitHub repository to analyze, as owner/repo.",
    )
    _add_date_options(parser)
    parser.add_argument(
        "--exclude",
        default=None,
        help="Comma-separated logins whose PRs and reviews are ignored (e.g. bots).",
    )
    parser.add_argument(
        "--tags-repo",
        default=None,
        help="Tags repository (owner/repo) searched for commits that deployed each PR.",
    )
    _add_common_options(parser)

    return parser.parse_args(argv)


def parse_deploy_tracker_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for ``deploy-tracker``.

    Returns:
        Parsed CLI arguments containing the Cloud Deploy project and region,
        GitHub organization and repositories, pipeline filter, main branch,
        date range and cache/logging switches.
    """
    parser = argparse.ArgumentParser(
        prog="deploy-tracker",
        description="Report commit-to-deploy latency for Google Cloud Deploy releases.",
    )
    parser.add_argument(
        "--project",
        required=True,
        help="Google Cloud project ID.",
    )
    parser.add_argument(
        "--region",
        default=DEFAULT_REGION,
        help=f"Cloud Deploy region (default: {DEFAULT_REGION}).",
    )
    parser.add_argument(
        "--github-org",
        required=True,
        help="GitHub organization owning the tags and services repositories.",
    )
    parser.add_argument(
        "--tags-repo",
        required=True,
        help="Repository holding image tag bumps referenced by release annotations.",
    )
    parser.add_argument(
        "--services-repo",
        required=True,
        help="Repository holding the application commits.",
    )
    parser.add_argument(
        "--pipeline-filter",
        default=DEFAULT_PIPELINE_FILTER,
        help=f"Substring a delivery pipeline name must contain (default: {DEFAULT_PIPELINE_FILTER!r}).",
    )
    parser.add_argument(
        "--main-branch",
        default=DEFAULT_MAIN_BRANCH,
        help=f"Branch name used in main-branch image tags (default: {DEFAULT_MAIN_BRANCH}).",
    )
    _add_date_options(parser)
    _add_common_options(parser)

    return parser.parse_args(argv)


def parse_flaky_tests_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for ``flaky-tests``."""
    parser = argparse.ArgumentParser(
        prog="flaky-tests",
        description="List CircleCI flaky tests for a GitHub project, most frequent first.",
    )
    parser.add_argument("org", help="GitHub organization.")
    parser.add_argument("repo", help="Repository name.")
    _add_common_options(parser)

    return parser.parse_args(argv)
