"""Entry points for the ``pr-tracker``, ``deploy-tracker`` and ``flaky-tests`` CLIs.

Each ``orchestrate_*`` function wires configuration, API clients, the
optional cache, the correlator and the report together and maps failures to
process exit codes:

- 0: success, including runs that found nothing to report
- 1: unexpected error
- 2: invalid configuration
- 3: missing credentials
- 4: API failure while fetching the initial listing
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Sequence

from .cache import Cache, new_default_cache
from .cached_clients import CachedCircleCIClient, CachedDeployClient, CachedGitHubClient
from .circleci_client import CircleCIClient
from .cli import parse_deploy_tracker_args, parse_flaky_tests_args, parse_pr_tracker_args
from .config import (
    CacheSettings,
    load_deploy_tracker_config,
    load_flaky_tests_config,
    load_pr_tracker_config,
)
from .deploy_client import CloudDeployClient
from .deployments import DeploymentCorrelator, calculate_pr_deployment_stats, collect_releases
from .errors import ApiError, AuthenticationError, CacheError, ConfigurationError
from .flaky_tests import process_flaky_tests
from .github_client import GitHubClient
from .matcher import CommitReferenceMatcher
from .pull_requests import PullRequestCorrelator
from .report import generate_deployment_report, generate_flaky_report, generate_pr_report

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_API_ERROR = 4

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr so stdout only carries the report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def open_cache(settings: CacheSettings) -> Optional[Cache]:
    """Open the default file cache, or return ``None`` when caching is off or unavailable."""
    if not settings.enabled:
        logger.debug("Response cache disabled")
        return None
    try:
        return new_default_cache()
    except CacheError as exc:
        logger.warning("Response cache unavailable, continuing without it: %s", exc)
        return None


def _close_all(*resources) -> None:
    for resource in resources:
        if resource is not None:
            resource.close()


def _exit_code_for(exc: Exception) -> int:
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIGURATION_ERROR
    if isinstance(exc, AuthenticationError):
        logger.error("Authentication error: %s", exc)
        return EXIT_AUTHENTICATION_ERROR
    if isinstance(exc, ApiError):
        logger.error("API error: %s", exc)
        return EXIT_API_ERROR
    logger.exception("Unexpected error: %s", exc)
    return EXIT_GENERIC_ERROR


def orchestrate_pr_tracker(argv: Optional[Sequence[str]] = None) -> int:
    """Run the pull request review report end to end.

    Returns:
        Process exit code.
    """
    try:
        args = parse_pr_tracker_args(argv)
        configure_logging(args.verbose)
        config = load_pr_tracker_config(
            repository=args.repository,
            since=args.since,
            until=args.until,
            exclude=args.exclude,
            tags_repo=args.tags_repo,
            use_cache=args.use_cache,
        )

        client = GitHubClient(token=config.github_token)
        cache = open_cache(config.cache)
        try:
            source = CachedGitHubClient(client, cache, config.cache) if cache is not None else client

            logger.info(
                "Fetching pull requests for %s/%s",
                config.owner,
                config.repo,
                extra={"since": config.window.since.isoformat(), "until": config.window.until.isoformat()},
            )
            prs = source.list_pull_requests(config.owner, config.repo, config.window.since, config.window.until)

            correlator = PullRequestCorrelator(
                source,
                deny_list=config.deny_list,
                tags_owner=config.tags_owner,
                tags_repo=config.tags_repo,
            )
            metrics = correlator.correlate(config.owner, config.repo, prs)
        finally:
            _close_all(client, cache)

        print(generate_pr_report(f"{config.owner}/{config.repo}", metrics))
        return EXIT_SUCCESS
    except Exception as exc:
        return _exit_code_for(exc)


def orchestrate_deploy_tracker(argv: Optional[Sequence[str]] = None) -> int:
    """Run the commit-to-deploy latency report end to end.

    Returns:
        Process exit code.
    """
    try:
        args = parse_deploy_tracker_args(argv)
        configure_logging(args.verbose)
        config = load_deploy_tracker_config(
            project=args.project,
            github_org=args.github_org,
            tags_repo=args.tags_repo,
            services_repo=args.services_repo,
            region=args.region,
            since=args.since,
            until=args.until,
            pipeline_filter=args.pipeline_filter,
            main_branch=args.main_branch,
            use_cache=args.use_cache,
        )

        github_client = GitHubClient(token=config.github_token)
        deploy_client = CloudDeployClient(token=config.gcp_token)
        cache = open_cache(config.cache)
        try:
            github_source = github_client
            deploy_source = deploy_client
            if cache is not None:
                github_source = CachedGitHubClient(github_client, cache, config.cache)
                deploy_source = CachedDeployClient(
                    deploy_client, cache, config.project, config.region, config.cache
                )

            releases = collect_releases(
                deploy_source,
                config.project,
                config.region,
                config.window.since,
                config.window.until,
                config.pipeline_filter,
            )
            logger.info("Found %d successfully rendered releases", len(releases))

            correlator = DeploymentCorrelator(
                deploy_source,
                github_source,
                github_org=config.github_org,
                tags_repo=config.tags_repo,
                services_repo=config.services_repo,
                matcher=CommitReferenceMatcher(config.main_branch),
            )
            deployments = correlator.correlate(releases)
        finally:
            _close_all(github_client, deploy_client, cache)

        pr_stats = calculate_pr_deployment_stats(deployments)
        print(generate_deployment_report(config.project, deployments, pr_stats))
        return EXIT_SUCCESS
    except Exception as exc:
        return _exit_code_for(exc)


def orchestrate_flaky_tests(argv: Optional[Sequence[str]] = None) -> int:
    """Run the flaky test report end to end.

    Returns:
        Process exit code.
    """
    try:
        args = parse_flaky_tests_args(argv)
        configure_logging(args.verbose)
        config = load_flaky_tests_config(org=args.org, repo=args.repo, use_cache=args.use_cache)

        client = CircleCIClient(token=config.circleci_token)
        cache = open_cache(config.cache)
        try:
            client.verify_project_access(config.org, config.repo)
            source = CachedCircleCIClient(client, cache, config.cache) if cache is not None else client
            tests = source.fetch_flaky_tests(config.org, config.repo)
        finally:
            _close_all(client, cache)

        print(generate_flaky_report(config.org, config.repo, process_flaky_tests(tests)))
        return EXIT_SUCCESS
    except Exception as exc:
        return _exit_code_for(exc)


def pr_tracker_main() -> None:
    sys.exit(orchestrate_pr_tracker())


def deploy_tracker_main() -> None:
    sys.exit(orchestrate_deploy_tracker())


def flaky_tests_main() -> None:
    sys.exit(orchestrate_flaky_tests())
