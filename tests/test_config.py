"""Tests for configuration loading and validation."""

import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import utc
from statstracker.config import (
    build_window,
    load_deploy_tracker_config,
    load_flaky_tests_config,
    load_pr_tracker_config,
    parse_deny_list,
    parse_repository,
)
from statstracker.errors import AuthenticationError, ConfigurationError


def test_build_window_parses_dates_as_utc_midnight():
    """Verify explicit dates become UTC midnight boundaries."""
    window = build_window("2024-01-01", "2024-01-31")

    assert window.since == utc(2024, 1, 1)
    assert window.until == utc(2024, 1, 31)


def test_build_window_defaults_to_last_thirty_days():
    """Verify omitted dates default to the 30 days ending now."""
    now = utc(2024, 3, 15, 12)

    window = build_window(None, None, now=now)

    assert window.until == now
    assert window.since == now - timedelta(days=30)


@pytest.mark.parametrize(
    "since, until",
    [
        ("2024-02-01", "2024-01-01"),
        ("2024-01-01", "2024-01-01"),
        ("01/02/2024", None),
    ],
)
def test_build_window_rejects_invalid_ranges(since, until):
    """Verify reversed, empty and malformed date ranges raise ConfigurationError."""
    with pytest.raises(ConfigurationError):
        build_window(since, until, now=utc(2024, 3, 1))


def test_parse_deny_list_strips_and_drops_blanks():
    """Verify the deny-list is comma-split with whitespace trimmed."""
    assert parse_deny_list(" bot1, ,bot2 ,") == ("bot1", "bot2")
    assert parse_deny_list(None) == ()


def test_parse_repository_requires_owner_and_name():
    """Verify owner/repo parsing and rejection of malformed values."""
    assert parse_repository("owner/repo") == ("owner", "repo")
    with pytest.raises(ConfigurationError):
        parse_repository("owner")
    with pytest.raises(ConfigurationError):
        parse_repository("owner/repo/extra")


def test_load_pr_tracker_config_reads_token_and_options(monkeypatch):
    """Verify a complete pr-tracker configuration is built from arguments and env."""
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")

    config = load_pr_tracker_config(
        repository="owner/repo",
        since="2024-01-01",
        until="2024-01-31",
        exclude="bot",
        tags_repo="owner/tags",
        use_cache=False,
    )

    assert (config.owner, config.repo) == ("owner", "repo")
    assert config.deny_list == ("bot",)
    assert (config.tags_owner, config.tags_repo) == ("owner", "tags")
    assert config.github_token == "gh-token"
    assert config.cache.enabled is False


def test_load_pr_tracker_config_missing_token_raises_authentication_error(monkeypatch):
    """Verify a missing GITHUB_TOKEN raises AuthenticationError."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    with pytest.raises(AuthenticationError, match="GITHUB_TOKEN"):
        load_pr_tracker_config(repository="owner/repo", since="2024-01-01", until="2024-01-31")


def test_load_deploy_tracker_config_requires_both_tokens(monkeypatch):
    """Verify deploy-tracker needs the GitHub and Google Cloud tokens."""
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    monkeypatch.delenv("GOOGLE_OAUTH_ACCESS_TOKEN", raising=False)

    with pytest.raises(AuthenticationError, match="GOOGLE_OAUTH_ACCESS_TOKEN"):
        load_deploy_tracker_config(
            project="p",
            github_org="org",
            tags_repo="tags",
            services_repo="services",
            since="2024-01-01",
            until="2024-01-31",
        )


def test_load_deploy_tracker_config_defaults(monkeypatch):
    """Verify region, pipeline filter, main branch and cache defaults."""
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    monkeypatch.setenv("GOOGLE_OAUTH_ACCESS_TOKEN", "gcp-token")

    config = load_deploy_tracker_config(
        project="p",
        github_org="org",
        tags_repo="tags",
        services_repo="services",
        since="2024-01-01",
        until="2024-01-31",
    )

    assert config.region == "us-east4"
    assert config.pipeline_filter == "test"
    assert config.main_branch == "main"
    assert config.cache.enabled is True
    assert config.cache.long_ttl == timedelta(hours=24)
    assert config.cache.short_ttl == timedelta(hours=1)


def test_load_deploy_tracker_config_missing_parameter(monkeypatch):
    """Verify a blank required parameter raises ConfigurationError."""
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    monkeypatch.setenv("GOOGLE_OAUTH_ACCESS_TOKEN", "gcp-token")

    with pytest.raises(ConfigurationError, match="services-repo"):
        load_deploy_tracker_config(project="p", github_org="org", tags_repo="tags", services_repo=" ")


def test_load_flaky_tests_config(monkeypatch):
    """Verify flaky-tests configuration reads CIRCLECI_TOKEN."""
    monkeypatch.setenv("CIRCLECI_TOKEN", "cci")

    config = load_flaky_tests_config("org", "repo")

    assert config.circleci_token == "cci"
    monkeypatch.delenv("CIRCLECI_TOKEN")
    with pytest.raises(AuthenticationError):
        load_flaky_tests_config("org", "repo")
