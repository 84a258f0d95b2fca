"""Human-readable text reports for the three trackers.

Each ``generate_*`` function returns a multi-line string; printing is left to
the caller. Durations are formatted with :func:`stats.format_duration`.
"""

from __future__ import annotations

from typing import List, Sequence

from .models import DeploymentMetric, FlakyTestMetric, PRDeploymentStats, PullRequestMetric
from .stats import (
    DurationSummary,
    format_duration,
    mean_value,
    median_value,
    sort_by_count_desc,
    summarize_durations,
)

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def _summary_lines(title: str, summary: DurationSummary) -> List[str]:
    if not summary.has_data:
        return [title, "   No data"]
    return [
        title,
        f"   Samples: {summary.count}",
        f"   Mean: {format_duration(summary.mean)}",
        f"   Median: {format_duration(summary.median)}",
    ]


def _format_number(value) -> str:
    return "n/a" if value is None else f"{value:.1f}"


def _pr_lines(metrics: Sequence[PullRequestMetric]) -> List[str]:
    if not metrics:
        return ["   None found"]

    lines = []
    for metric in metrics:
        if metric.has_review:
            detail = (
                f"first review {format_duration(metric.time_to_first_review)}"
                f" by {metric.first_reviewer} ({metric.first_review_state})"
            )
            if metric.approver:
                detail += f", approved {format_duration(metric.time_to_approval)} by {metric.approver}"
        else:
            detail = f"no review yet, waiting {format_duration(metric.time_since_creation)}"
        lines.append(f"#{metric.pr_number} {metric.title} [{metric.author}]: {detail}")
        for tag_commit in metric.tag_commits:
            when = tag_commit.date.strftime(_TIME_FORMAT) if tag_commit.date else "unknown time"
            lines.append(f"   deployed by {tag_commit.sha[:7]} at {when}")
    return lines


def generate_pr_report(repository: str, metrics: Sequence[PullRequestMetric]) -> str:
    """Generate the review latency report for a repository.

    The report lists reviewed pull requests, then those awaiting review,
    each section reading "None found" when empty. Summaries of time to
    first review, time to approval, and time waiting for unreviewed pull
    requests follow.

    Args:
        repository: ``owner/repo`` display name.
        metrics: Per-PR metrics in the order they should be listed.

    Returns:
        Formatted multi-line text report.
    """
    lines = [f"Repository: {repository}", "PR Review Report", ""]

    if not metrics:
        lines.append("No pull requests found in the selected date range.")
        return "\n".join(lines)

    with_reviews = [metric for metric in metrics if metric.has_review]
    awaiting = [metric for metric in metrics if not metric.has_review]

    lines.append("Pull Requests With Reviews:")
    lines.extend(_pr_lines(with_reviews))
    lines.extend(["", "Pull Requests Awaiting Review:"])
    lines.extend(_pr_lines(awaiting))

    reviewed = [m.time_to_first_review for m in metrics if m.has_review and m.time_to_first_review is not None]
    approved = [m.time_to_approval for m in metrics if m.time_to_approval is not None]
    waiting = [m.time_since_creation for m in metrics if not m.has_review and m.time_since_creation is not None]

    lines.extend(
        [
            "",
            f"Pull requests: {len(metrics)} ({len(reviewed)} reviewed, {len(approved)} approved)",
            "",
        ]
    )
    lines.extend(_summary_lines("1) Time to First Review", summarize_durations(reviewed)))
    lines.append("")
    lines.extend(_summary_lines("2) Time to Approval", summarize_durations(approved)))
    lines.append("")
    lines.extend(_summary_lines("3) Time Waiting for Review", summarize_durations(waiting)))

    return "\n".join(lines)


def generate_deployment_report(
    project: str,
    deployments: Sequence[DeploymentMetric],
    pr_stats: Sequence[PRDeploymentStats],
) -> str:
    """Generate the commit-to-deploy report for a Cloud Deploy project.

    Args:
        project: Google Cloud project display name.
        deployments: Per-release metrics.
        pr_stats: Per-PR groupings of ``deployments``.

    Returns:
        Formatted multi-line text report.
    """
    lines = [f"Project: {project}", "Deployment Latency Report", ""]

    if not deployments:
        lines.append("No deployments found in the selected date range.")
        return "\n".join(lines)

    for deployment in deployments:
        pr_label = f"PR #{deployment.pr_number}" if deployment.pr_number else "no PR"
        lines.append(
            f"{deployment.release_id} ({deployment.commit_sha[:7]}, {pr_label}):"
            f" committed {deployment.commit_time.strftime(_TIME_FORMAT)},"
            f" finished {deployment.release_finish_time.strftime(_TIME_FORMAT)},"
            f" latency {format_duration(deployment.latency)}"
        )

    lines.append("")
    lines.extend(
        _summary_lines(
            "1) Commit to Deploy Latency",
            summarize_durations(deployment.latency for deployment in deployments),
        )
    )

    lines.append("")
    if not pr_stats:
        lines.extend(["2) Per Pull Request", "   No data"])
        return "\n".join(lines)

    pr_stats = sort_by_count_desc(pr_stats, key=lambda stats: stats.deployment_count)
    counts = [stats.deployment_count for stats in pr_stats]
    lines.extend(
        [
            "2) Per Pull Request",
            f"   Pull requests: {len(pr_stats)}",
            f"   Total PR deployments: {sum(counts)}",
            f"   PRs with multiple deployments: {sum(1 for count in counts if count > 1)}",
            f"   Maximum deployments for a single PR: {max(counts)}",
            f"   Deployments per PR (mean): {_format_number(mean_value(counts))}",
            f"   Deployments per PR (median): {_format_number(median_value(counts))}",
        ]
    )
    for stats in pr_stats:
        lines.append(
            f"   PR #{stats.pr_number}: {stats.deployment_count} deployments,"
            f" {len(stats.commit_shas)} commits, first commit to last deploy {format_duration(stats.delta)}"
        )
        lines.append(
            f"      first commit {stats.first_commit_time.strftime(_TIME_FORMAT)},"
            f" last deploy finish {stats.last_finish_time.strftime(_TIME_FORMAT)}"
        )
    lines.append("")
    lines.extend(
        _summary_lines(
            "3) First Commit to Last Deploy per PR",
            summarize_durations(stats.delta for stats in pr_stats),
        )
    )

    return "\n".join(lines)


def generate_flaky_report(org: str, repo: str, metrics: Sequence[FlakyTestMetric]) -> str:
    """Generate the flaky test listing for a CircleCI project."""
    lines = [f"Project: {org}/{repo}", "Flaky Tests Report", ""]

    if not metrics:
        lines.append("No flaky tests found.")
        return "\n".join(lines)

    for metric in metrics:
        last_seen = metric.last_occurred.strftime(_TIME_FORMAT) if metric.last_occurred else "n/a"
        lines.append(f"{metric.times_flaky:>5}  {metric.class_name} {metric.test_name} (last seen {last_seen})")

    counts = [metric.times_flaky for metric in metrics]
    lines.extend(
        [
            "",
            f"Flaky tests: {len(metrics)}",
            f"Total flakiness events: {sum(counts)}",
            f"Mean flakiness per test: {_format_number(mean_value(counts))}",
            f"Median flakiness per test: {_format_number(median_value(counts))}",
            f"Most flaky test: {max(counts)} occurrences",
            f"Least flaky test: {min(counts)} occurrences",
        ]
    )
    return "\n".join(lines)
