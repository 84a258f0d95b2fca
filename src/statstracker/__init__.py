"""Review, deployment and flaky-test statistics for GitHub, Cloud Deploy and CircleCI."""

__version__ = "0.1.0"
