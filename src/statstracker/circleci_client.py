"""CircleCI API v2 client for flaky test insights."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .errors import ApiError
from .models import FlakyTest, PipelineRun, parse_timestamp
from .rest import JsonApiClient

CIRCLECI_API_URL = "https://circleci.com/api/v2"
DEFAULT_TIMEOUT_SECONDS = 30


class CircleCIClient(JsonApiClient):
    """Typed client for the CircleCI insights endpoints."""

    _SERVICE_NAME = "CircleCI"

    def __init__(self, token: str, base_url: str = CIRCLECI_API_URL) -> None:
        super().__init__(base_url, {"Circle-Token": token})

    @staticmethod
    def project_slug(org: str, repo: str) -> str:
        return f"gh/{org}/{repo}"

    def verify_project_access(self, org: str, repo: str) -> None:
        """Check that the token can read the project.

        Raises:
            ApiError: If the project does not exist or is not accessible.
        """
        slug = self.project_slug(org, repo)
        try:
            self._get_json(f"project/{slug}", timeout=DEFAULT_TIMEOUT_SECONDS)
        except ApiError as exc:
            raise ApiError(f"Project {slug} not found or token doesn't have access: {exc}") from exc

    def fetch_flaky_tests(self, org: str, repo: str) -> List[FlakyTest]:
        """Fetch all flaky tests for a project, following ``next_page_token``."""
        slug = self.project_slug(org, repo)
        tests: List[FlakyTest] = []
        page_token: Optional[str] = None

        while True:
            params: Dict[str, Any] = {}
            if page_token:
                params["page-token"] = page_token

            try:
                payload = self._get_json(
                    f"insights/{slug}/flaky-tests",
                    params=params,
                    timeout=DEFAULT_TIMEOUT_SECONDS,
                )
            except ApiError as exc:
                raise ApiError(
                    f"Failed to fetch flaky tests for project {slug}. The project may not exist, "
                    f"the token may lack access, or flaky test insights may be unavailable: {exc}"
                ) from exc

            tests.extend(self._parse_flaky_test(item) for item in payload.get("flaky-tests", []))

            page_token = payload.get("next_page_token")
            if not page_token:
                break

        return tests

    def _parse_flaky_test(self, item: Dict[str, Any]) -> FlakyTest:
        run_data = item.get("pipeline_run")
        run = None
        if run_data:
            run = PipelineRun(
                workflow_id=str(run_data.get("workflow_id") or ""),
                pipeline_id=str(run_data.get("pipeline_id") or ""),
                created_at=parse_timestamp(run_data.get("created_at")),
            )

        return FlakyTest(
            test_name=str(item.get("test_name") or ""),
            class_name=str(item.get("classname") or ""),
            times_flaky=int(item.get("times_flaky") or 0),
            pipeline_run=run,
        )
