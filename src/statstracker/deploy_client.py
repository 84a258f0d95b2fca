"""Google Cloud Deploy REST client for pipelines, releases and rollouts."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from .models import DeliveryPipeline, Release, Rollout, parse_timestamp
from .rest import JsonApiClient

logger = logging.getLogger(__name__)

CLOUD_DEPLOY_API_URL = "https://clouddeploy.googleapis.com/v1"


class CloudDeployClient(JsonApiClient):
    """Typed client for Cloud Deploy ``v1`` list endpoints."""

    _SERVICE_NAME = "Cloud Deploy"
    _PAGE_SIZE = 100

    def __init__(self, token: str, base_url: str = CLOUD_DEPLOY_API_URL) -> None:
        super().__init__(base_url, {"Authorization": f"Bearer {token}"})

    def _iter_items(self, path: str, field: str) -> Iterator[Dict[str, Any]]:
        """Yield items of ``field`` across pages linked by ``nextPageToken``."""
        page_token: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"pageSize": self._PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token

            payload = self._get_json(path, params=params)
            for item in payload.get(field, []):
                yield item

            page_token = payload.get("nextPageToken")
            if not page_token:
                break

    def list_delivery_pipelines(self, project: str, region: str) -> List[DeliveryPipeline]:
        """List delivery pipelines in ``projects/<project>/locations/<region>``."""
        path = f"projects/{project}/locations/{region}/deliveryPipelines"
        return [
            DeliveryPipeline(name=str(item["name"]))
            for item in self._iter_items(path, "deliveryPipelines")
            if item.get("name")
        ]

    def list_releases(
        self,
        pipeline_name: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Release]:
        """List releases of a pipeline, optionally bounded by create time."""
        releases: List[Release] = []
        total = 0

        for item in self._iter_items(f"{pipeline_name}/releases", "releases"):
            total += 1
            release = Release(
                name=str(item.get("name") or ""),
                create_time=parse_timestamp(item.get("createTime")),
                render_state=str(item.get("renderState") or ""),
                annotations={str(k): str(v) for k, v in (item.get("annotations") or {}).items()},
            )
            if since is not None or until is not None:
                if release.create_time is None:
                    continue
                if since is not None and release.create_time < since:
                    continue
                if until is not None and release.create_time > until:
                    continue
            releases.append(release)

        logger.debug(
            "Listed releases",
            extra={"pipeline": pipeline_name, "total": total, "in_window": len(releases)},
        )
        return releases

    def list_rollouts(self, release_name: str) -> List[Rollout]:
        """List rollouts belonging to a release."""
        return [
            Rollout(
                name=str(item.get("name") or ""),
                state=str(item.get("state") or ""),
                deploy_end_time=parse_timestamp(item.get("deployEndTime")),
            )
            for item in self._iter_items(f"{release_name}/rollouts", "rollouts")
        ]
