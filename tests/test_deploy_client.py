"""Tests for the Cloud Deploy API client with mocked HTTP."""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import utc
from statstracker.deploy_client import CloudDeployClient
from statstracker.errors import ApiError

PIPELINE = "projects/p/locations/us-east4/deliveryPipelines/test-web"


def _response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload if payload is not None else {}
    return response


def _release_item(release_id, create_time, render_state="SUCCEEDED"):
    return {
        "name": f"{PIPELINE}/releases/{release_id}",
        "createTime": create_time,
        "renderState": render_state,
        "annotations": {"git-sha": f"sha-{release_id}"},
    }


def test_list_delivery_pipelines_follows_page_tokens():
    """Verify pipelines are collected across nextPageToken pages."""
    client = CloudDeployClient(token="t")
    client._session.get = Mock(
        side_effect=[
            _response(200, {"deliveryPipelines": [{"name": "a"}], "nextPageToken": "tok"}),
            _response(200, {"deliveryPipelines": [{"name": "b"}]}),
        ]
    )

    pipelines = client.list_delivery_pipelines("p", "us-east4")

    assert [pipeline.name for pipeline in pipelines] == ["a", "b"]
    first_call, second_call = client._session.get.call_args_list
    assert first_call.args[0] == "https://clouddeploy.googleapis.com/v1/projects/p/locations/us-east4/deliveryPipelines"
    assert "pageToken" not in first_call.kwargs["params"]
    assert second_call.kwargs["params"]["pageToken"] == "tok"


def test_list_releases_filters_by_create_time():
    """Verify releases outside the window or without a create time are dropped."""
    client = CloudDeployClient(token="t")
    client._session.get = Mock(
        return_value=_response(
            200,
            {
                "releases": [
                    _release_item("r1", "2024-01-10T12:00:00.123456789Z"),
                    _release_item("r2", "2023-12-31T23:59:59Z"),
                    {"name": f"{PIPELINE}/releases/r3", "renderState": "SUCCEEDED"},
                ]
            },
        )
    )

    releases = client.list_releases(PIPELINE, utc(2024, 1, 1), utc(2024, 1, 31))

    assert [release.release_id for release in releases] == ["r1"]
    assert releases[0].create_time.replace(microsecond=0) == utc(2024, 1, 10, 12)
    assert releases[0].annotations["git-sha"] == "sha-r1"


def test_list_releases_without_window_returns_everything():
    """Verify no window means no create-time filtering."""
    client = CloudDeployClient(token="t")
    client._session.get = Mock(
        return_value=_response(200, {"releases": [{"name": f"{PIPELINE}/releases/r3", "renderState": "FAILED"}]})
    )

    assert len(client.list_releases(PIPELINE)) == 1


def test_list_rollouts_parses_state_and_end_time():
    """Verify rollouts are decoded with their deploy end time."""
    client = CloudDeployClient(token="t")
    client._session.get = Mock(
        return_value=_response(
            200,
            {
                "rollouts": [
                    {"name": "ro-1", "state": "SUCCEEDED", "deployEndTime": "2024-01-10T13:00:00Z"},
                    {"name": "ro-2", "state": "IN_PROGRESS"},
                ]
            },
        )
    )

    rollouts = client.list_rollouts(f"{PIPELINE}/releases/r1")

    assert rollouts[0].deploy_end_time == utc(2024, 1, 10, 13)
    assert rollouts[1].deploy_end_time is None
    assert client._session.get.call_args.args[0].endswith("/releases/r1/rollouts")


def test_http_error_raises_api_error():
    """Verify HTTP failures surface as ApiError."""
    client = CloudDeployClient(token="t")
    client._session.get = Mock(return_value=_response(403, text="denied"))

    with pytest.raises(ApiError):
        client.list_delivery_pipelines("p", "us-east4")
