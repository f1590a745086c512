"""
End-to-end attachment flows against the DigitalOcean provider

The HTTP layer is replaced by a small router that serves volume and action
state, so the reconciler, retry loop, poller and provider run together.
"""

import json
from unittest.mock import patch

import pytest
import requests


API_URL = "https://api.example.test"


class FakeDigitalOceanAPI:
    """Routes requests.request calls to in-memory volume/action state."""

    def __init__(self):
        self.volumes: dict[str, list[int]] = {}
        self.actions: dict[int, dict] = {}
        self.requests: list[tuple[str, str, dict | None]] = []
        self.pending_conflicts = 0
        self.next_action_id = 1

    def _response(self, status_code: int, body: dict) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response.encoding = "utf-8"
        response._content = json.dumps(body).encode()
        return response

    def __call__(self, method, url, headers=None, json=None, timeout=None):
        path = url[len(API_URL):]
        self.requests.append((method, path, json))
        parts = path.strip("/").split("/")

        if method == "GET" and parts[:2] == ["v2", "volumes"]:
            volume_id = parts[2]
            if volume_id not in self.volumes:
                return self._response(404, {"id": "not_found", "message": "not found"})
            return self._response(200, {"volume": {
                "id": volume_id,
                "droplet_ids": self.volumes[volume_id],
                "region": {"slug": "nyc1"},
                "size_gigabytes": 10,
            }})

        if method == "POST" and parts[:2] == ["v2", "volumes"] and parts[3] == "actions":
            if self.pending_conflicts:
                self.pending_conflicts -= 1
                return self._response(422, {
                    "id": "unprocessable_entity",
                    "message": "Droplet already has a pending event.",
                })
            volume_id = parts[2]
            action_id = self.next_action_id
            self.next_action_id += 1
            self.actions[action_id] = {
                "volume_id": volume_id,
                "type": json["type"],
                "droplet_id": json["droplet_id"],
                "status": "in-progress",
            }
            return self._response(202, {"action": self._action_body(action_id)})

        if method == "GET" and parts[:2] == ["v2", "actions"]:
            action_id = int(parts[2])
            action = self.actions[action_id]
            if action["status"] == "in-progress":
                action["status"] = "completed"
                attached = self.volumes.setdefault(action["volume_id"], [])
                if action["type"] == "attach":
                    attached[:] = [action["droplet_id"]]
                elif action["droplet_id"] in attached:
                    attached.remove(action["droplet_id"])
            return self._response(200, {"action": self._action_body(action_id)})

        return self._response(404, {"id": "not_found", "message": path})

    def _action_body(self, action_id: int) -> dict:
        action = self.actions[action_id]
        return {
            "id": action_id,
            "status": action["status"],
            "type": f"{action['type']}_volume",
            "started_at": "2024-01-01T00:00:00Z",
            "completed_at": "2024-01-01T00:00:05Z" if action["status"] == "completed" else None,
            "resource_id": None,
        }

    def count(self, method: str, prefix: str) -> int:
        return sum(1 for m, p, _ in self.requests if m == method and p.startswith(prefix))


@pytest.fixture
def do_api():
    api = FakeDigitalOceanAPI()
    with patch("requests.request", side_effect=api):
        yield api


@pytest.fixture
def reconciler(do_api, fast_config):
    from volume_attachment.providers import get_storage_provider
    from volume_attachment.shared import AttachmentReconciler

    config = fast_config
    config.api_url = API_URL
    return AttachmentReconciler(get_storage_provider(config=config), config)


class TestAttachmentFlow:
    """Full attach / drift / detach cycles"""

    def test_attach_moves_volume_to_new_node(self, do_api, reconciler, fake_clock):
        """vol-1 on 100 → ensure_attached(200) ends with [200]"""
        do_api.volumes["vol-1"] = [100]

        result = reconciler.ensure_attached("vol-1", 200)

        assert result.ok
        assert do_api.count("POST", "/v2/volumes/vol-1/actions") == 1
        assert do_api.count("GET", "/v2/actions/") == 1
        assert do_api.volumes["vol-1"] == [200]
        assert reconciler.detect_drift("vol-1", 200).attachment_exists

    def test_attach_retries_pending_event(self, do_api, reconciler, fake_clock):
        """422 pending-event responses are retried"""
        do_api.volumes["vol-1"] = []
        do_api.pending_conflicts = 2

        result = reconciler.ensure_attached("vol-1", 200)

        assert result.ok
        assert do_api.count("POST", "/v2/volumes/vol-1/actions") == 3
        assert len(fake_clock.sleeps) >= 2

    def test_redundant_detach_succeeds(self, do_api, reconciler, fake_clock):
        """Detaching an already-detached pair is a no-op success"""
        do_api.volumes["vol-1"] = []

        result = reconciler.ensure_detached("vol-1", 200)

        assert result.ok
        assert result.error is None
        assert do_api.count("POST", "/v2/volumes/vol-1/actions") == 1
        assert do_api.requests[0][2] == {"type": "detach", "droplet_id": 200}

    def test_drift_after_external_detach(self, do_api, reconciler, fake_clock):
        """An attachment removed outside the reconciler shows up as drift"""
        do_api.volumes["vol-1"] = [200]
        assert not reconciler.detect_drift("vol-1", 200).drift_detected

        do_api.volumes["vol-1"] = []
        report = reconciler.detect_drift("vol-1", 200)

        assert report.drift_detected
        assert do_api.count("POST", "/v2/volumes") == 0

    def test_deleted_volume_is_gone(self, do_api, reconciler):
        """A deleted volume reports gone_entirely"""
        report = reconciler.detect_drift("vol-deleted", 200)

        assert report.gone_entirely
        assert not report.drift_detected
