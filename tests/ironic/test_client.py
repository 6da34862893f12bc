import json

import pytest
import requests

from nodewright.errors import ConflictError, UpstreamError
from nodewright.ironic.client import IronicClient
from nodewright.ironic.models import CleanStep, LogicalDisk, PowerState

# ----------------- Fakes for requests -----------------

class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body)
    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body

class FakeSession:
    def __init__(self, responses=None, exc=None):
        self.calls = []
        self.responses = list(responses or [])
        self.exc = exc
    def request(self, method, url, json=None, headers=None, verify=True, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers, "verify": verify, "timeout": timeout})
        if self.exc:
            raise self.exc
        return self.responses.pop(0) if self.responses else FakeResponse(202, None, "")


NODE = {
    "uuid": "1be26c0b-03f2-4d2e-ae87-c02d7f33c123",
    "name": "node-1",
    "power_state": "power off",
    "target_power_state": "power on",
    "provision_state": "manageable",
    "driver_info": {"ipmi_password": "******"},
}


def _client(session, **kw):
    return IronicClient("http://ironic.test:6385/", session=session, **kw)

# ----------------- Tests -----------------

def test_get_node_parses_snapshot_and_sends_headers():
    s = FakeSession([FakeResponse(200, NODE)])
    node = _client(s, token="tok", verify_tls=False).get_node(NODE["uuid"])

    assert node.power_state is PowerState.OFF
    assert node.target_power_state == "power on"
    assert node.power_transition_pending
    call = s.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == f"http://ironic.test:6385/v1/nodes/{NODE['uuid']}"
    assert call["headers"]["X-OpenStack-Ironic-API-Version"] == "1.52"
    assert call["headers"]["X-Auth-Token"] == "tok"
    assert call["verify"] is False


def test_change_power_state_body():
    s = FakeSession()
    c = _client(s)
    c.change_power_state("n1", "power on")
    c.change_power_state("n1", "power off", timeout=60)
    assert s.calls[0]["url"].endswith("/v1/nodes/n1/states/power")
    assert s.calls[0]["method"] == "PUT"
    assert s.calls[0]["json"] == {"target": "power on"}
    assert s.calls[1]["json"] == {"target": "power off", "timeout": 60}


def test_set_raid_config_and_provision_bodies():
    s = FakeSession()
    c = _client(s)
    c.set_raid_config("n1", [LogicalDisk(size_gb=100, raid_level="1", is_root_volume=True)])
    c.set_provision_state("n1", "clean", clean_steps=[CleanStep("raid", "delete_configuration")])
    assert s.calls[0]["json"] == {"logical_disks": [{"size_gb": 100, "raid_level": "1", "is_root_volume": True}]}
    assert s.calls[1]["json"] == {"target": "clean", "clean_steps": [{"interface": "raid", "step": "delete_configuration"}]}


def test_update_node_sends_patch_list():
    s = FakeSession([FakeResponse(200, NODE)])
    _client(s).update_node("n1", [{"op": "replace", "path": "/name", "value": "x"}])
    assert s.calls[0]["method"] == "PATCH"
    assert s.calls[0]["json"] == [{"op": "replace", "path": "/name", "value": "x"}]


def test_409_is_conflict_with_faultstring():
    fault = {"error_message": json.dumps({"faultstring": "Node n1 is locked by host c1"})}
    s = FakeSession([FakeResponse(409, fault)])
    with pytest.raises(ConflictError, match="locked by host") as ei:
        _client(s).change_power_state("n1", "power on")
    assert ei.value.status_code == 409


def test_other_status_is_upstream_error():
    s = FakeSession([FakeResponse(400, None, "bad things")])
    with pytest.raises(UpstreamError) as ei:
        _client(s).get_node("n1")
    assert not isinstance(ei.value, ConflictError)
    assert ei.value.status_code == 400
    assert "bad things" in str(ei.value)


def test_transport_error_is_wrapped():
    s = FakeSession(exc=requests.ConnectionError("refused"))
    with pytest.raises(UpstreamError, match="refused"):
        _client(s).get_node("n1")
