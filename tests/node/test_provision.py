import pytest

from nodewright.errors import ConflictError, ProvisionStateTimeout, UpstreamError, ValidationError
from nodewright.ironic.models import CleanStep, Node
from nodewright.node.provision import ProvisionStateDriver
from nodewright.observers.dispatcher import EventBus
from nodewright.observers.events import ProvisionStateReached, ProvisionStateSkipped

# ----------------- Fakes -----------------

class ScriptedIronic:
    """
    Replays provision states: states[0] is reported before submission, the
    rest on each poll (the last one repeats).
    Each entry is (provision_state, target_provision_state, last_error).
    """
    endpoint = "http://ironic.test:6385"

    def __init__(self, states, busy=0):
        self.states = list(states)
        self.busy = busy
        self.submits = []
        self.gets = 0

    def get_node(self, node_id):
        idx = min(self.gets, len(self.states) - 1)
        self.gets += 1
        state, target, err = self.states[idx]
        return Node(uuid=node_id, provision_state=state, target_provision_state=target, last_error=err)

    def set_provision_state(self, node_id, target, clean_steps=None):
        self.submits.append((target, clean_steps))
        if len(self.submits) <= self.busy:
            raise ConflictError("busy", status_code=409)

class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def _driver(client, waits, cap=None, timeout=60):
    return ProvisionStateDriver(
        client, bus=EventBus([cap] if cap else []), sleep=waits.append, clock=lambda: 0.0, timeout=timeout
    )

# ----------------- Tests -----------------

def test_manage_waits_until_manageable():
    client, waits, cap = ScriptedIronic([
        ("enroll", None, None),
        ("verifying", "manageable", None),
        ("verifying", "manageable", None),
        ("manageable", None, None),
    ]), [], Capture()
    node = _driver(client, waits, cap).change_provision_state_to_target("n1", "manage")
    assert node.provision_state == "manageable"
    assert client.submits == [("manage", None)]
    assert waits == [5, 5]
    assert any(isinstance(e, ProvisionStateReached) for e in cap.events)


def test_already_in_end_state_is_a_no_op():
    client, waits, cap = ScriptedIronic([("available", None, None)]), [], Capture()
    node = _driver(client, waits, cap).change_provision_state_to_target("n1", "provide")
    assert node.provision_state == "available"
    assert client.submits == []
    assert any(isinstance(e, ProvisionStateSkipped) for e in cap.events)


def test_clean_without_steps_is_skipped():
    client, waits = ScriptedIronic([("manageable", None, None)]), []
    _driver(client, waits).change_provision_state_to_target("n1", "clean", clean_steps=[])
    assert client.submits == []


def test_clean_submits_steps_even_when_manageable():
    steps = [CleanStep(interface="raid", step="delete_configuration")]
    client, waits = ScriptedIronic([
        ("manageable", None, None),
        ("cleaning", "manageable", None),
        ("clean wait", "manageable", None),
        ("manageable", None, None),
    ]), []
    _driver(client, waits).change_provision_state_to_target("n1", "clean", clean_steps=steps)
    assert client.submits == [("clean", steps)]


def test_failed_state_raises_with_last_error():
    client, waits = ScriptedIronic([
        ("manageable", None, None),
        ("inspecting", "manageable", None),
        ("inspect failed", None, "BMC unreachable"),
    ]), []
    with pytest.raises(UpstreamError, match="BMC unreachable"):
        _driver(client, waits).change_provision_state_to_target("n1", "inspect")


def test_falling_back_with_last_error_is_a_failure():
    client, waits = ScriptedIronic([
        ("enroll", None, None),
        ("verifying", "manageable", None),
        ("enroll", None, "Failed to get power state"),
    ]), []
    with pytest.raises(UpstreamError, match="power state"):
        _driver(client, waits).change_provision_state_to_target("n1", "manage")


def test_timeout_counts_poll_intervals():
    client, waits = ScriptedIronic([
        ("manageable", None, None),
        ("inspecting", "manageable", None),
    ]), []
    with pytest.raises(ProvisionStateTimeout):
        _driver(client, waits, timeout=15).change_provision_state_to_target("n1", "inspect")
    assert waits == [5, 5, 5]


def test_busy_submission_is_retried():
    client, waits = ScriptedIronic([("active", None, None), ("available", None, None)], busy=2), []
    _driver(client, waits).change_provision_state_to_target("n1", "deleted")
    assert [t for t, _ in client.submits] == ["deleted"] * 3
    assert waits == [5, 10]


def test_unknown_target_rejected():
    with pytest.raises(ValidationError):
        _driver(ScriptedIronic([("enroll", None, None)]), []).change_provision_state_to_target("n1", "rescue")
