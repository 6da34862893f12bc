import json
import textwrap

from typer.testing import CliRunner

from nodewright.cli import app as cli
from nodewright.ironic.models import Node

runner = CliRunner()

CONFIG = textwrap.dedent("""
    ironic:
      endpoint: http://ironic.test:6385
    nodes:
      node-1:
        driver: ipmi
        raid_interface: idrac-wsman
        driver_info:
          ipmi_address: 10.0.0.5
          ipmi_password: s3cret
        raid_config: '{"hardwareRAIDVolumes": [{"sizeGibibytes": 100, "level": "1"}]}'
        bios_settings:
          - name: LogicalProc
            value: Disabled
      node-2:
        driver: ipmi
""")


def _write(tmp_path, text):
    f = tmp_path / "nodes.yaml"
    f.write_text(text)
    return f


def test_clean_steps_prints_steps_per_node(tmp_path, monkeypatch):
    monkeypatch.delenv("NODEWRIGHT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, CONFIG)

    result = runner.invoke(cli.app, ["clean-steps", str(f)])

    assert result.exit_code == 0, result.output
    out = json.loads(result.stdout)
    assert [s["step"] for s in out["node-1"]] == [
        "delete_configuration",
        "create_configuration",
        "apply_configuration",
    ]
    assert out["node-1"][2]["args"] == {"settings": [{"name": "LogicalProc", "value": "Disabled"}]}
    assert out["node-2"] == []


def test_clean_steps_rejects_malformed_raid(tmp_path, monkeypatch):
    monkeypatch.delenv("NODEWRIGHT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, CONFIG.replace('"level": "1"', '"level": "7"'))

    result = runner.invoke(cli.app, ["clean-steps", str(f), "--node", "node-1"])

    assert result.exit_code == 1
    assert "ERROR" in result.output


def test_unknown_node_is_bad_parameter(tmp_path, monkeypatch):
    monkeypatch.delenv("NODEWRIGHT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, CONFIG)
    result = runner.invoke(cli.app, ["clean-steps", str(f), "--node", "nope"])
    assert result.exit_code == 2


def test_power_needs_config_or_endpoint(monkeypatch):
    monkeypatch.delenv("NODEWRIGHT_ENDPOINT", raising=False)
    result = runner.invoke(cli.app, ["power", "n1", "power on"])
    assert result.exit_code == 2


class FakeClient:
    def get_node(self, node_id):
        return Node.from_api(
            {
                "uuid": node_id,
                "power_state": "power on",
                "provision_state": "available",
                "driver_info": {"ipmi_address": "10.0.0.9", "ipmi_password": "******"},
            }
        )


def test_show_reports_driver_info_drift(tmp_path, monkeypatch):
    monkeypatch.delenv("NODEWRIGHT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, CONFIG)
    monkeypatch.setattr(cli, "_client", lambda settings: FakeClient())

    result = runner.invoke(cli.app, ["show", "abc", "--config", str(f), "--node", "node-1"])

    assert result.exit_code == 0, result.output
    assert '"uuid": "abc"' in result.stdout
    assert "driver_info drift: ipmi_address" in result.stdout
