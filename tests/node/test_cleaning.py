import json

import pytest

from nodewright.errors import ValidationError
from nodewright.node.cleaning import build_manual_cleaning_steps, parse_bios_settings

HW = "idrac-wsman"
RAID = json.dumps({"hardwareRAIDVolumes": [{"sizeGibibytes": 100, "level": "1"}]})
BIOS = json.dumps([
    {"name": "LogicalProc", "value": "Disabled"},
    {"name": "ProcVirtualization", "value": "Enabled"},
])


def test_raid_steps_first_then_single_bios_step():
    steps = build_manual_cleaning_steps(HW, RAID, BIOS)
    assert len(steps) == 3
    assert [s.step for s in steps[:2]] == ["delete_configuration", "create_configuration"]
    bios = steps[2]
    assert bios.interface == "bios"
    assert bios.step == "apply_configuration"
    assert bios.args == {
        "settings": [
            {"name": "LogicalProc", "value": "Disabled"},
            {"name": "ProcVirtualization", "value": "Enabled"},
        ]
    }


def test_neither_input_gives_empty_list():
    assert build_manual_cleaning_steps(HW, "", "") == []
    assert build_manual_cleaning_steps(HW, None, None) == []


def test_bios_only():
    steps = build_manual_cleaning_steps(HW, None, BIOS)
    assert [(s.interface, s.step) for s in steps] == [("bios", "apply_configuration")]


def test_decoded_inputs_are_accepted():
    steps = build_manual_cleaning_steps(HW, json.loads(RAID), json.loads(BIOS))
    assert len(steps) == 3


@pytest.mark.parametrize(
    "raid, bios",
    [
        ("{broken", BIOS),
        (RAID, "[{broken"),
        (RAID, json.dumps([{"name": "x"}])),
        (RAID, json.dumps({"name": "x", "value": "y"})),
    ],
)
def test_malformed_input_aborts_whole_assembly(raid, bios):
    with pytest.raises(ValidationError):
        build_manual_cleaning_steps(HW, raid, bios)


def test_unsupported_interface_aborts_assembly():
    with pytest.raises(ValidationError):
        build_manual_cleaning_steps("no-raid", RAID, BIOS)


def test_clean_step_wire_format():
    steps = build_manual_cleaning_steps(HW, RAID, None)
    assert [s.to_api() for s in steps] == [
        {"interface": "raid", "step": "delete_configuration"},
        {
            "interface": "raid",
            "step": "create_configuration",
            "args": {"create_root_volume": True, "create_nonroot_volumes": True},
        },
    ]


def test_empty_bios_list_is_absent():
    assert parse_bios_settings("[]") is None


def test_empty_raid_object_keeps_existing_raid():
    assert build_manual_cleaning_steps(HW, "{}", None) == []
    steps = build_manual_cleaning_steps(HW, "{}", BIOS)
    assert [(s.interface, s.step) for s in steps] == [("bios", "apply_configuration")]
