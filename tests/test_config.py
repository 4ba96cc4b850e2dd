import json

import pytest

from ssp_config import SSPConfig


def write_config(tmp_path, payload):
    path = tmp_path / "config.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return str(path)


def test_defaults(tmp_path):
    cfg = SSPConfig(write_config(tmp_path, {"ssp": {"port_name": "COM5"}}))
    assert cfg.port_name == "COM5"
    assert cfg.baud_rate == 9600
    assert cfg.slave_id == 0
    assert cfg.host_protocol_version is None
    assert cfg.read_timeout == 0.5
    assert cfg.poll_ms == 250


def test_all_keys(tmp_path):
    block = {
        "port_name": "/dev/ttyUSB0",
        "baud_rate": 38400,
        "slave_id": 16,
        "host_protocol_version": 7,
        "read_timeout": 1.0,
        "poll_ms": 200,
    }
    cfg = SSPConfig(write_config(tmp_path, {"ssp": block}))
    assert cfg.to_dict() == {"ssp": block}


def test_missing_file_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as info:
        SSPConfig(str(tmp_path / "nope.json"))
    assert info.value.code == 1
    assert "Could not load" in capsys.readouterr().out


def test_bad_json_exits(tmp_path):
    with pytest.raises(SystemExit):
        SSPConfig(write_config(tmp_path, "{not json"))


def test_missing_port_exits(tmp_path, capsys):
    with pytest.raises(SystemExit):
        SSPConfig(write_config(tmp_path, {"ssp": {"baud_rate": 9600}}))
    assert "port_name" in capsys.readouterr().out
