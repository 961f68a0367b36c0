import json

import pytest

from core.config import AppConfig, AuthConfig, SigningLayout, TimingConfig


def test_defaults():
    config = AppConfig()
    assert config.layout == SigningLayout()
    assert config.layout.challenge_page == 120
    assert config.layout.signature_page == 124
    assert config.timing.write_settle_delay == 0.05
    assert config.auth.round_trip_delay == 0.2
    assert config.auth.key_no == 0
    assert config.master_key_bytes == bytes(16)


def test_from_dict_nested_override():
    config = AppConfig.from_dict({
        "key_file": "tags.pem",
        "auth": {"round_trip_delay": 0.0, "require_final_confirmation": True},
    })
    assert config.key_file == "tags.pem"
    assert config.auth == AuthConfig(round_trip_delay=0.0, require_final_confirmation=True)
    assert config.timing == TimingConfig()


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="unknown config key"):
        AppConfig.from_dict({"keyfile": "x"})
    with pytest.raises(ValueError, match="unknown layout keys"):
        AppConfig.from_dict({"layout": {"signature_pages": 4}})


def test_from_json(tmp_path):
    path = tmp_path / "signer.json"
    path.write_text(json.dumps({
        "new_master_key": "11" * 16,
        "timing": {"write_settle_delay": 0.1},
    }), encoding="utf-8")
    config = AppConfig.from_json(path)
    assert config.new_master_key_bytes == bytes([0x11] * 16)
    assert config.timing.write_settle_delay == 0.1


def test_config_is_immutable():
    with pytest.raises(AttributeError):
        AppConfig().key_bits = 4096
