import json

import pytest

from resticwatch import config
from resticwatch.config import Config, ConfigError

KEY = config.derive_key("example-host", "user")
OTHER_KEY = config.derive_key("other-host", "user")


def _config(tmp_path, **kwargs):
    return Config(path=tmp_path / "sub" / "config.enc", key=KEY, **kwargs)


def test_derive_key_is_deterministic_and_sized():
    assert config.derive_key("example-host", "user") == KEY
    assert len(KEY) == config.KEY_LENGTH
    assert KEY != OTHER_KEY


def test_encrypt_decrypt_round_trip():
    blob = config.encrypt(KEY, b"hello world")
    assert b"hello world" not in blob
    assert config.decrypt(KEY, blob) == b"hello world"


def test_encrypt_uses_fresh_nonce():
    first = config.encrypt(KEY, b"same")
    second = config.encrypt(KEY, b"same")
    assert len(first) == len(second)
    assert (first == second) is False
    assert config.decrypt(KEY, first) == b"same"
    assert config.decrypt(KEY, second) == b"same"


def test_decrypt_too_short():
    with pytest.raises(ConfigError, match="ciphertext too short"):
        config.decrypt(KEY, b"abc")


def test_decrypt_tampered_or_wrong_key():
    blob = bytearray(config.encrypt(KEY, b"payload"))
    with pytest.raises(ConfigError):
        config.decrypt(OTHER_KEY, bytes(blob))
    blob[-1] ^= 1
    with pytest.raises(ConfigError):
        config.decrypt(KEY, bytes(blob))


def test_bad_key_length_raises():
    with pytest.raises(ConfigError):
        config.encrypt(b"short", b"data")


def test_load_missing_file_gives_defaults(tmp_path):
    cfg = config.load(tmp_path / "none.enc", KEY)
    assert cfg.monitoring.check_interval == 60
    assert cfg.monitoring.enabled is True
    assert cfg.onedrive.monitor_paths == []
    assert cfg.is_configured() is False


def test_save_and_load_round_trip(tmp_path):
    cfg = _config(tmp_path)
    cfg.onedrive.access_token = "token"
    cfg.onedrive.refresh_token = "token"
    cfg.onedrive.token_expiry = 1700000000
    cfg.onedrive.monitor_paths = ["A1", "B2"]
    cfg.telegram.bot_token = "token"
    cfg.telegram.chat_id = -100
    cfg.monitoring.check_interval = 15
    cfg.save()

    loaded = config.load(cfg.path, KEY)
    assert loaded.to_dict() == cfg.to_dict()
    assert loaded.is_configured() is True


def test_saved_file_is_encrypted_json(tmp_path):
    cfg = _config(tmp_path)
    cfg.telegram.bot_token = "secret"
    cfg.save()
    raw = cfg.path.read_bytes()
    assert b"secret" not in raw
    assert json.loads(config.decrypt(KEY, raw)) == cfg.to_dict()


def test_load_with_wrong_key_fails(tmp_path):
    cfg = _config(tmp_path)
    cfg.save()
    with pytest.raises(ConfigError, match="failed to decrypt config"):
        config.load(cfg.path, OTHER_KEY)


def test_load_invalid_json_fails(tmp_path):
    path = tmp_path / "config.enc"
    path.write_bytes(config.encrypt(KEY, b"not json"))
    with pytest.raises(ConfigError, match="failed to unmarshal config"):
        config.load(path, KEY)


def test_update_from_dict_keeps_absent_fields(tmp_path):
    cfg = _config(tmp_path)
    cfg.telegram.bot_token = "token"
    cfg.update_from_dict({"telegram": {"chat_id": 42}, "onedrive": {"monitor_paths": None}})
    assert cfg.telegram.chat_id == 42
    assert cfg.telegram.bot_token == "token"
    assert cfg.monitoring.check_interval == 60
    assert cfg.onedrive.monitor_paths == []


def test_update_from_dict_rejects_wrong_types(tmp_path):
    cfg = _config(tmp_path)
    with pytest.raises(ConfigError):
        cfg.update_from_dict({"monitoring": {"check_interval": "often"}})
    with pytest.raises(ConfigError):
        cfg.update_from_dict(["not", "a", "dict"])


def test_is_configured_needs_both_tokens(tmp_path):
    cfg = _config(tmp_path)
    cfg.onedrive.access_token = "token"
    assert cfg.is_configured() is False
    cfg.telegram.bot_token = "token"
    assert cfg.is_configured() is True


def test_reset_clears_settings_but_keeps_location(tmp_path):
    cfg = _config(tmp_path)
    cfg.onedrive.access_token = "token"
    cfg.telegram.chat_id = 7
    path = cfg.path
    cfg.reset()
    assert cfg.is_configured() is False
    assert cfg.telegram.chat_id == 0
    assert cfg.monitoring.enabled is False
    assert cfg.path == path
    cfg.save()
    assert config.load(path, KEY).to_dict() == cfg.to_dict()


def test_to_dict_uses_json_field_names(tmp_path):
    data = _config(tmp_path).to_dict()
    assert set(data) == {"onedrive", "telegram", "monitoring"}
    assert set(data["onedrive"]) == {
        "access_token",
        "refresh_token",
        "token_expiry",
        "monitor_paths",
    }
    assert set(data["telegram"]) == {"bot_token", "chat_id"}
    assert set(data["monitoring"]) == {"check_interval", "enabled"}