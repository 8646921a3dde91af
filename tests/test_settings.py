"""Tests for configuration loading and validation."""

import pytest
import yaml

from cloudmount_backup.config.settings import TOKEN_ENV_VAR, BackupConfig, DestinationConfig, is_loopback_host
from cloudmount_backup.errors import ConfigurationError


def _write(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_yaml_round_trip(config, config_file):
    loaded = BackupConfig.from_yaml(config_file)

    assert loaded.dict() == config.dict()


def test_destination_path_with_and_without_machine_name():
    assert DestinationConfig(mount_root="/mnt/drive").destination_path() == "/mnt/drive/CloudMountBackup"
    assert DestinationConfig(
        mount_root="/mnt/drive/", backup_dir_name="Backups", machine_name="laptop",
    ).destination_path() == "/mnt/drive/Backups/laptop"


def test_blank_machine_name_is_ignored():
    assert DestinationConfig(mount_root="/mnt/drive", machine_name="  ").machine_name is None


def test_defaults(tmp_path):
    path = _write(tmp_path / "config.yaml", {'destination': {'mount_root': '/mnt/drive'}})

    config = BackupConfig.from_yaml(path)

    assert config.trigger.host == "127.0.0.1"
    assert config.trigger.port == 7022
    assert config.sync_options.timeout_seconds is None
    assert config.lock_path == config.entries_path.with_name("sync.lock")


def test_missing_token_is_not_invented_on_load(tmp_path):
    path = _write(tmp_path / "config.yaml", {'destination': {'mount_root': '/mnt/drive'}})

    first = BackupConfig.from_yaml(path)
    second = BackupConfig.from_yaml(path)

    assert first.trigger.token is None
    assert second.trigger.token is None


def test_token_from_environment_without_trigger_section(tmp_path, monkeypatch):
    path = _write(tmp_path / "config.yaml", {'destination': {'mount_root': '/mnt/drive'}, 'trigger': None})
    monkeypatch.setenv(TOKEN_ENV_VAR, "from-env")

    assert BackupConfig.from_yaml(path).trigger.token == "from-env"


def test_token_from_environment_overrides_file(tmp_path, monkeypatch):
    path = _write(tmp_path / "config.yaml", {
        'destination': {'mount_root': '/mnt/drive'},
        'trigger': {'token': 'from-file'},
    })
    monkeypatch.setenv(TOKEN_ENV_VAR, "from-env")

    assert BackupConfig.from_yaml(path).trigger.token == "from-env"


@pytest.mark.parametrize("data", [
    {'destination': {'mount_root': 'relative/mount'}},
    {'destination': {'mount_root': '/mnt', 'backup_dir_name': 'a/b'}},
    {'destination': {'mount_root': '/mnt'}, 'trigger': {'host': '0.0.0.0'}},
    {'destination': {'mount_root': '/mnt'}, 'trigger': {'host': '192.168.1.10'}},
    {'destination': {'mount_root': '/mnt'}, 'trigger': {'port': 0}},
    {'destination': {'mount_root': '/mnt'}, 'trigger': {'token': '   '}},
    {'destination': {'mount_root': '/mnt'}, 'sync_options': {'timeout_seconds': 0}},
    {'destination': {'mount_root': '/mnt'}, 'logging': {'level': 'LOUD'}},
    {},
])
def test_invalid_configuration_is_rejected(tmp_path, data):
    path = _write(tmp_path / "config.yaml", data)

    with pytest.raises(ConfigurationError):
        BackupConfig.from_yaml(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        BackupConfig.from_yaml(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("destination: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        BackupConfig.from_yaml(path)


@pytest.mark.parametrize("host, expected", [
    ("127.0.0.1", True),
    ("127.0.0.2", True),
    ("::1", True),
    ("localhost", True),
    ("0.0.0.0", False),
    ("example.com", False),
])
def test_is_loopback_host(host, expected):
    assert is_loopback_host(host) is expected
