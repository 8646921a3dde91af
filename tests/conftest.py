"""Shared fixtures for the test suite."""

import stat
from pathlib import Path

import pytest

from cloudmount_backup.config.settings import TOKEN_ENV_VAR, BackupConfig
from cloudmount_backup.models import BackupEntry, ItemType
from cloudmount_backup.sync.backup_manager import BackupManager

TEST_TOKEN = "test-token-0123456789"

FAKE_RSYNC_OUTPUT = """\
sending incremental file list
docs/
docs/a.txt
notes.txt

sent 1,234 bytes  received 56 bytes  2,580.00 bytes/sec
total size is 500  speedup is 0.39
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)
    monkeypatch.setenv("COLUMNS", "300")


@pytest.fixture
def make_script(tmp_path):
    """Write an executable shell script and return its path."""
    def _make(name: str, body: str) -> Path:
        script = tmp_path / "bin" / name
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script
    return _make


@pytest.fixture
def captured_manifest(tmp_path) -> Path:
    return tmp_path / "captured_manifest.txt"


@pytest.fixture
def fake_rsync(make_script, captured_manifest) -> Path:
    """Stand-in for rsync that copies the manifest aside and prints verbose output."""
    body = (
        'manifest="${2#--files-from=}"\n'
        f'cp "$manifest" "{captured_manifest}"\n'
        f"cat <<'OUT'\n{FAKE_RSYNC_OUTPUT}OUT\n"
    )
    return make_script("fake-rsync", body)


@pytest.fixture
def failing_rsync(make_script) -> Path:
    body = (
        'echo "rsync: link_stat \\"/missing\\" failed: No such file or directory (2)" >&2\n'
        "exit 23\n"
    )
    return make_script("failing-rsync", body)


@pytest.fixture
def mount_root(tmp_path) -> Path:
    mount = tmp_path / "mount"
    mount.mkdir()
    return mount


@pytest.fixture
def source_tree(tmp_path) -> Path:
    """A small directory tree to back up."""
    root = tmp_path / "source"
    (root / "docs" / "nested").mkdir(parents=True)
    (root / "docs" / "a.txt").write_text("alpha", encoding="utf-8")
    (root / "docs" / "nested" / "b.txt").write_text("beta", encoding="utf-8")
    (root / "notes.txt").write_text("notes", encoding="utf-8")
    return root


@pytest.fixture
def config(tmp_path, mount_root, fake_rsync) -> BackupConfig:
    return BackupConfig(
        destination={'mount_root': str(mount_root), 'machine_name': 'laptop'},
        trigger={'token': TEST_TOKEN},
        sync_options={'rsync_binary': str(fake_rsync)},
        entries_file=str(tmp_path / "data" / "entries.json"),
        logging={'level': 'DEBUG', 'file': None},
    )


@pytest.fixture
def config_file(tmp_path, config) -> Path:
    path = tmp_path / "config" / "config.yaml"
    config.to_yaml(path)
    return path


@pytest.fixture
def manager(config) -> BackupManager:
    return BackupManager(config)


@pytest.fixture
def file_entry(source_tree) -> BackupEntry:
    return BackupEntry(path=str(source_tree / "notes.txt"), item_type=ItemType.FILE)


@pytest.fixture
def dir_entry(source_tree) -> BackupEntry:
    return BackupEntry(path=str(source_tree / "docs"), item_type=ItemType.DIRECTORY)
