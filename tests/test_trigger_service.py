"""Tests for the HTTP trigger service."""

import threading
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from cloudmount_backup.auth.token_auth import BearerTokenAuth
from cloudmount_backup.errors import ConfigurationError
from cloudmount_backup.service.trigger_service import create_app, run_server
from cloudmount_backup.sync.backup_manager import BackupManager
from cloudmount_backup.sync.entry_store import EntryStore
from cloudmount_backup.sync.executor import SyncExecutor

from conftest import TEST_TOKEN

AUTH_HEADERS = BearerTokenAuth.header_for(TEST_TOKEN)


@pytest.fixture
def client(manager):
    return TestClient(create_app(manager, BearerTokenAuth(TEST_TOKEN)))


@pytest.mark.parametrize("method, url", [("GET", "/status"), ("POST", "/sync")])
@pytest.mark.parametrize("headers", [
    {},
    {'Authorization': f"Bearer {TEST_TOKEN[:-1]}X"},
    {'Authorization': f"Token {TEST_TOKEN}"},
])
def test_bad_token_is_rejected_before_touching_the_manager(method, url, headers):
    manager = MagicMock(spec=BackupManager)
    client = TestClient(create_app(manager, BearerTokenAuth(TEST_TOKEN)))

    response = client.request(method, url, headers=headers)

    assert response.status_code == 401
    assert response.json() == {"error": "unauthorized"}
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert not manager.method_calls


def test_status_when_idle(client, manager, source_tree):
    manager.store.add_entry(str(source_tree / "notes.txt"))

    response = client.get("/status", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.json() == {
        'status': "idle",
        'last_result': None,
        'last_error': None,
        'entries_count': 1,
        'destination': manager.destination,
    }


def test_sync_returns_result_and_updates_status(client, manager, source_tree):
    entry = manager.store.add_entry(str(source_tree / "docs"))

    response = client.post("/sync", headers=AUTH_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body['files_transferred'] == 2
    assert body['dirs_transferred'] == 1
    assert body['bytes_transferred'] == 1234
    assert body['exit_code'] == 0
    assert manager.store.get_entry(entry.id).last_synced is not None

    status = client.get("/status", headers=AUTH_HEADERS).json()
    assert status['last_result'] == body


def test_sync_without_entries(client):
    response = client.post("/sync", headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()['error'] == "no_entries"


def test_sync_with_no_valid_paths(client, manager, source_tree):
    target = source_tree / "notes.txt"
    manager.store.add_entry(str(target))
    target.unlink()

    response = client.post("/sync", headers=AUTH_HEADERS)

    assert response.status_code == 422
    assert response.json()['error'] == "invalid_path"


def test_sync_subprocess_failure(client, manager, source_tree, failing_rsync):
    manager.store.add_entry(str(source_tree / "notes.txt"))
    manager.orchestrator.executor = SyncExecutor(str(failing_rsync))

    response = client.post("/sync", headers=AUTH_HEADERS)

    assert response.status_code == 500
    body = response.json()
    assert body['error'] == "subprocess_failure"
    assert "exit code 23" in body['message']

    status = client.get("/status", headers=AUTH_HEADERS).json()
    assert "exit code 23" in status['last_error']
    assert status['last_result'] is None


def test_destination_not_directory(client, manager, source_tree, mount_root):
    manager.store.add_entry(str(source_tree / "notes.txt"))
    (mount_root / "CloudMountBackup").mkdir()
    (mount_root / "CloudMountBackup" / "laptop").write_text("in the way", encoding="utf-8")

    response = client.post("/sync", headers=AUTH_HEADERS)

    assert response.status_code == 409
    assert response.json()['error'] == "destination_not_directory"


class BlockingExecutor(SyncExecutor):
    def __init__(self, rsync_binary):
        super().__init__(rsync_binary=rsync_binary)
        self.started = threading.Event()
        self.release = threading.Event()

    def run(self, arguments):
        self.started.set()
        assert self.release.wait(timeout=10)
        return super().run(arguments)


def test_sync_while_running_conflicts_and_status_stays_responsive(client, manager, source_tree, fake_rsync):
    manager.store.add_entry(str(source_tree / "notes.txt"))
    executor = BlockingExecutor(str(fake_rsync))
    manager.orchestrator.executor = executor

    worker = threading.Thread(target=manager.run_backup)
    worker.start()
    try:
        assert executor.started.wait(timeout=10)

        status = client.get("/status", headers=AUTH_HEADERS)
        assert status.json()['status'] == "running"

        response = client.post("/sync", headers=AUTH_HEADERS)
        assert response.status_code == 409
        assert response.json()['error'] == "sync_already_running"
    finally:
        executor.release.set()
        worker.join(timeout=10)

    assert client.get("/status", headers=AUTH_HEADERS).json()['status'] == "idle"


def test_run_server_refuses_disabled_service(manager, config):
    config.trigger.enabled = False

    with pytest.raises(ConfigurationError):
        run_server(manager, config)


def test_sync_sees_entries_added_by_another_process(client, manager, config, source_tree):
    served = manager.store.add_entry(str(source_tree / "notes.txt"))

    # What `cloudmount-backup add` does while the service is up
    added = EntryStore(config.entries_path).add_entry(str(source_tree / "docs"))

    assert client.get("/status", headers=AUTH_HEADERS).json()['entries_count'] == 2
    assert client.post("/sync", headers=AUTH_HEADERS).status_code == 200

    on_disk = EntryStore(config.entries_path)
    assert [e.id for e in on_disk.list_entries()] == [served.id, added.id]
    assert all(e.last_synced is not None for e in on_disk.list_entries())


def test_sync_conflicts_with_a_backup_in_another_process(client, manager, config, source_tree, fake_rsync):
    manager.store.add_entry(str(source_tree / "notes.txt"))
    interactive = BackupManager(config)
    executor = BlockingExecutor(str(fake_rsync))
    interactive.orchestrator.executor = executor

    worker = threading.Thread(target=interactive.run_backup)
    worker.start()
    try:
        assert executor.started.wait(timeout=10)

        response = client.post("/sync", headers=AUTH_HEADERS)
        assert response.status_code == 409
        assert response.json()['error'] == "sync_already_running"
    finally:
        executor.release.set()
        worker.join(timeout=10)

    assert client.post("/sync", headers=AUTH_HEADERS).status_code == 200


def test_run_server_refuses_missing_token(manager, config):
    config.trigger.token = None

    with pytest.raises(ConfigurationError):
        run_server(manager, config)
