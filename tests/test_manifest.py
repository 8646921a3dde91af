"""Tests for manifest encoding and decoding."""

import pytest

from cloudmount_backup.errors import ManifestError
from cloudmount_backup.models import BackupEntry, ItemType
from cloudmount_backup.sync.manifest import ManifestCodec


@pytest.fixture
def manifest_dir(tmp_path):
    path = tmp_path / "manifests"
    path.mkdir()
    return path


@pytest.fixture
def codec(manifest_dir):
    return ManifestCodec(temp_dir=manifest_dir)


def _entries(*paths):
    return [BackupEntry(path=p, item_type=ItemType.FILE) for p in paths]


def test_encode_preserves_order_unicode_and_spaces(codec):
    paths = ["/Users/me/Documents/My Report.pdf", "/tmp/z", "/data/Ünïcödé/日本語.txt", "/a"]

    with codec.encode(_entries(*paths)) as manifest:
        content = manifest.path.read_text(encoding="utf-8")
        assert content == "".join(f"{p}\n" for p in paths)
        assert codec.decode(manifest) == paths
        assert len(manifest) == 4


def test_encode_accepts_plain_strings(codec):
    with codec.encode(["/one", "/two"]) as manifest:
        assert codec.decode(manifest.path) == ["/one", "/two"]
        assert codec.decode(str(manifest.path)) == ["/one", "/two"]


def test_empty_entry_list_yields_empty_manifest(codec):
    with codec.encode([]) as manifest:
        assert manifest.path.exists()
        assert manifest.path.read_text(encoding="utf-8") == ""
        assert codec.decode(manifest) == []


def test_decode_skips_blank_lines(tmp_path):
    manifest_file = tmp_path / "list.txt"
    manifest_file.write_text("/a\n\n   \n/b c\n\n", encoding="utf-8")

    assert ManifestCodec.decode(manifest_file) == ["/a", "/b c"]


def test_decode_missing_file_raises(tmp_path):
    with pytest.raises(ManifestError):
        ManifestCodec.decode(tmp_path / "does-not-exist.txt")


def test_close_removes_file_and_is_idempotent(codec):
    manifest = codec.encode(_entries("/a"))
    assert manifest.path.exists()

    manifest.close()
    assert manifest.closed
    assert not manifest.path.exists()

    manifest.close()


def test_context_manager_removes_file_on_error(codec, manifest_dir):
    with pytest.raises(RuntimeError):
        with codec.encode(_entries("/a", "/b")):
            raise RuntimeError("boom")

    assert list(manifest_dir.iterdir()) == []


@pytest.mark.parametrize("bad_path", ["/tmp/line\nbreak", "/tmp/carriage\rreturn"])
def test_line_breaks_are_rejected(codec, manifest_dir, bad_path):
    with pytest.raises(ManifestError):
        codec.encode(["/ok", bad_path])

    assert list(manifest_dir.iterdir()) == []


def test_undecodable_filename_is_rejected(codec, manifest_dir):
    # os.fsdecode turns the raw byte 0xe9 into a lone surrogate
    path = "/home/me/caf\udce9.txt"

    with pytest.raises(ManifestError):
        codec.encode([BackupEntry(path=path, item_type=ItemType.FILE)])

    assert list(manifest_dir.iterdir()) == []
