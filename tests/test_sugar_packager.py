#!/usr/bin/env python3
"""Packager variants: archive layout, manifest content and failure codes."""
import io
import json
import os
import zipfile

import pytest

from conftest import write_sugar_install
from pack_errors import PackagingError
from pack_reporter import Reporter
from package_manifest import MANIFEST_NAME
from sugar_packager import (
    EXIT_DB_TYPE,
    EXIT_INSTALL_NOT_FOUND,
    EXIT_NOT_SUGAR,
    EXIT_PACKAGE_EXISTS,
    EXIT_WRITE_FAILED,
    PACKAGERS,
    CloudPackager,
    MySQLPackager,
    create_packager,
)


def _quiet():
    return Reporter(0, stream=io.StringIO(), err_stream=io.StringIO())


class TestCloudPackager:
    def test_pack_writes_archive_and_returns_manifest(self, sugar_install, tmp_path):
        out = tmp_path / "out"
        packager = CloudPackager(str(sugar_install), str(out), "pkg.zip", 0, reporter=_quiet())
        manifest = packager.pack()

        pkg = out / "pkg.zip"
        assert pkg.is_file()
        assert not (out / "pkg.zip.part").exists()
        assert manifest["package_type"] == "Cloud"
        assert manifest["packager"] == "sugar-packager"
        assert manifest["sugar_version"] == "7.9.3.0"
        assert manifest["sugar_flavor"] == "ENT"
        assert len(manifest["fingerprint"]) == 16
        assert manifest["files"] == [
            "config.php",
            "index.php",
            "modules/Accounts/Account.php",
            "sugar_version.php",
            "upload/attachment.txt",
        ]

        with zipfile.ZipFile(pkg) as zf:
            names = set(zf.namelist())
            embedded = json.loads(zf.read(MANIFEST_NAME))
        assert names == set(manifest["files"]) | {MANIFEST_NAME}
        assert embedded == manifest

    def test_cache_and_vcs_dirs_are_skipped(self, sugar_install, tmp_path):
        (sugar_install / "modules" / "cache").mkdir()
        (sugar_install / "modules" / "cache" / "keep.php").write_text("<?php", encoding="utf-8")
        manifest = CloudPackager(str(sugar_install), str(tmp_path / "out"), "p.zip", reporter=_quiet()).pack()
        assert not any(f.startswith("cache/") for f in manifest["files"])
        assert not any(f.startswith(".git/") for f in manifest["files"])
        assert "modules/cache/keep.php" in manifest["files"]

    def test_destination_inside_install_does_not_pack_itself(self, sugar_install):
        manifest = CloudPackager(str(sugar_install), str(sugar_install), "self.zip", reporter=_quiet()).pack()
        assert "self.zip" not in manifest["files"]
        assert "self.zip.part" not in manifest["files"]
        assert (sugar_install / "self.zip").is_file()

    def test_fingerprint_tracks_content(self, tmp_path):
        a = write_sugar_install(tmp_path / "a")
        b = write_sugar_install(tmp_path / "b")
        (b / "index.php").write_text("<?php\n// changed\n", encoding="utf-8")
        fa = CloudPackager(str(a), str(tmp_path / "oa"), "a.zip", reporter=_quiet()).pack()["fingerprint"]
        fa2 = CloudPackager(str(a), str(tmp_path / "oa"), "a2.zip", reporter=_quiet()).pack()["fingerprint"]
        fb = CloudPackager(str(b), str(tmp_path / "ob"), "b.zip", reporter=_quiet()).pack()["fingerprint"]
        assert fa == fa2
        assert fa != fb

    @pytest.mark.skipif(os.name == "nt", reason="symlink setup differs on Windows")
    def test_symlinks_are_skipped(self, sugar_install, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("secret", encoding="utf-8")
        (sugar_install / "link.txt").symlink_to(outside)
        manifest = CloudPackager(str(sugar_install), str(tmp_path / "out"), "p.zip", reporter=_quiet()).pack()
        assert "link.txt" not in manifest["files"]

    def test_missing_install(self, tmp_path):
        with pytest.raises(PackagingError) as exc_info:
            CloudPackager(str(tmp_path / "missing"), str(tmp_path), "p.zip", reporter=_quiet()).pack()
        assert exc_info.value.exit_code == EXIT_INSTALL_NOT_FOUND

    def test_not_a_sugar_install(self, tmp_path):
        (tmp_path / "plain").mkdir()
        with pytest.raises(PackagingError) as exc_info:
            CloudPackager(str(tmp_path / "plain"), str(tmp_path), "p.zip", reporter=_quiet()).pack()
        assert exc_info.value.exit_code == EXIT_NOT_SUGAR

    def test_existing_package_is_not_overwritten(self, sugar_install, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "p.zip").write_bytes(b"old")
        with pytest.raises(PackagingError) as exc_info:
            CloudPackager(str(sugar_install), str(out), "p.zip", reporter=_quiet()).pack()
        assert exc_info.value.exit_code == EXIT_PACKAGE_EXISTS
        assert (out / "p.zip").read_bytes() == b"old"

    def test_unreadable_directory_fails_the_pack(self, sugar_install, tmp_path, monkeypatch):
        blocked = str(sugar_install.resolve() / "modules" / "Accounts")
        real_scandir = os.scandir

        def _scandir(path="."):
            if os.fspath(path) == blocked:
                raise PermissionError(13, "Permission denied", blocked)
            return real_scandir(path)

        monkeypatch.setattr(os, "scandir", _scandir)
        out = tmp_path / "out"
        with pytest.raises(PackagingError) as exc_info:
            CloudPackager(str(sugar_install), str(out), "p.zip", reporter=_quiet()).pack()
        assert exc_info.value.exit_code == EXIT_WRITE_FAILED
        assert blocked in exc_info.value.message
        assert not (out / "p.zip").exists()
        assert not (out / "p.zip.part").exists()

    def test_verbose_logging_lists_added_and_skipped(self, sugar_install, tmp_path):
        out = io.StringIO()
        reporter = Reporter(3, stream=out, err_stream=io.StringIO())
        CloudPackager(str(sugar_install), str(tmp_path / "out"), "p.zip", 3, reporter=reporter).pack()
        text = out.getvalue()
        assert "Packing 5 files" in text
        assert "  [ADD] index.php" in text
        assert "  [SKIP] cache/ -- cache_dir" in text
        assert "Package written to" in text


class TestMySQLPackager:
    def test_mysql_install_records_db_type(self, sugar_install, tmp_path):
        manifest = MySQLPackager(str(sugar_install), str(tmp_path / "out"), "m.zip", reporter=_quiet()).pack()
        assert manifest["package_type"] == "MySQL"
        assert manifest["db_type"] == "mysqli"

    def test_non_mysql_install_is_refused(self, tmp_path):
        root = write_sugar_install(tmp_path / "sugar", db_type="oci8")
        with pytest.raises(PackagingError) as exc_info:
            MySQLPackager(str(root), str(tmp_path / "out"), "m.zip", reporter=_quiet()).pack()
        assert exc_info.value.exit_code == EXIT_DB_TYPE
        assert not (tmp_path / "out" / "m.zip").exists()

    def test_config_override_wins(self, tmp_path):
        root = write_sugar_install(tmp_path / "sugar", db_type="oci8")
        (root / "config_override.php").write_text(
            "<?php\n$sugar_config['dbconfig']['db_type'] = 'mysql';\n", encoding="utf-8"
        )
        assert MySQLPackager.detect_db_type(root) == "mysql"

    def test_unknown_db_type_is_refused(self, tmp_path):
        root = write_sugar_install(tmp_path / "sugar")
        (root / "config.php").unlink()
        with pytest.raises(PackagingError) as exc_info:
            MySQLPackager(str(root), str(tmp_path / "out"), "m.zip", reporter=_quiet()).pack()
        assert exc_info.value.exit_code == EXIT_DB_TYPE


def test_packager_table_is_closed():
    assert set(PACKAGERS) == {"Cloud", "MySQL"}
    assert isinstance(create_packager("MySQL", "/srv", "/out", "n.zip"), MySQLPackager)
    assert isinstance(create_packager("Cloud", "/srv", "/out", "n.zip"), CloudPackager)
    with pytest.raises(PackagingError):
        create_packager("Postgres", "/srv", "/out", "n.zip")
