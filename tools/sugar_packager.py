#!/usr/bin/env python3
"""
sugar_packager.py
=================
Build a distributable zip from a local Sugar installation.

Two package types are supported, selected from the closed ``PACKAGERS`` table:

    Cloud  : any Sugar installation
    MySQL  : installations whose configured database is MySQL

Each archive carries ``manifest.json`` at its root listing every packed file,
the detected Sugar version/flavor and an xxh64 fingerprint of the contents.
"""

from __future__ import annotations

import datetime
import os
import re
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type

import xxhash

from cli_runtime import APPNAME, VERSION
from pack_errors import PackagingError
from pack_reporter import Reporter
from package_manifest import MANIFEST_NAME, dump_manifest

SKIP_DIRS = {".git", ".svn", ".hg", ".idea", "__pycache__"}
TOP_LEVEL_SKIP_DIRS = {"cache"}
SUGAR_VERSION_FILE = "sugar_version.php"
MYSQL_DB_TYPES = {"mysql", "mysqli"}

EXIT_INSTALL_NOT_FOUND = 2
EXIT_NOT_SUGAR = 3
EXIT_PACKAGE_EXISTS = 4
EXIT_WRITE_FAILED = 5
EXIT_DB_TYPE = 6

_DB_TYPE_CONFIG = re.compile(r"""['"]db_type['"]\s*=>\s*['"]([^'"]+)['"]""")
_DB_TYPE_OVERRIDE = re.compile(
    r"""\$sugar_config\s*\[\s*['"]dbconfig['"]\s*\]\s*\[\s*['"]db_type['"]\s*\]\s*=\s*['"]([^'"]+)['"]"""
)


def _php_string_var(text: str, name: str) -> Optional[str]:
    match = re.search(r"\$%s\s*=\s*['\"]([^'\"]*)['\"]" % re.escape(name), text)
    return match.group(1) if match else None


def xxh64_file(path: Path) -> str:
    hasher = xxhash.xxh64()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def should_skip(rel_parts: Tuple[str, ...], is_dir: bool = False) -> Optional[str]:
    if is_dir:
        if rel_parts[-1] in SKIP_DIRS:
            return "skip_dir"
        if len(rel_parts) == 1 and rel_parts[0] in TOP_LEVEL_SKIP_DIRS:
            return "cache_dir"
        return None
    if rel_parts == (MANIFEST_NAME,):
        return "reserved_name"
    return None


def _utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _walk_error(exc: OSError) -> None:
    raise PackagingError(f"could not read {exc.filename}: {exc}", EXIT_WRITE_FAILED) from exc


class Packager:
    """Packs ``sugar_path`` into ``<destination>/<name>`` and returns the manifest."""

    package_type = ""

    def __init__(
        self,
        sugar_path: str,
        destination: str,
        name: str,
        verbosity: int = 1,
        reporter: Optional[Reporter] = None,
    ):
        self.sugar_path = Path(sugar_path).expanduser()
        self.destination = Path(destination).expanduser()
        self.name = name
        self.verbosity = int(verbosity)
        self.reporter = reporter if reporter is not None else Reporter(self.verbosity)

    @property
    def package_path(self) -> Path:
        return self.destination / self.name

    def pack(self) -> Dict:
        root = self._check_install()
        info = self.inspect(root)
        target = self._prepare_target()
        files = self.collect_files(root, target)
        return self._write_archive(files, target, info)

    def inspect(self, root: Path) -> Dict[str, Optional[str]]:
        text = (root / SUGAR_VERSION_FILE).read_text(encoding="utf-8", errors="replace")
        return {
            "sugar_version": _php_string_var(text, "sugar_version"),
            "sugar_flavor": _php_string_var(text, "sugar_flavor"),
        }

    def _check_install(self) -> Path:
        root = self.sugar_path.resolve()
        if not root.is_dir():
            raise PackagingError(f"Sugar installation not found: {self.sugar_path}", EXIT_INSTALL_NOT_FOUND)
        if not (root / SUGAR_VERSION_FILE).is_file():
            raise PackagingError(
                f"{self.sugar_path} is not a Sugar installation ({SUGAR_VERSION_FILE} not found)",
                EXIT_NOT_SUGAR,
            )
        return root

    def _prepare_target(self) -> Path:
        if self.destination.exists() and not self.destination.is_dir():
            raise PackagingError(f"destination is not a directory: {self.destination}", EXIT_WRITE_FAILED)
        try:
            self.destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PackagingError(f"could not create destination {self.destination}: {exc}", EXIT_WRITE_FAILED) from exc
        target = self.package_path.resolve()
        if target.exists():
            raise PackagingError(f"package already exists: {target}", EXIT_PACKAGE_EXISTS)
        return target

    def collect_files(self, root: Path, target: Path) -> List[Tuple[str, Path]]:
        excluded = {target, target.with_name(target.name + ".part")}
        files: List[Tuple[str, Path]] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=_walk_error):
            dirnames.sort()
            current = Path(dirpath)
            for dname in list(dirnames):
                dpath = current / dname
                rel_dir = dpath.relative_to(root)
                reason = "symlink_dir" if dpath.is_symlink() else should_skip(rel_dir.parts, is_dir=True)
                if reason:
                    dirnames.remove(dname)
                    self.reporter.log(f"  [SKIP] {rel_dir.as_posix()}/ -- {reason}", 2)
            for fname in sorted(filenames):
                fpath = current / fname
                rel_path = fpath.relative_to(root)
                rel = rel_path.as_posix()
                if fpath in excluded:
                    continue
                if fpath.is_symlink():
                    self.reporter.log(f"  [SKIP] {rel} -- symlink_file", 2)
                    continue
                reason = should_skip(rel_path.parts)
                if reason:
                    self.reporter.log(f"  [SKIP] {rel} -- {reason}", 2)
                    continue
                files.append((rel, fpath))
        files.sort(key=lambda row: row[0])
        return files

    def _write_archive(self, files: List[Tuple[str, Path]], target: Path, info: Dict[str, Optional[str]]) -> Dict:
        self.reporter.log(f"Packing {len(files)} files from {self.sugar_path}...", 1)
        part = target.with_name(target.name + ".part")
        fingerprint = xxhash.xxh64()
        try:
            with zipfile.ZipFile(part, "w", compression=zipfile.ZIP_DEFLATED, allowZip64=True) as zf:
                for rel, fpath in files:
                    fingerprint.update(rel.encode("utf-8"))
                    fingerprint.update(xxh64_file(fpath).encode("ascii"))
                    zf.write(fpath, arcname=rel)
                    self.reporter.log(f"  [ADD] {rel}", 3)
                manifest = {
                    "packager": APPNAME,
                    "packager_version": VERSION,
                    "package_type": self.package_type,
                    "created_at": _utc_now(),
                    "fingerprint": fingerprint.hexdigest(),
                    "files": [rel for rel, _ in files],
                }
                manifest.update(info)
                zf.writestr(MANIFEST_NAME, dump_manifest(manifest))
            os.replace(part, target)
        except (OSError, zipfile.LargeZipFile) as exc:
            part.unlink(missing_ok=True)
            raise PackagingError(f"could not write package {target}: {exc}", EXIT_WRITE_FAILED) from exc
        self.reporter.log(f"Package written to {target}", 1)
        return manifest


class CloudPackager(Packager):
    package_type = "Cloud"


class MySQLPackager(Packager):
    package_type = "MySQL"

    def inspect(self, root: Path) -> Dict[str, Optional[str]]:
        info = super().inspect(root)
        db_type = self.detect_db_type(root)
        if db_type is None:
            raise PackagingError(
                f"could not determine database type from {root / 'config.php'}", EXIT_DB_TYPE
            )
        if db_type.lower() not in MYSQL_DB_TYPES:
            raise PackagingError(
                f"MySQL packages require a MySQL installation, found db_type '{db_type}'", EXIT_DB_TYPE
            )
        info["db_type"] = db_type
        return info

    @staticmethod
    def detect_db_type(root: Path) -> Optional[str]:
        db_type = None
        config = root / "config.php"
        if config.is_file():
            match = _DB_TYPE_CONFIG.search(config.read_text(encoding="utf-8", errors="replace"))
            if match:
                db_type = match.group(1)
        override = root / "config_override.php"
        if override.is_file():
            match = _DB_TYPE_OVERRIDE.search(override.read_text(encoding="utf-8", errors="replace"))
            if match:
                db_type = match.group(1)
        return db_type


PACKAGERS: Dict[str, Type[Packager]] = {
    CloudPackager.package_type: CloudPackager,
    MySQLPackager.package_type: MySQLPackager,
}


def create_packager(
    package_type: str,
    sugar_path: str,
    destination: str,
    name: str,
    verbosity: int = 1,
    reporter: Optional[Reporter] = None,
) -> Packager:
    try:
        cls = PACKAGERS[package_type]
    except KeyError:
        raise PackagingError(f"unknown package type: {package_type}") from None
    return cls(sugar_path, destination, name, verbosity, reporter=reporter)
