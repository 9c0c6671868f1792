#!/usr/bin/env python3
"""Package manifest helpers: default names, reading, upload metadata."""

from __future__ import annotations

import json
import os
import time
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional

from pack_errors import ManifestReadError, PackageReadError

MANIFEST_NAME = "manifest.json"
PACKAGE_SUFFIX = ".zip"
FILES_SEPARATOR = ", "


def default_package_name(key: Optional[str] = None, now: Optional[float] = None) -> str:
    """``<key>.<unix timestamp>.zip``, or ``<unix timestamp>.zip`` without a key."""
    stamp = int(time.time() if now is None else now)
    name = f"{stamp}{PACKAGE_SUFFIX}"
    if key:
        name = f"{key}.{name}"
    return name


def dump_manifest(manifest: Dict[str, Any]) -> str:
    return json.dumps(manifest, indent=2, sort_keys=True)


def read_package_manifest(package: Path) -> Dict[str, Any]:
    package = Path(package)
    if not package.is_file() or not os.access(package, os.R_OK):
        raise PackageReadError(
            f"could not read package {package}; make sure it exists and its permissions allow reading"
        )

    invalid = f"could not read manifest from {package}; please make sure it is a valid package"
    try:
        with zipfile.ZipFile(package) as zf:
            raw = zf.read(MANIFEST_NAME)
    except KeyError as exc:
        raise ManifestReadError(invalid) from exc
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        raise ManifestReadError(invalid) from exc
    except OSError as exc:
        raise PackageReadError(f"could not read package {package}: {exc}") from exc

    try:
        manifest = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ManifestReadError(invalid) from exc
    if not isinstance(manifest, dict) or not isinstance(manifest.get("files"), list):
        raise ManifestReadError(invalid)
    return manifest


def manifest_metadata(manifest: Dict[str, Any]) -> Dict[str, str]:
    """Flatten a manifest into S3 user metadata (string values only)."""
    metadata: Dict[str, str] = {}
    for key, value in manifest.items():
        if key == "files":
            metadata[key] = FILES_SEPARATOR.join(str(f) for f in value or [])
        elif value is None:
            metadata[key] = ""
        elif isinstance(value, (dict, list)):
            metadata[key] = json.dumps(value, sort_keys=True)
        else:
            metadata[key] = str(value)
    return metadata
