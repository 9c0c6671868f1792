#!/usr/bin/env python3
"""Shared runtime helpers for the Sugar packager CLI."""

from __future__ import annotations

import json
import os
import platform
import sys
from pathlib import Path
from typing import Any, Dict

APPNAME = "sugar-packager"
VERSION = "1.0.0"


def resolve_repo_root(script_file: str) -> Path:
    """Resolve repo root for source and PyInstaller-frozen execution."""
    meipass = getattr(sys, "_MEIPASS", None)
    if meipass:
        return Path(meipass)
    return Path(script_file).resolve().parent.parent


def version_text() -> str:
    return f"{APPNAME}: {VERSION}\n"


def get_build_info(tool: str, repo_root: Path) -> Dict[str, Any]:
    try:
        import boto3  # type: ignore
        boto3_ver = boto3.__version__
    except Exception:
        boto3_ver = None
    try:
        import botocore  # type: ignore
        botocore_ver = botocore.__version__
    except Exception:
        botocore_ver = None
    try:
        import xxhash  # type: ignore
        xxhash_ver = getattr(xxhash, "VERSION", None)
    except Exception:
        xxhash_ver = None

    return {
        "tool": tool,
        "app": APPNAME,
        "app_version": VERSION,
        "build_version": os.environ.get("SUGAR_PACKAGER_BUILD_VERSION", "dev"),
        "build_commit": os.environ.get("GITHUB_SHA") or os.environ.get("SUGAR_PACKAGER_BUILD_COMMIT") or "",
        "platform": platform.platform(),
        "system": platform.system(),
        "machine": platform.machine(),
        "python": platform.python_version(),
        "frozen": bool(getattr(sys, "frozen", False)),
        "repo_root": str(repo_root),
        "components": {
            "boto3": boto3_ver,
            "botocore": botocore_ver,
            "xxhash": xxhash_ver,
        },
    }


def version_result(*, tool: str, repo_root: Path) -> Dict[str, Any]:
    return {
        "version": "sugar-packager-cli-version-v1",
        "build": get_build_info(tool, repo_root),
    }


def write_json_private_default(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    if os.name != "nt":
        try:
            path.chmod(0o600)
        except OSError:
            pass
