#!/usr/bin/env python3
"""
sugar_pack.py
=============
Package a local Sugar installation and optionally upload it to S3.

Operations (chosen from the command line):
    pack            : build <destination>/<name> from <sugar-path>
    pack + upload   : same, then upload the new package (--upload, no path)
    upload          : upload an existing package (--upload <path>), no packing

Packing and uploading are not transactional: a package that was written stays
on disk even when the upload that follows it fails.

Usage:
    python tools/sugar_pack.py /srv/sugar --type MySQL
    python tools/sugar_pack.py /srv/sugar --upload --aws-creds KEY:SECRET
    python tools/sugar_pack.py --upload ./KEY.1700000000.zip --s3bucket eu --json
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, TextIO, Tuple

from cli_runtime import resolve_repo_root, version_result, version_text
from pack_credentials import Credentials, resolve_credentials
from pack_errors import CredentialError, PackError, PackagingError, UsageError
from pack_options import PackConfig, UploadMode, parse_options, usage_text
from pack_reporter import TOOL_NAME, Reporter, build_payload, emit_cli_json
from package_manifest import default_package_name, manifest_metadata, read_package_manifest
from s3_uploader import S3Uploader, resolve_bucket
from sugar_packager import create_packager

REPO_ROOT = resolve_repo_root(__file__)

COMMANDS = {
    UploadMode.NONE: "pack",
    UploadMode.CREATED: "pack_upload",
    UploadMode.EXISTING: "upload",
}


@dataclass
class PackOutcome:
    command: str
    package_path: Path
    package_name: str
    manifest: Dict[str, Any]
    credentials: Credentials
    bucket: Optional[str] = None
    upload: Optional[Dict[str, Any]] = None

    def to_result(self) -> Dict[str, Any]:
        upload = None
        if self.upload is not None:
            upload = {
                "bucket": self.bucket,
                "key": self.package_name,
                "etag": self.upload.get("ETag"),
                "expiration": self.upload.get("Expiration"),
            }
        return {
            "package_path": str(self.package_path),
            "package_name": self.package_name,
            "package_type": self.manifest.get("package_type"),
            "fingerprint": self.manifest.get("fingerprint"),
            "files": len(self.manifest.get("files") or []),
            "credentials": self.credentials.public_summary(),
            "upload": upload,
        }


def load_or_pack(
    config: PackConfig,
    credentials: Credentials,
    reporter: Reporter,
    packager_factory: Callable[..., Any] = create_packager,
) -> Tuple[Path, str, Dict[str, Any]]:
    """Return ``(package_path, package_name, manifest)`` for the requested operation."""
    if config.uploads_existing:
        package = Path(config.upload_path)
        reporter.log("Reading manifest from package...", 1)
        manifest = read_package_manifest(package)
        return package, package.name, manifest

    name = config.name or default_package_name(credentials.key)
    packager = packager_factory(
        config.package_type,
        config.sugar_path,
        config.destination,
        name,
        config.verbosity,
        reporter=reporter,
    )
    try:
        manifest = packager.pack()
    except PackagingError:
        raise
    except OSError as exc:
        raise PackagingError(str(exc)) from exc
    return Path(config.destination) / name, name, manifest


def upload_package(
    config: PackConfig,
    credentials: Credentials,
    package: Path,
    name: str,
    manifest: Dict[str, Any],
    reporter: Reporter,
    uploader_factory: Callable[[Credentials], Any] = S3Uploader,
) -> Tuple[str, Dict[str, Any]]:
    bucket, region = resolve_bucket(config.s3bucket)
    if not credentials:
        raise CredentialError("no AWS credentials found, could not upload package.")

    metadata = manifest_metadata(manifest)
    reporter.log("Connecting to S3 bucket...", 1)
    uploader = uploader_factory(credentials)
    reporter.log("Uploading package...", 1)
    result = uploader.put_object(bucket, region, name, package, metadata)
    reporter.log(
        f"Uploaded '{package}' to S3 bucket '{bucket}'\n"
        f"\tETag {result.get('ETag')}\n"
        f"\texpires on {result.get('Expiration') or 'n/a'}",
        1,
    )
    return bucket, result


def dispatch(
    config: PackConfig,
    reporter: Reporter,
    *,
    packager_factory: Callable[..., Any] = create_packager,
    uploader_factory: Callable[[Credentials], Any] = S3Uploader,
    session_factory: Optional[Callable[[], Any]] = None,
) -> PackOutcome:
    credentials = resolve_credentials(config, reporter, session_factory=session_factory)
    package, name, manifest = load_or_pack(config, credentials, reporter, packager_factory)
    outcome = PackOutcome(
        command=COMMANDS[config.upload_mode],
        package_path=package,
        package_name=name,
        manifest=manifest,
        credentials=credentials,
    )
    if config.upload_requested:
        outcome.bucket, outcome.upload = upload_package(
            config, credentials, package, name, manifest, reporter, uploader_factory
        )
    return outcome


def run(
    argv: Optional[List[str]] = None,
    *,
    packager_factory: Callable[..., Any] = create_packager,
    uploader_factory: Callable[[Credentials], Any] = S3Uploader,
    session_factory: Optional[Callable[[], Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    out = stdout if stdout is not None else sys.stdout
    err = stderr if stderr is not None else sys.stderr

    try:
        config = parse_options(argv, environ)
    except UsageError as exc:
        print(usage_text(), file=err if exc.json_requested else out)
        print(f"Error: {exc.message}", file=err)
        if exc.json_requested:
            payload = build_payload(command="usage", ok=False, exit_code=exc.exit_code, error=exc)
            emit_cli_json(payload, True, None, out)
        return exc.exit_code

    if config.show_help:
        print(usage_text(), end="", file=out)
        return 0
    if config.show_version:
        if config.json:
            result = version_result(tool=TOOL_NAME, repo_root=REPO_ROOT)
            emit_cli_json(build_payload(command="version", ok=True, exit_code=0, result=result), True, None, out)
        else:
            print(version_text(), end="", file=out)
        return 0

    json_file = Path(config.json_file).resolve() if config.json_file else None
    reporter = Reporter(config.verbosity, stream=err if config.json else out, err_stream=err)
    command = COMMANDS[config.upload_mode]

    try:
        outcome = dispatch(
            config,
            reporter,
            packager_factory=packager_factory,
            uploader_factory=uploader_factory,
            session_factory=session_factory,
        )
    except PackError as exc:
        code = reporter.fail(exc)
        if config.json or json_file:
            payload = build_payload(command=command, ok=False, exit_code=code, error=exc)
            emit_cli_json(payload, config.json, json_file, out)
        return code

    if config.json or json_file:
        payload = build_payload(command=outcome.command, ok=True, exit_code=0, result=outcome.to_result())
        emit_cli_json(payload, config.json, json_file, out)
    return 0


def main():
    raise SystemExit(run())


if __name__ == "__main__":
    main()
