#!/usr/bin/env python3
"""Error taxonomy for the Sugar packager CLI.

Every failure the packager can report is a ``PackError`` subclass carrying a
``kind`` (stable, machine-readable) and the process ``exit_code`` it maps to.
Local failures always exit 1; collaborator failures (packing, uploading) pass
their own non-zero code through.
"""

from __future__ import annotations

from typing import Dict, Optional

KIND_USAGE = "usage"
KIND_CONFIG = "config"
KIND_CREDENTIALS = "credentials"
KIND_PACKAGE_READ = "package_read"
KIND_MANIFEST_READ = "manifest_read"
KIND_PACKAGING = "packaging"
KIND_UPLOAD = "upload"

EXIT_CODES: Dict[str, int] = {
    KIND_USAGE: 1,
    KIND_CONFIG: 1,
    KIND_CREDENTIALS: 1,
    KIND_PACKAGE_READ: 1,
    KIND_MANIFEST_READ: 1,
    KIND_PACKAGING: 1,
    KIND_UPLOAD: 1,
}


class PackError(RuntimeError):
    kind = "error"
    passthrough_code = False

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        fallback = EXIT_CODES.get(self.kind, 1)
        if self.passthrough_code and isinstance(exit_code, int) and exit_code > 0:
            self.exit_code = exit_code
        else:
            self.exit_code = fallback

    def to_payload(self) -> Dict[str, object]:
        return {
            "code": self.kind,
            "message": self.message,
            "error_type": self.__class__.__name__,
        }


class UsageError(PackError):
    """Bad command line; the caller shows usage before the message."""

    kind = KIND_USAGE
    json_requested = False


class ConfigError(PackError):
    kind = KIND_CONFIG


class CredentialError(PackError):
    kind = KIND_CREDENTIALS


class PackageReadError(PackError):
    kind = KIND_PACKAGE_READ


class ManifestReadError(PackError):
    kind = KIND_MANIFEST_READ


class PackagingError(PackError):
    kind = KIND_PACKAGING
    passthrough_code = True


class UploadError(PackError):
    kind = KIND_UPLOAD
    passthrough_code = True
