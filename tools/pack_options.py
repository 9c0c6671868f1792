#!/usr/bin/env python3
"""Command line model for the Sugar packager.

Turns raw argument tokens into a validated ``PackConfig`` or raises
``UsageError``. Parsing reads the environment and the working directory for
defaults and nothing else.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from cli_runtime import APPNAME, version_text
from pack_errors import UsageError

PACKAGE_TYPES = ("Cloud", "MySQL")
DEFAULT_PACKAGE_TYPE = "Cloud"
DEFAULT_S3BUCKET = "us"
DEFAULT_VERBOSITY = 1
VERBOSITY_LEVELS = range(0, 6)

ENV_DESTINATION = "SUGAR_PACKAGER_DESTINATION"
ENV_S3BUCKET = "SUGAR_PACKAGER_S3BUCKET"

DESCRIPTION = (
    "Packages a local Sugar installation for upload and import to the SugarCRM Cloud environment.\n\n"
    "<sugar-path> is required unless an existing package is passed to --upload"
)

_UPLOAD_CREATED = "\0create-then-upload"


class UploadMode(Enum):
    NONE = "none"
    CREATED = "created"  # --upload without a path: pack, then upload the new package
    EXISTING = "existing"  # --upload <path>: skip packing


@dataclass
class PackConfig:
    sugar_path: Optional[str] = None
    name: Optional[str] = None
    destination: str = "."
    package_type: str = DEFAULT_PACKAGE_TYPE
    upload_mode: UploadMode = UploadMode.NONE
    upload_path: Optional[str] = None
    aws_creds: Optional[str] = None
    s3bucket: str = DEFAULT_S3BUCKET
    verbosity: int = DEFAULT_VERBOSITY
    json: bool = False
    json_file: Optional[str] = None
    show_help: bool = False
    show_version: bool = False

    @property
    def upload_requested(self) -> bool:
        return self.upload_mode is not UploadMode.NONE

    @property
    def uploads_existing(self) -> bool:
        return self.upload_mode is UploadMode.EXISTING


class _OptionParser(argparse.ArgumentParser):
    def error(self, message):  # type: ignore[override]
        raise UsageError(message)


def build_parser(environ: Optional[Mapping[str, str]] = None) -> argparse.ArgumentParser:
    env = os.environ if environ is None else environ
    ap = _OptionParser(
        prog=APPNAME,
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
    )
    ap.add_argument("-h", "--help", action="store_true", help="Print this help message and exit.")
    ap.add_argument("-V", "--version", action="store_true", help="Print version information and exit.")
    ap.add_argument(
        "-v",
        "--verbosity",
        type=int,
        nargs="?",
        const=DEFAULT_VERBOSITY,
        default=DEFAULT_VERBOSITY,
        choices=VERBOSITY_LEVELS,
        metavar="0-5",
        help="How much information to output. Valid values are 0-5. Defaults to 1. "
        "Use 0 to suppress all output except errors.",
    )
    ap.add_argument(
        "--name",
        default=None,
        metavar="package name",
        help='File name of the package to be created. Defaults to "<AWS Access Key>.<UNIX timestamp>.zip", '
        'or "<UNIX timestamp>.zip" if no AWS Access Key is found.',
    )
    ap.add_argument(
        "--destination",
        default=env.get(ENV_DESTINATION) or os.getcwd(),
        metavar="directory",
        help=f"Directory to write the package to. Defaults to ${ENV_DESTINATION}, else the current directory.",
    )
    ap.add_argument(
        "--type",
        dest="package_type",
        choices=PACKAGE_TYPES,
        default=DEFAULT_PACKAGE_TYPE,
        metavar="package type",
        help='Type of package to create. Valid types are "MySQL" or "Cloud". Defaults to "Cloud".',
    )
    ap.add_argument(
        "--upload",
        nargs="?",
        const=_UPLOAD_CREATED,
        default=None,
        metavar="path to package",
        help="Upload the package being created OR specify an existing package to be uploaded.",
    )
    ap.add_argument(
        "--aws-creds",
        default=None,
        metavar="key:secret",
        help='AWS Access Key/Secret pair, separated by ":". If no credentials are provided, attempts to load '
        'credentials from environment variables, then "~/.aws/credentials", then "~/.aws/config".',
    )
    ap.add_argument(
        "--s3bucket",
        default=env.get(ENV_S3BUCKET) or DEFAULT_S3BUCKET,
        metavar="s3bucket",
        help='S3 Bucket to upload package to. Valid buckets are "us", "eu", or "au". Defaults to "us".',
    )
    ap.add_argument(
        "--json",
        action="store_true",
        help="Emit a machine-readable JSON result to stdout (progress output goes to stderr).",
    )
    ap.add_argument(
        "--json-file",
        default=None,
        help="Optional path to write the same machine-readable JSON result.",
    )
    ap.add_argument("sugar_path", nargs="?", metavar="sugar-path", help="Path to the Sugar installation to package.")
    return ap


def usage_text(parser: Optional[argparse.ArgumentParser] = None) -> str:
    parser = parser if parser is not None else build_parser()
    return version_text() + parser.format_help()


def _runtime_flags(argv: Sequence[str]) -> argparse.Namespace:
    pre = _OptionParser(add_help=False, allow_abbrev=False)
    pre.add_argument("-h", "--help", action="store_true")
    pre.add_argument("-V", "--version", action="store_true")
    pre.add_argument("--json", action="store_true")
    args, _unknown = pre.parse_known_args(list(argv))
    return args


def parse_options(argv: Sequence[str], environ: Optional[Mapping[str, str]] = None) -> PackConfig:
    """Parse ``argv`` (without the program name) into a ``PackConfig``.

    ``--help`` and ``--version`` win over everything else, including
    otherwise invalid arguments.
    """
    argv = list(argv)
    runtime = _runtime_flags(argv)
    if runtime.help or runtime.version:
        return PackConfig(
            show_help=bool(runtime.help),
            show_version=bool(runtime.version),
            json=bool(runtime.json),
        )

    try:
        return _build_config(argv, environ)
    except UsageError as exc:
        exc.json_requested = bool(runtime.json)
        raise


def _build_config(argv: Sequence[str], environ: Optional[Mapping[str, str]]) -> PackConfig:
    args = build_parser(environ).parse_args(argv)

    if args.upload is None:
        upload_mode, upload_path = UploadMode.NONE, None
    elif args.upload in (_UPLOAD_CREATED, ""):
        upload_mode, upload_path = UploadMode.CREATED, None
    else:
        upload_mode, upload_path = UploadMode.EXISTING, args.upload

    sugar_path = args.sugar_path or None
    if sugar_path is None and upload_mode is not UploadMode.EXISTING:
        raise UsageError("<sugar-path> is required unless an existing package is passed to --upload")
    if sugar_path is not None and upload_mode is UploadMode.EXISTING:
        raise UsageError("<sugar-path> and --upload <package> are mutually exclusive")

    return PackConfig(
        sugar_path=sugar_path,
        name=args.name or None,
        destination=args.destination,
        package_type=args.package_type,
        upload_mode=upload_mode,
        upload_path=upload_path,
        aws_creds=args.aws_creds or None,
        s3bucket=args.s3bucket,
        verbosity=args.verbosity,
        json=bool(args.json),
        json_file=args.json_file,
    )
