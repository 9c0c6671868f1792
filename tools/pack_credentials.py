#!/usr/bin/env python3
"""AWS credential resolution for package uploads.

Explicit ``--aws-creds key:secret`` wins. Otherwise a fixed provider chain is
consulted: environment variables, then the shared credentials file
(``~/.aws/credentials``), then the config file (``~/.aws/config``). Container
and instance-metadata providers are never queried. Finding nothing is not an
error here; the upload step decides whether missing credentials matter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import botocore.session
from botocore.credentials import ConfigProvider, CredentialResolver, EnvProvider, SharedCredentialProvider
from botocore.exceptions import BotoCoreError, ClientError

from pack_errors import ConfigError
from pack_options import PackConfig
from pack_reporter import Reporter


@dataclass(frozen=True)
class Credentials:
    key: str = ""
    secret: str = ""
    token: Optional[str] = None
    source: str = "none"

    def __bool__(self) -> bool:
        return bool(self.key and self.secret)

    def public_summary(self) -> Dict[str, Any]:
        return {"present": bool(self), "source": self.source, "key": self.key or None}


class ProviderChain:
    """Env, shared credentials file, config file; first hit wins."""

    def __init__(self, session: Optional[botocore.session.Session] = None):
        self._session = session if session is not None else botocore.session.Session()

    def resolver(self) -> CredentialResolver:
        profile = self._session.get_config_variable("profile") or "default"
        return CredentialResolver(
            providers=[
                EnvProvider(),
                SharedCredentialProvider(
                    creds_filename=self._session.get_config_variable("credentials_file"),
                    profile_name=profile,
                ),
                ConfigProvider(
                    config_filename=self._session.get_config_variable("config_file"),
                    profile_name=profile,
                ),
            ]
        )

    def get_credentials(self):
        return self.resolver().load_credentials()


def parse_aws_creds(text: str) -> Credentials:
    """Split ``key:secret`` on the first colon; secrets may contain colons."""
    key, sep, secret = text.partition(":")
    key, secret = key.strip(), secret.strip()
    if not sep or not key or not secret:
        raise ConfigError("--aws-creds must be an AWS Access Key/Secret pair formatted as key:secret")
    return Credentials(key=key, secret=secret, source="cli")


def resolve_credentials(
    config: PackConfig,
    reporter: Reporter,
    session_factory: Optional[Callable[[], Any]] = None,
) -> Credentials:
    if config.aws_creds:
        return parse_aws_creds(config.aws_creds)

    factory = session_factory if session_factory is not None else ProviderChain
    found = None
    try:
        found = factory().get_credentials()
        if found is not None:
            found = found.get_frozen_credentials()
    except (BotoCoreError, ClientError) as exc:
        reporter.warn(str(exc))
        found = None

    if found is None or not found.access_key or not found.secret_key:
        reporter.log("Continuing without AWS credentials...", 1)
        return Credentials()

    return Credentials(
        key=found.access_key,
        secret=found.secret_key,
        token=found.token,
        source="provider_chain",
    )
