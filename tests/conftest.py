"""tests/conftest.py: shared fixtures for the Sugar packager test suite."""
import sys
from pathlib import Path

import pytest

# Add tools/ to sys.path for CLI module imports
TOOLS_DIR = str(Path(__file__).resolve().parent.parent / "tools")
if TOOLS_DIR not in sys.path:
    sys.path.insert(0, TOOLS_DIR)

AWS_ENV_VARS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_SECURITY_TOKEN",
    "AWS_PROFILE",
    "AWS_DEFAULT_PROFILE",
    "AWS_CONTAINER_CREDENTIALS_RELATIVE_URI",
    "AWS_CONTAINER_CREDENTIALS_FULL_URI",
    "AWS_WEB_IDENTITY_TOKEN_FILE",
    "AWS_ROLE_ARN",
    "SUGAR_PACKAGER_DESTINATION",
    "SUGAR_PACKAGER_S3BUCKET",
)


def write_sugar_install(root: Path, db_type: str = "mysqli") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "sugar_version.php").write_text(
        "<?php\n$sugar_version = '7.9.3.0';\n$sugar_db_version = '7.9.3.0';\n$sugar_flavor = 'ENT';\n",
        encoding="utf-8",
    )
    (root / "config.php").write_text(
        "<?php\n$sugar_config = array (\n  'dbconfig' => array (\n"
        f"    'db_host_name' => 'localhost',\n    'db_type' => '{db_type}',\n  ),\n);\n",
        encoding="utf-8",
    )
    (root / "index.php").write_text("<?php\n// entry point\n", encoding="utf-8")
    (root / "modules" / "Accounts").mkdir(parents=True)
    (root / "modules" / "Accounts" / "Account.php").write_text("<?php\nclass Account {}\n", encoding="utf-8")
    (root / "upload").mkdir()
    (root / "upload" / "attachment.txt").write_text("hello\n", encoding="utf-8")
    (root / "cache" / "smarty").mkdir(parents=True)
    (root / "cache" / "smarty" / "compiled.php").write_text("<?php\n", encoding="utf-8")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    return root


@pytest.fixture
def sugar_install(tmp_path):
    return write_sugar_install(tmp_path / "sugar")


@pytest.fixture
def isolated_aws_env(tmp_path, monkeypatch):
    """Point boto3 at empty credential/config files and disable IMDS probing."""
    for name in AWS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    aws_dir = tmp_path / "aws"
    aws_dir.mkdir()
    creds_file = aws_dir / "credentials"
    config_file = aws_dir / "config"
    creds_file.write_text("", encoding="utf-8")
    config_file.write_text("", encoding="utf-8")
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(creds_file))
    monkeypatch.setenv("AWS_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("AWS_EC2_METADATA_DISABLED", "true")
    return {"credentials": creds_file, "config": config_file}
