"""
Load environment variables from AWS Secrets Manager before Django settings are loaded.
Import this module first in manage.py, asgi.py, and wsgi.py so os.environ is populated
before poker_server.settings (and any _env / _env_bool / _env_csv) are evaluated.

Opt-in: nothing happens unless POKER_SECRET_NAME is set, or ENVIRONMENT is set
(secret name then derived as poker-{ENVIRONMENT}/server-secrets).
Uses setdefault so existing env vars override secret values.
"""
from __future__ import annotations

import json
import logging
import os

import boto3

logger = logging.getLogger(__name__)


def secret_name_from_env() -> str | None:
    name = os.environ.get("POKER_SECRET_NAME", "").strip()
    if name:
        return name
    env = os.environ.get("ENVIRONMENT", "").strip()
    if env:
        return f"poker-{env}/server-secrets"
    return None


def load_secrets_from_aws(secret_name: str) -> int:
    """Copy the JSON secret's keys into os.environ. Returns the number of keys applied."""
    region = os.environ.get("AWS_REGION", "us-east-2")
    client = boto3.client("secretsmanager", region_name=region)
    response = client.get_secret_value(SecretId=secret_name)
    secret_str = response.get("SecretString")
    if not secret_str:
        raise RuntimeError(f"Secret {secret_name!r} has no SecretString")
    data = json.loads(secret_str)
    applied = 0
    for key, value in data.items():
        if value is not None and key not in os.environ:
            os.environ[key] = str(value)
            applied += 1
    logger.info("Loaded %d settings from secret %s", applied, secret_name)
    return applied


# Run on import so that any later import of settings sees the env
_secret_name = secret_name_from_env()
if _secret_name:
    load_secrets_from_aws(_secret_name)
