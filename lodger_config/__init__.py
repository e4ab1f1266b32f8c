"""
lodger_config -- single public entrypoint for tenancy policy configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way to obtain policy at runtime.
    Services receive the returned ``LodgerPolicy`` by constructor injection
    and never read YAML, environment variables or flags themselves.

Failure modes:
    - ``FileNotFoundError`` -- the requested policy file does not exist.
    - ``ValueError`` -- a value is malformed or out of range.

Audit relevance:
    Every call emits a ``lodger_config_loaded`` log entry carrying the
    config_id, version and checksum, tying each computed schedule and
    settlement back to the policy that governed it.
"""

from __future__ import annotations

from pathlib import Path

from lodger_config.loader import load_yaml_file, parse_policy
from lodger_config.schema import LodgerPolicy
from lodger_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = ["LodgerPolicy", "get_active_config"]


def get_active_config(config_path: Path | None = None) -> LodgerPolicy:
    """Load, validate and return the active ``LodgerPolicy``.

    Args:
        config_path: Override path to a policy YAML file.
            Defaults to lodger_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the policy file does not exist.
        ValueError: If a policy value fails validation.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Policy file not found: {path}")

    policy = parse_policy(load_yaml_file(path))

    _logger.info(
        "lodger_config_loaded",
        extra={
            "config_id": policy.config_id,
            "config_version": policy.version,
            "checksum": policy.checksum,
            "path": str(path),
        },
    )
    return policy
