"""YAML configuration loading for newsbridge.

Provides safe YAML file loading using ``yaml.safe_load`` so configuration
files cannot instantiate arbitrary Python objects. Used by
[BaseService.from_yaml()][newsbridge.core.base_service.BaseService.from_yaml]
and by the CLI.

Examples:
    ```python
    from newsbridge.core.yaml import load_yaml

    config = load_yaml("config/connector.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a nested dictionary. Returns an empty dict
        if the file exists but contains no data.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.

    Warning:
        The returned dictionary is not validated. Pass it to a Pydantic
        model such as
        [ConnectorConfig][newsbridge.services.connector.ConnectorConfig].
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"parse config {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"config {config_path} must be a mapping, got {type(data).__name__}"
        )
    return data
