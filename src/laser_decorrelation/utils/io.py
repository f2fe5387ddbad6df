"""I/O utilities for configuration and table loading/saving."""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd
import yaml


def load_data(
    file_path: Union[str, Path],
    file_type: Optional[str] = None,
    **kwargs
) -> Any:
    """
    Load data from various file formats.

    Args:
        file_path: Path to the data file
        file_type: Type of file (csv, json, yaml)
        **kwargs: Additional arguments for the loader

    Returns:
        Loaded data
    """
    file_path = Path(file_path)

    if file_type is None:
        file_type = file_path.suffix.lower().lstrip('.')

    if file_type == 'csv':
        return pd.read_csv(file_path, **kwargs)
    elif file_type == 'json':
        with open(file_path, 'r') as f:
            return json.load(f)
    elif file_type in ['yaml', 'yml']:
        with open(file_path, 'r') as f:
            return yaml.safe_load(f)
    else:
        raise ValueError(f"Unsupported file type: {file_type}")


def save_data(
    data: Any,
    file_path: Union[str, Path],
    file_type: Optional[str] = None,
    **kwargs
) -> None:
    """
    Save data to various file formats.

    Args:
        data: Data to save
        file_path: Path to save the data
        file_type: Type of file (csv, json, yaml)
        **kwargs: Additional arguments for the saver
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    if file_type is None:
        file_type = file_path.suffix.lower().lstrip('.')

    if file_type == 'csv':
        data.to_csv(file_path, index=False, **kwargs)
    elif file_type == 'json':
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2, **kwargs)
    elif file_type in ['yaml', 'yml']:
        with open(file_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, **kwargs)
    else:
        raise ValueError(f"Unsupported file type: {file_type}")


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Configuration dictionary
    """
    data = load_data(config_path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return data


def save_config(config: Dict[str, Any], config_path: Union[str, Path]) -> None:
    """
    Save configuration to a YAML or JSON file (chosen by suffix).

    Args:
        config: Configuration dictionary
        config_path: Path to save the configuration
    """
    save_data(config, config_path)
