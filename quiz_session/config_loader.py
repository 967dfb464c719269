"""
Configuration loader for session policy parameters.

Handles loading and validating the session configuration file.
"""

import json
import sys
from pathlib import Path
from typing import Optional

from .models import SessionConfig


def default_config_path() -> Path:
    """``config.json`` next to the executable (frozen) or the project root."""
    if getattr(sys, 'frozen', False):
        base_dir = Path(sys.executable).parent
    else:
        base_dir = Path(__file__).parent.parent
    return base_dir / "config.json"


def load_config(config_path: Optional[Path] = None) -> SessionConfig:
    """
    Load session configuration from a JSON file.

    Args:
        config_path: Path to the configuration file. If None, looks for
                    'config.json' next to the executable/script.

    Returns:
        SessionConfig object with validated configuration

    Raises:
        ValueError: If config is invalid
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        print(f"Warning: Config file '{config_path}' not found. Using default configuration.")
        return SessionConfig.default()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e
    except OSError as e:
        raise ValueError(f"Error reading config file: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a JSON object")

    try:
        config = SessionConfig.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    is_valid, error_message = config.validate()
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_message}")

    return config


def create_sample_config(output_path: Path):
    """
    Create a sample configuration file for proctors.

    Args:
        output_path: Path where to save the sample config
    """
    defaults = SessionConfig.default()
    sample_config = {
        "max_violations": defaults.max_violations,
        "safe_window_seconds": defaults.safe_window_seconds,
        "cooldown_seconds": defaults.cooldown_seconds,
        "autosave_debounce_seconds": defaults.autosave_debounce_seconds,
        "tick_seconds": defaults.tick_seconds,
        "pass_threshold_percent": defaults.pass_threshold_percent,
        "forbidden_keys": defaults.forbidden_keys,
        "network_check_interval_seconds": defaults.network_check_interval_seconds,
        "_comment": "This is a sample session configuration. Adjust values as needed.",
        "_instructions": {
            "max_violations": "Counted integrity violations before the quiz is submitted automatically",
            "safe_window_seconds": "Grace period after the quiz starts during which signals are ignored",
            "cooldown_seconds": "Window after a violation during which further signals are ignored",
            "autosave_debounce_seconds": "Quiet period before answers are saved locally",
            "tick_seconds": "Countdown timer tick interval",
            "pass_threshold_percent": "Minimum percentage score to pass",
            "forbidden_keys": "Key combinations that count as violations",
            "network_check_interval_seconds": "How often connectivity is checked"
        }
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(sample_config, f, indent=2)

    print(f"Sample configuration created at: {output_path}")
