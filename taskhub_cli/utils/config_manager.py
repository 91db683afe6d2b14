"""Configuration Management for CLI Settings"""

import os
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console

console = Console()

API_URL_ENV = "TASKHUB_API_URL"


class ConfigManager:
    """Manage CLI configuration stored in ~/.taskhub/config.yaml"""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = config_dir or Path.home() / ".taskhub"
        self.config_file = self.config_dir / "config.yaml"

    def load_config(self) -> dict[str, Any]:
        """Load configuration from file, merged over the defaults"""
        config = self.get_default_config()

        if self.config_file.exists():
            try:
                with open(self.config_file) as f:
                    stored = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                console.print(f"[red]Error loading config: {e}[/red]")
                stored = {}

            for section, values in stored.items():
                if isinstance(values, dict) and isinstance(config.get(section), dict):
                    config[section].update(values)
                else:
                    config[section] = values

        # The environment wins over the file
        env_url = os.getenv(API_URL_ENV)
        if env_url:
            config["api"]["base_url"] = env_url

        return config

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            yaml.dump(config, f, default_flow_style=False)

    def get_default_config(self) -> dict[str, Any]:
        return {
            "api": {
                "base_url": "http://localhost:8000",
                "timeout": 30,
            },
            "display": {"short_ids": True},
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'api.base_url')"""
        config = self.load_config()

        for k in key.split("."):
            if isinstance(config, dict) and k in config:
                config = config[k]
            else:
                return default

        return config

    def set(self, key: str, value: Any):
        """Set configuration value using dot notation"""
        config = self.load_config()
        keys = key.split(".")

        current = config
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = value

        self.save_config(config)


# Global config manager instance
config = ConfigManager()
