# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Parsers for hostboot YAML configuration files.
"""
import os
import yaml
from typing import Any, Dict, Optional
from dotenv import dotenv_values
from pydantic import ValidationError
from ..errors import ConfigError
from ..MODELS.bootstrap_config import BootstrapConfig
from ..UTILS.string_interpolation import EnvironmentInterpolator


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merges ``override`` into a copy of ``base``; nested mappings merge,
    everything else is replaced.
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def interpolate_values(value: Any, context: Dict[str, str]) -> Any:
    """
    Resolves ${VAR} references in every string scalar of a parsed document.
    Keys and comments are left alone.

    :raises KeyError: If a bare ${VAR} is not set in the context.
    """
    if isinstance(value, dict):
        return {k: interpolate_values(v, context) for k, v in value.items()}
    if isinstance(value, list):
        return [interpolate_values(v, context) for v in value]
    if isinstance(value, str):
        return EnvironmentInterpolator.interpolate(value, context)
    return value


def load_context(env_file: Optional[str] = None) -> Dict[str, str]:
    """
    Builds the interpolation context: the .env file overlaid by the process
    environment, so exported variables win.

    :param env_file: Path to a .env file; ignored when missing.
    """
    context: Dict[str, str] = {}
    if env_file and os.path.exists(env_file):
        context.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    context.update(os.environ)
    return context


class ConfigParser:
    """
    Parser for hostboot.yml files.

    Every key is optional; anything not given keeps the default host layout.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = context if context is not None else dict(os.environ)

    def parse(self, config_path: Optional[str]) -> BootstrapConfig:
        """
        Parses a config file from a path. No path means all defaults.

        :param config_path: Path to the YAML file, or None.
        :return: The desired host configuration.
        """
        if not config_path:
            return BootstrapConfig()
        try:
            with open(config_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read {config_path}: {e}") from e
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> BootstrapConfig:
        """
        Parses a config file from a string.

        :param content: YAML content of the config file.
        :return: The desired host configuration.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if not data:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("The configuration must be a YAML mapping")

        try:
            data = interpolate_values(data, self.context)
        except KeyError as e:
            raise ConfigError(str(e.args[0])) from e

        defaults = BootstrapConfig().model_dump()
        try:
            return BootstrapConfig.model_validate(deep_merge(defaults, data))
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration:\n{e}") from e
