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
Parsers for lmux settings: an optional YAML file, then LMUX_* variables
from a .env file and the process environment.
"""
import os
import shlex
import yaml
from dotenv import dotenv_values
from typing import Any, Dict, Mapping, Optional
from ..MODELS.settings import LogsSettings

DEFAULT_SETTINGS_FILE = "lmux.yml"
ENV_PREFIX = "LMUX_"

# Settings holding a command line, given as a single string in the environment.
COMMAND_FIELDS = ("orchestrator_command", "remote_exec_command")

TRUTHY = {"1", "true", "yes", "on"}

class SettingsParser:
    """
    Builds LogsSettings from layered sources.
    """
    def __init__(self, environ: Optional[Mapping[str, str]] = None, base_dir: str = "."):
        """
        Initializes the parser.

        :param environ: Environment to read LMUX_* overrides from. Defaults to os.environ.
        :param base_dir: Directory holding the default settings and .env files.
        """
        self.environ = dict(os.environ) if environ is None else dict(environ)
        self.base_dir = base_dir

    def load(self, settings_path: Optional[str] = None) -> LogsSettings:
        """
        Loads settings, lowest to highest precedence: defaults, YAML file, .env, environment.

        :param settings_path: Explicit YAML file. When omitted, lmux.yml in base_dir is used if present.
        :return: Validated settings.
        :raises FileNotFoundError: If an explicit settings file does not exist.
        :raises ValueError: If the file or the overrides hold invalid values.
        """
        data: Dict[str, Any] = {}

        if settings_path is None:
            default_path = os.path.join(self.base_dir, DEFAULT_SETTINGS_FILE)
            if os.path.exists(default_path):
                settings_path = default_path
        if settings_path is not None:
            data.update(self.parse_file(settings_path))

        data.update(self.parse_environment())
        return LogsSettings(**data)

    def parse_file(self, settings_path: str) -> Dict[str, Any]:
        """
        Parses a YAML settings file from a path.

        :param settings_path: Path to the YAML file.
        :return: Raw settings mapping.
        """
        with open(settings_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> Dict[str, Any]:
        """
        Parses YAML settings content. Command fields may be lists or shell strings.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid settings file: {e}") from e
        if not data:
            return {}
        if not isinstance(data, dict):
            raise ValueError("Settings file must contain a mapping")

        for name in COMMAND_FIELDS:
            if isinstance(data.get(name), str):
                data[name] = shlex.split(data[name])
        return data

    def parse_environment(self) -> Dict[str, Any]:
        """
        Collects LMUX_* overrides. Values from the process environment win over .env.
        """
        env_file = os.path.join(self.base_dir, ".env")
        merged: Dict[str, Optional[str]] = {}
        if os.path.exists(env_file):
            merged.update(dotenv_values(env_file))
        merged.update(self.environ)

        overrides: Dict[str, Any] = {}
        for key, value in merged.items():
            if not key.startswith(ENV_PREFIX) or value is None:
                continue
            name = key[len(ENV_PREFIX):].lower()
            if name not in LogsSettings.model_fields:
                continue
            if name in COMMAND_FIELDS:
                overrides[name] = shlex.split(value)
            elif name == "verbose":
                overrides[name] = value.strip().lower() in TRUTHY
            else:
                overrides[name] = value
        return overrides
