#!/usr/bin/env python3
"""
Project info loader for Verso.
Reads site metadata from verso.yml, verso.yaml, or verso.json in the source directory.
"""

import os
import errno
import json
import logging
import yaml
from typing import Dict, Any, Optional


class ConfigError(ValueError):
    """Raised when project info is malformed or incomplete."""

    def __init__(self, message: str, path: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.line = line


class VersoSettings:
    """Load and validate Verso project info."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'date_format': '%Y-%m-%d',
        'preview_length': 200,
        'minify': False,
        'list_title_all': 'All Posts',
        'list_title_tag': 'Posts Tagged {tag}',
    }

    REQUIRED_KEYS = ('site_name', 'site_description', 'author', 'author_email', 'base_url')

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['verso.yml', 'verso.yaml', 'verso.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None
        self.logger = logging.getLogger('Verso.Settings')

    def load_settings(self) -> Dict[str, Any]:
        """
        Load and validate project info.

        Returns:
            Dictionary of project settings merged over the defaults

        Raises:
            FileNotFoundError: No config file exists in ``config_dir``
            ConfigError: The file is malformed or lacks required keys
        """
        config_file = self._find_config_file()
        if not config_file:
            raise FileNotFoundError(
                errno.ENOENT, f"No project info file ({', '.join(self.CONFIG_FILES)}) found", self.config_dir
            )

        self.config_file_path = config_file
        loaded_settings = self._load_config_file(config_file)
        if not isinstance(loaded_settings, dict):
            raise ConfigError("Project info must be a mapping of keys to values", path=config_file)

        missing = [key for key in self.REQUIRED_KEYS if not loaded_settings.get(key)]
        if missing:
            raise ConfigError(f"Missing required keys: {', '.join(missing)}", path=config_file)

        self.settings.update(loaded_settings)
        base_url = str(self.settings['base_url'])
        self.settings['base_url'] = base_url if base_url.endswith('/') else base_url + '/'

        preview_length = self.settings['preview_length']
        if not isinstance(preview_length, int) or isinstance(preview_length, bool) or preview_length < 0:
            raise ConfigError("preview_length must be a non-negative integer", path=config_file)

        for key in ('date_format', 'list_title_all', 'list_title_tag'):
            if not isinstance(self.settings[key], str):
                raise ConfigError(f"{key} must be a string", path=config_file)
        if not isinstance(self.settings['minify'], bool):
            raise ConfigError("minify must be true or false", path=config_file)

        self.logger.debug(f"Loaded project info from: {config_file}")
        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Any:
        """
        Parse a configuration file.

        Args:
            config_path: Path to the configuration file

        Returns:
            The parsed document
        """
        file_ext = os.path.splitext(config_path)[1].lower()

        with open(config_path, 'r', encoding='utf-8') as f:
            try:
                if file_ext in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                return json.load(f) or {}
            except UnicodeDecodeError as e:
                raise ConfigError(f"Not valid UTF-8: {e.reason}", path=config_path) from e
            except yaml.MarkedYAMLError as e:
                line = e.problem_mark.line + 1 if e.problem_mark else None
                raise ConfigError(f"Invalid YAML: {e.problem}", path=config_path, line=line) from e
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML: {e}", path=config_path) from e
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON: {e.msg}", path=config_path, line=e.lineno) from e

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        sample_config = {
            'site_name': 'My Verso Site',
            'site_description': 'Built with Verso',
            'author': 'Site Author',
            'author_email': 'author@example.com',
            'base_url': '/',
            'date_format': '%Y-%m-%d',
            'preview_length': 200,
            'minify': False,
        }

        if file_format not in ['yml', 'yaml', 'json']:
            raise ValueError(f"Unsupported config file format: {file_format}")

        filename = f'verso.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        with open(config_path, 'w', encoding='utf-8') as f:
            if file_format in ['yml', 'yaml']:
                f.write("# Verso project info\n\n")
                f.write("# Site information\n")
                f.write(f"site_name: {sample_config['site_name']}\n")
                f.write(f"site_description: {sample_config['site_description']}\n")
                f.write(f"author: {sample_config['author']}\n")
                f.write(f"author_email: {sample_config['author_email']}\n")
                f.write(f"base_url: {sample_config['base_url']}\n\n")
                f.write("# Content settings\n")
                f.write(f"date_format: \"{sample_config['date_format']}\"\n")
                f.write(f"preview_length: {sample_config['preview_length']}\n\n")
                f.write("# Assets\n")
                f.write("minify: false\n")
            else:
                json.dump(sample_config, f, indent=2)

        return config_path
