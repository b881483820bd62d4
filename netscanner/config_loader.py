#!/usr/bin/env python3
"""
Configuration Loader for netscanner
Handles YAML/JSON configuration files with profile support
"""

import os
import json
import logging
import platform
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


@dataclass
class ScanProfile:
    """Represents a scanning profile with its settings"""
    name: str
    description: str = ""
    host: Optional[str] = None
    start_port: Optional[int] = None
    end_port: Optional[int] = None
    timeout_ms: Optional[int] = None
    workers: Optional[int] = None
    grace_period: Optional[float] = None
    ping_check: Optional[bool] = None
    services_file: Optional[str] = None
    output_format: Optional[str] = None
    log_level: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert profile to dictionary, excluding None values"""
        result = {}
        for key, value in self.__dict__.items():
            if value is not None and key not in ('name', 'description'):
                result[key] = value
        return result


class ConfigurationLoader:
    """Handles loading and parsing of configuration files"""

    # Hard-coded defaults
    DEFAULT_CONFIG = {
        'timeout_ms': 100,
        'workers': 50,
        'grace_period': 60.0,
        'start_port': 1,
        'end_port': 65535,
        'ping_check': True,
        'services_file': None,
        'output_format': 'txt',
        'log_level': 'INFO',
    }

    # Valid values for validation
    VALID_OUTPUT_FORMATS = {'txt', 'json', 'csv'}
    VALID_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR'}

    def __init__(self):
        self.config_paths = self._get_config_paths()
        self.loaded_config: Dict[str, Any] = self.DEFAULT_CONFIG.copy()
        self.profiles: Dict[str, ScanProfile] = {}

    def _get_config_paths(self) -> List[Path]:
        """Get list of configuration file paths in order of precedence"""
        paths = [Path.cwd() / "config.yaml", Path.cwd() / "config.json"]

        if platform.system().lower() == 'windows':
            config_dir = Path(os.environ.get('APPDATA', '')) / 'netscanner'
        else:
            # Linux/WSL/macOS
            config_dir = Path.home() / '.config' / 'netscanner'

        paths.extend([config_dir / "config.yaml", config_dir / "config.json"])
        return paths

    def find_config_file(self, custom_path: Optional[str] = None) -> Optional[Path]:
        """Find the first existing configuration file"""
        if custom_path:
            custom_file = Path(custom_path)
            if custom_file.exists():
                return custom_file
            logger.warning(f"Custom config file not found: {custom_path}")
            return None

        for path in self.config_paths:
            if path.exists():
                logger.info(f"Found configuration file: {path}")
                return path

        logger.debug("No configuration file found, using defaults")
        return None

    def _parse_file(self, file_path: Path) -> Dict[str, Any]:
        """Parse YAML or JSON configuration file"""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = f.read().strip()
        except OSError as e:
            logger.error(f"Failed to read configuration file {file_path}: {e}")
            return {}

        if not content:
            logger.warning(f"Configuration file is empty: {file_path}")
            return {}

        try:
            if file_path.suffix.lower() == '.json':
                data = json.loads(content)
            else:
                # YAML is a superset of JSON, so this also covers unknown extensions
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error(f"Failed to parse configuration file {file_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Configuration file {file_path} must contain a mapping")
            return {}
        return data

    def _validate_value(self, key: str, value: Any, context: str = "") -> Any:
        """Validate one setting. Returns None if the value is unusable."""
        where = f" in {context}" if context else ""
        if key == 'timeout_ms':
            try:
                return max(1, int(value))
            except (ValueError, TypeError):
                logger.warning(f"Invalid timeout_ms{where}: {value}")
        elif key == 'workers':
            try:
                return max(1, min(1000, int(value)))
            except (ValueError, TypeError):
                logger.warning(f"Invalid workers{where}: {value}")
        elif key == 'grace_period':
            try:
                grace = float(value)
                if grace > 0:
                    return grace
            except (ValueError, TypeError):
                pass
            logger.warning(f"Invalid grace_period{where}: {value}")
        elif key in ('start_port', 'end_port'):
            try:
                port = int(value)
                if 0 <= port <= 65535:
                    return port
            except (ValueError, TypeError):
                pass
            logger.warning(f"Invalid {key}{where}: {value}")
        elif key == 'ping_check':
            return bool(value)
        elif key == 'services_file':
            return str(value) if value else None
        elif key == 'output_format':
            fmt = str(value).lower()
            if fmt in self.VALID_OUTPUT_FORMATS:
                return fmt
            logger.warning(f"Invalid output_format{where}: {value}")
        elif key == 'log_level':
            level = str(value).upper()
            if level in self.VALID_LOG_LEVELS:
                return level
            logger.warning(f"Invalid log_level{where}: {value}")
        return None

    def _validate_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and sanitize the defaults section"""
        validated = {}

        defaults = config.get('defaults', {})
        if not isinstance(defaults, dict):
            logger.warning("'defaults' section must be a dictionary, ignoring")
            defaults = {}

        for key, value in defaults.items():
            if key not in self.DEFAULT_CONFIG:
                logger.warning(f"Unknown configuration key: {key}")
                continue
            checked = self._validate_value(key, value)
            # services_file may legitimately be None
            if checked is not None or key == 'services_file':
                validated[key] = checked

        return validated

    def _load_profiles(self, config: Dict[str, Any]) -> Dict[str, ScanProfile]:
        """Load and validate scanning profiles"""
        profiles = {}
        profiles_section = config.get('profiles', {})

        if not isinstance(profiles_section, dict):
            logger.warning("'profiles' section must be a dictionary, ignoring")
            return {}

        for profile_name, profile_data in profiles_section.items():
            if not isinstance(profile_data, dict):
                logger.warning(f"Profile '{profile_name}' must be a dictionary, skipping")
                continue

            profile = ScanProfile(name=str(profile_name))
            profile.description = str(profile_data.get('description', ''))

            if profile_data.get('host'):
                profile.host = str(profile_data['host'])

            for key in self.DEFAULT_CONFIG:
                if key in profile_data:
                    checked = self._validate_value(key, profile_data[key], f"profile '{profile_name}'")
                    if checked is not None:
                        setattr(profile, key, checked)

            profiles[profile.name] = profile
            logger.debug(f"Loaded profile '{profile.name}': {profile.description}")

        return profiles

    def load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load configuration from file with profile support"""
        merged_config = self.DEFAULT_CONFIG.copy()
        self.profiles = {}

        config_file = self.find_config_file(config_path)
        if config_file:
            raw_config = self._parse_file(config_file)
            if raw_config:
                merged_config.update(self._validate_config(raw_config))
                self.profiles = self._load_profiles(raw_config)

                if merged_config['start_port'] > merged_config['end_port']:
                    logger.warning(f"start_port {merged_config['start_port']} is above end_port "
                                   f"{merged_config['end_port']}, using default range")
                    merged_config['start_port'] = self.DEFAULT_CONFIG['start_port']
                    merged_config['end_port'] = self.DEFAULT_CONFIG['end_port']

                logger.info(f"Loaded configuration from {config_file}")
                logger.info(f"Found {len(self.profiles)} profiles: {list(self.profiles.keys())}")

        self.loaded_config = merged_config
        return merged_config

    def get_profile_config(self, profile_name: str, base_config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Get configuration with profile settings applied"""
        if base_config is None:
            base_config = self.loaded_config.copy()
        else:
            base_config = base_config.copy()

        if profile_name not in self.profiles:
            logger.warning(f"Profile '{profile_name}' not found")
            return base_config

        profile = self.profiles[profile_name]
        base_config.update(profile.to_dict())

        logger.info(f"Applied profile '{profile_name}': {profile.description}")
        return base_config

    def list_profiles(self) -> Dict[str, str]:
        """Get list of available profiles with descriptions"""
        return {name: profile.description for name, profile in self.profiles.items()}

    def get_profile(self, name: str) -> Optional[ScanProfile]:
        """Get a specific profile by name"""
        return self.profiles.get(name)

    def create_default_config_file(self, path: Optional[str] = None) -> str:
        """Create a sample configuration file"""
        if path is None:
            path = "config.yaml"

        sample_config = {
            'defaults': {
                'timeout_ms': 200,
                'workers': 50,
                'grace_period': 60.0,
                'start_port': 1,
                'end_port': 1024,
                'ping_check': True,
                'output_format': 'txt',
                'log_level': 'INFO',
            },
            'profiles': {
                'well-known': {
                    'description': 'Well-known ports only',
                    'start_port': 1,
                    'end_port': 1023,
                },
                'full-tcp': {
                    'description': 'Scan all TCP ports (WARNING: Very slow!)',
                    'start_port': 1,
                    'end_port': 65535,
                    'timeout_ms': 300,
                },
                'firewalled': {
                    'description': 'Hosts that drop ping but accept TCP',
                    'ping_check': False,
                    'timeout_ms': 1000,
                },
                'localhost': {
                    'description': 'Local development ports',
                    'host': 'localhost',
                    'start_port': 3000,
                    'end_port': 9000,
                    'ping_check': False,
                },
            },
        }

        file_path = Path(path)
        with open(file_path, 'w', encoding='utf-8') as f:
            if file_path.suffix.lower() == '.json':
                json.dump(sample_config, f, indent=2)
            else:
                yaml.safe_dump(sample_config, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Created sample configuration file: {file_path}")
        return str(file_path)

