"""
fusebridge Configuration Module
Supports loading from:
1. INI config file (/etc/fusebridge/fusebridge.conf)
2. Environment variables (override config file)
3. Default values (fallback)
"""

import os
import platform
from configparser import ConfigParser, Error as ConfigParserError
from typing import Any, Dict, List, Optional

from fusebridge.bridge import DESTROY_TIMEOUT
from fusebridge.drivers.libfuse import UNMOUNT_TIMEOUT
from fusebridge.exceptions import ConfigurationException
from fusebridge.utils.logger import DEFAULT_LOG_FORMAT, get_logger

LOG = get_logger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

_TRUE = ('1', 'true', 'yes', 'on')


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


def _as_list(value) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [item.strip() for item in str(value).split(',') if item.strip()]


def default_mount_options(mount_path: str) -> List[str]:
    """Mount options used when none are configured."""
    options = ['default_permissions']
    if platform.system() == 'Darwin':
        volname = os.path.basename(os.path.normpath(mount_path))
        options += ['noappledouble', 'noapplexattr', f'volname={volname}']
    return options


class FuseBridgeConfig:
    """fusebridge configuration"""

    CONFIG_FILE = '/etc/fusebridge/fusebridge.conf'
    SECTION = 'fusebridge'

    DEFAULT_MOUNT_PATH = './mnt'
    DEFAULT_LOG_LEVEL = 'INFO'
    DEFAULT_LOG_FORMAT = DEFAULT_LOG_FORMAT

    # key -> environment variable overriding it
    ENV_VARS = {
        'mount_path': 'MOUNT_PATH',
        'mount_options': 'FUSEBRIDGE_MOUNT_OPTIONS',
        'log_level': 'FUSEBRIDGE_LOG_LEVEL',
        'log_format': 'FUSEBRIDGE_LOG_FORMAT',
        'log_json': 'FUSEBRIDGE_LOG_JSON',
        'destroy_timeout': 'FUSEBRIDGE_DESTROY_TIMEOUT',
        'unmount_timeout': 'FUSEBRIDGE_UNMOUNT_TIMEOUT',
    }

    def __init__(self, config_data: Optional[Dict[str, Any]] = None,
                 environ: Optional[Dict[str, str]] = None):
        """
        Build a configuration. Priority: env var > config data > default.

        Args:
            config_data: Values read from a config file
            environ: Environment to read overrides from (default: os.environ)
        """
        config_data = dict(config_data or {})
        environ = os.environ if environ is None else environ

        def value(key, default):
            env_var = self.ENV_VARS[key]
            if environ.get(env_var):
                return environ[env_var]
            return config_data.get(key, default)

        self.mount_path = value('mount_path', self.DEFAULT_MOUNT_PATH)
        options = value('mount_options', None)
        self.mount_options = _as_list(options) if options else None
        self.log_level = str(value('log_level', self.DEFAULT_LOG_LEVEL)).upper()
        self.log_format = value('log_format', self.DEFAULT_LOG_FORMAT)
        self.log_json = _as_bool(value('log_json', False))
        try:
            self.destroy_timeout = float(value('destroy_timeout', DESTROY_TIMEOUT))
            self.unmount_timeout = int(value('unmount_timeout', UNMOUNT_TIMEOUT))
        except (TypeError, ValueError) as e:
            raise ConfigurationException(f"Invalid timeout value: {e}")

    @classmethod
    def from_file(cls, config_file: Optional[str] = None,
                  environ: Optional[Dict[str, str]] = None) -> 'FuseBridgeConfig':
        """
        Load configuration from an INI file and environment variables.

        A missing file falls back to defaults. A file that cannot be parsed
        raises ConfigurationException.

        Expected format:
        [fusebridge]
        mount_path = /mnt/fusebridge
        mount_options = default_permissions,allow_other
        log_level = INFO
        """
        config_file = config_file or cls.CONFIG_FILE
        LOG.debug(f"Loading config from: {config_file}")
        return cls(cls._load_ini_file(config_file), environ=environ)

    @classmethod
    def _load_ini_file(cls, config_file: str) -> Dict[str, Any]:
        config_data = {}

        if not os.path.exists(config_file):
            LOG.debug(f"Config file not found: {config_file}, using defaults")
            return config_data

        parser = ConfigParser()
        try:
            parser.read(config_file)
        except ConfigParserError as e:
            raise ConfigurationException(f"Failed to load config file {config_file}: {e}")

        for section in [cls.SECTION, 'DEFAULT']:
            if parser.has_section(section) or section == 'DEFAULT':
                for key, value in parser.items(section):
                    if key not in config_data:
                        config_data[key] = value

        LOG.info(f"Loaded {len(config_data)} config parameters from {config_file}")
        return config_data

    @property
    def uses_default_mount_path(self) -> bool:
        return self.mount_path == self.DEFAULT_MOUNT_PATH

    def get_mount_options(self) -> List[str]:
        """Configured mount options, or the platform defaults."""
        if self.mount_options is not None:
            return list(self.mount_options)
        return default_mount_options(self.mount_path)

    def validate(self):
        """
        Validate configuration.

        Raises:
            ConfigurationException if configuration is invalid
        """
        if not self.mount_path:
            raise ConfigurationException("mount_path is required")

        if self.log_level not in LOG_LEVELS:
            raise ConfigurationException(
                f"Invalid log_level {self.log_level!r}, expected one of {', '.join(LOG_LEVELS)}"
            )

        if self.destroy_timeout <= 0:
            raise ConfigurationException("destroy_timeout must be positive")

        if self.unmount_timeout <= 0:
            raise ConfigurationException("unmount_timeout must be positive")

        LOG.debug("Configuration validated successfully")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mount_path': self.mount_path,
            'mount_options': self.get_mount_options(),
            'log_level': self.log_level,
            'log_format': self.log_format,
            'log_json': self.log_json,
            'destroy_timeout': self.destroy_timeout,
            'unmount_timeout': self.unmount_timeout,
        }
