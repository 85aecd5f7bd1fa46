"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
import tempfile
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional
import json

from dotenv import load_dotenv

from .registry import DEFAULT_CODE_MIN, DEFAULT_CODE_MAX


def _default_upload_dir() -> Path:
    return Path(tempfile.gettempdir()) / 'shareio-uploads'


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip().lower() in ('', 'none', '0'):
        return None
    return float(value)


@dataclass
class Config:
    """
    ShareIO Service Configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (SHAREIO_*)
    2. Config file (config.json)
    3. Default values
    """
    # Network
    host: str = '0.0.0.0'
    transfer_host: str = '127.0.0.1'  # where the API connects to fetch shares
    api_port: int = 8080
    backend_url: str = 'http://localhost:8080'  # used by the CLI

    # Share codes (also the listening ports)
    code_min: int = DEFAULT_CODE_MIN
    code_max: int = DEFAULT_CODE_MAX

    # Storage
    upload_dir: Path = field(default_factory=_default_upload_dir)

    # Performance
    chunk_size: int = 64 * 1024  # 64KB

    # Timeouts (seconds, None = wait forever)
    accept_timeout: Optional[float] = None
    transfer_timeout: Optional[float] = 30.0

    # Share lifecycle
    evict_after_serve: bool = True

    # HTTP
    cors_origins: List[str] = field(default_factory=lambda: ['*'])

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Network
        config.host = os.getenv('SHAREIO_HOST', config.host)
        config.transfer_host = os.getenv('SHAREIO_TRANSFER_HOST', config.transfer_host)
        config.api_port = int(os.getenv('SHAREIO_API_PORT', config.api_port))
        config.backend_url = os.getenv('SHAREIO_BACKEND_URL', config.backend_url)

        # Share codes
        config.code_min = int(os.getenv('SHAREIO_CODE_MIN', config.code_min))
        config.code_max = int(os.getenv('SHAREIO_CODE_MAX', config.code_max))

        # Storage
        upload_dir = os.getenv('SHAREIO_UPLOAD_DIR')
        if upload_dir:
            config.upload_dir = Path(upload_dir)

        # Performance
        config.chunk_size = int(os.getenv('SHAREIO_CHUNK_SIZE', config.chunk_size))

        # Timeouts
        if 'SHAREIO_ACCEPT_TIMEOUT' in os.environ:
            config.accept_timeout = _optional_float(os.environ['SHAREIO_ACCEPT_TIMEOUT'])
        if 'SHAREIO_TRANSFER_TIMEOUT' in os.environ:
            config.transfer_timeout = _optional_float(os.environ['SHAREIO_TRANSFER_TIMEOUT'])

        # Share lifecycle
        config.evict_after_serve = os.getenv('SHAREIO_EVICT_AFTER_SERVE', 'true').lower() == 'true'

        # HTTP
        origins = os.getenv('SHAREIO_CORS_ORIGINS', '')
        if origins:
            config.cors_origins = [o.strip() for o in origins.split(',') if o.strip()]

        # Logging
        config.log_level = os.getenv('SHAREIO_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        # Network
        config.host = data.get('host', config.host)
        config.transfer_host = data.get('transfer_host', config.transfer_host)
        config.api_port = data.get('api_port', config.api_port)
        config.backend_url = data.get('backend_url', config.backend_url)

        # Share codes
        config.code_min = data.get('code_min', config.code_min)
        config.code_max = data.get('code_max', config.code_max)

        # Storage
        if 'upload_dir' in data:
            config.upload_dir = Path(data['upload_dir'])

        # Performance
        config.chunk_size = data.get('chunk_size', config.chunk_size)

        # Timeouts
        config.accept_timeout = data.get('accept_timeout', config.accept_timeout)
        config.transfer_timeout = data.get('transfer_timeout', config.transfer_timeout)

        # Share lifecycle
        config.evict_after_serve = data.get('evict_after_serve', config.evict_after_serve)

        # HTTP
        config.cors_origins = data.get('cors_origins', config.cors_origins)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'host': self.host,
            'transfer_host': self.transfer_host,
            'api_port': self.api_port,
            'backend_url': self.backend_url,
            'code_min': self.code_min,
            'code_max': self.code_max,
            'upload_dir': str(self.upload_dir),
            'chunk_size': self.chunk_size,
            'accept_timeout': self.accept_timeout,
            'transfer_timeout': self.transfer_timeout,
            'evict_after_serve': self.evict_after_serve,
            'cors_origins': list(self.cors_origins),
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Config field -> environment variable read by Config.from_env()
ENV_VARS = {
    'host': 'SHAREIO_HOST',
    'transfer_host': 'SHAREIO_TRANSFER_HOST',
    'api_port': 'SHAREIO_API_PORT',
    'backend_url': 'SHAREIO_BACKEND_URL',
    'code_min': 'SHAREIO_CODE_MIN',
    'code_max': 'SHAREIO_CODE_MAX',
    'upload_dir': 'SHAREIO_UPLOAD_DIR',
    'chunk_size': 'SHAREIO_CHUNK_SIZE',
    'accept_timeout': 'SHAREIO_ACCEPT_TIMEOUT',
    'transfer_timeout': 'SHAREIO_TRANSFER_TIMEOUT',
    'evict_after_serve': 'SHAREIO_EVICT_AFTER_SERVE',
    'cors_origins': 'SHAREIO_CORS_ORIGINS',
    'log_level': 'SHAREIO_LOG_LEVEL',
}


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Any non-empty SHAREIO_* variable (including from .env) overrides the
    file, even when its value equals the built-in default.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables (from_env also loads .env)
    env_config = Config.from_env()

    for key, var in ENV_VARS.items():
        if os.environ.get(var):
            setattr(config, key, getattr(env_config, key))

    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "host": "0.0.0.0",
  "api_port": 8080,
  "code_min": 49152,
  "code_max": 65535,
  "upload_dir": "/tmp/shareio-uploads",
  "accept_timeout": null,
  "transfer_timeout": 30.0,
  "evict_after_serve": true,
  "cors_origins": ["*"],
  "log_level": "INFO"
}
"""


if __name__ == "__main__":
    # Print example config
    print("Example configuration file (config.json):")
    print(EXAMPLE_CONFIG)
