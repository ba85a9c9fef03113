"""
Schema Anomaly Auditor - Configuration Management
Handles environment configuration with AWS SSM Parameter Store for production
and python-dotenv for local development.
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load .env file for local development
load_dotenv()


class Config:
    """
    Configuration manager with dual-mode operation:
    - Local: Reads from .env file via python-dotenv
    - Production: Reads from AWS SSM Parameter Store
    """

    def __init__(self):
        self.environment = os.getenv('ENVIRONMENT', 'local')
        self._ssm_client = None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Fetch configuration value from SSM (production) or environment (local).

        Args:
            key: Configuration key name
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if self.environment == 'production':
            return self._get_from_ssm(key, default)
        else:
            return os.getenv(key, default)

    def _get_from_ssm(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Fetch configuration from AWS SSM Parameter Store.

        Raises:
            ConfigurationError: If parameter not found and no default provided,
                               or if AWS credentials/permissions are invalid
        """
        ssm_prefix = os.getenv('AWS_SSM_PREFIX', '/schema-auditor')
        parameter_name = f"{ssm_prefix}/{key}"

        try:
            if self._ssm_client is None:
                import boto3
                self._ssm_client = boto3.client(
                    'ssm',
                    region_name=os.getenv('AWS_REGION', 'us-east-1')
                )

            response = self._ssm_client.get_parameter(
                Name=parameter_name,
                WithDecryption=True
            )
            return response['Parameter']['Value']

        except Exception as e:
            error_type = type(e).__name__
            if error_type == 'ParameterNotFound':
                if default is not None:
                    return default
                raise ConfigurationError(
                    f"Required parameter '{key}' not found in SSM at path '{parameter_name}'."
                ) from e

            if default is not None:
                import logging
                logging.warning(
                    f"Failed to fetch SSM parameter '{key}': {error_type}: {e}. "
                    f"Using default value."
                )
                return default
            raise ConfigurationError(
                f"Failed to fetch parameter '{key}' from SSM: {error_type}: {e}. "
                f"Check AWS credentials, IAM permissions, and network connectivity."
            ) from e

    def get_int(self, key: str, default: int) -> int:
        """
        Get configuration value as integer.

        Falls back to the default (with a warning) when the stored value
        is not a valid integer.
        """
        value = self.get(key, str(default))
        try:
            return int(value)
        except (ValueError, TypeError) as e:
            import logging
            logging.warning(
                f"Invalid integer for config key '{key}': '{value}'. "
                f"Using default={default}. Error: {e}"
            )
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        """Get configuration value as boolean."""
        value = self.get(key, str(default))
        if value is None:
            return default
        return value.lower() in ('true', '1', 'yes', 'on')

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == 'production'

    @property
    def is_local(self) -> bool:
        """Check if running in local development environment."""
        return self.environment == 'local'


class ConfigurationError(Exception):
    """Raised when configuration cannot be loaded."""
    pass


# Global configuration instance
config = Config()


# Database configuration
# DATABASE_URL wins over the individual parts when set
DATABASE_URL = config.get('DATABASE_URL', '')
DB_DRIVER = config.get('DB_DRIVER', 'mysql+pymysql')
DB_HOST = config.get('DB_HOST', 'localhost')
DB_PORT = config.get_int('DB_PORT', 3306)
DB_NAME = config.get('DB_NAME', 'db_app')
DB_USER = config.get('DB_USER', 'root')
DB_PASSWORD = config.get('DB_PASSWORD', '')

# Audit engine settings
ANOMALY_TABLE = config.get('ANOMALY_TABLE', 'Anomaly')
RESET_MAX_ATTEMPTS = config.get_int('RESET_MAX_ATTEMPTS', 3)
RESET_RETRY_BACKOFF_SECONDS = config.get_int('RESET_RETRY_BACKOFF_SECONDS', 1)
SCRIPT_BATCH_SEPARATOR = config.get('SCRIPT_BATCH_SEPARATOR', 'GO')
MAX_SCRIPT_BYTES = config.get_int('MAX_SCRIPT_BYTES', 10 * 1024 * 1024)

# CRUD probe target (insert expected to violate a foreign key)
CRUD_PROBE_TABLE = config.get('CRUD_PROBE_TABLE', 'SomeTable')
CRUD_PROBE_COLUMN = config.get('CRUD_PROBE_COLUMN', 'SomeForeignKeyID')
CRUD_PROBE_VALUE = config.get_int('CRUD_PROBE_VALUE', 999999)

# Flask configuration
FLASK_ENV = config.get('FLASK_ENV', 'development')
FLASK_DEBUG = config.get_bool('FLASK_DEBUG', True)
SECRET_KEY = config.get('SECRET_KEY', 'dev-secret-key-change-in-production')

# Logging configuration
LOG_LEVEL = config.get('LOG_LEVEL', 'INFO')

# Database connection pool settings
DB_POOL_SIZE = 5
DB_POOL_MAX_OVERFLOW = 10
DB_POOL_RECYCLE = 3600  # Recycle connections after 1 hour
DB_POOL_PRE_PING = True  # Health check connections before use
