# relay/core/env_settings.py
import os
import uuid
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings

from relay.core.exceptions import ConfigurationError

ENV_PREFIX = 'RDK_'
PACKAGE_DIR = Path(__file__).resolve().parents[1]


def get_env_path() -> Path:
    explicit = os.environ.get(f'{ENV_PREFIX}ENV_FILE')
    if explicit:
        return Path(explicit)

    ENV_PATH = Path.cwd() / '.env'
    if not ENV_PATH.exists():
        # Fallback to the deployment secrets directory
        ENV_PATH = PACKAGE_DIR.parent / 'secrets' / 'app.env'
    return ENV_PATH


class CredentialScheme(str, Enum):
    LOCATION_SECRET = 'location-secret'
    API_KEY = 'api-key'


class EnvSettings(BaseSettings):
    # Robot connection
    ROBOT_HOSTNAME: str = ''
    ROBOT_LOCATION_SECRET: str = ''
    ROBOT_API_KEY_ID: str = ''
    ROBOT_API_KEY: str = ''
    ROBOT_BOARD_NAME: str = ''
    DIAL_TIMEOUT: float = Field(30.0, gt=0)

    # Pin calls
    PIN_CALL_TIMEOUT: Optional[float] = Field(None, gt=0)
    SERIALIZE_PIN_CALLS: bool = True
    # How often a pending pin call checks whether its client is still connected
    DISCONNECT_POLL_INTERVAL: float = Field(0.1, gt=0)

    # HTTP server
    HTTP_HOST: str = '0.0.0.0'
    HTTP_PORT: int = Field(8080, ge=1, le=65535)
    SERVE_STATIC: bool = True
    STATIC_DIR: Path = PACKAGE_DIR / 'public'

    # "development" turns on debug logging
    PROFILE: str = ''

    @model_validator(mode='after')
    def check_required(self) -> 'EnvSettings':
        if not self.ROBOT_HOSTNAME:
            raise ValueError(f'No {ENV_PREFIX}ROBOT_HOSTNAME found in env')
        if not self.ROBOT_BOARD_NAME:
            raise ValueError(f'No {ENV_PREFIX}ROBOT_BOARD_NAME found in env')
        if bool(self.ROBOT_API_KEY_ID) != bool(self.ROBOT_API_KEY):
            raise ValueError(
                f'Both {ENV_PREFIX}ROBOT_API_KEY_ID and {ENV_PREFIX}ROBOT_API_KEY must be set'
            )
        if self.ROBOT_API_KEY_ID:
            try:
                uuid.UUID(self.ROBOT_API_KEY_ID)
            except ValueError:
                raise ValueError(f'{ENV_PREFIX}ROBOT_API_KEY_ID must be a UUID') from None
        if not self.ROBOT_API_KEY and not self.ROBOT_LOCATION_SECRET:
            raise ValueError(
                f'No {ENV_PREFIX}ROBOT_LOCATION_SECRET or {ENV_PREFIX}ROBOT_API_KEY found in env'
            )
        return self

    @property
    def credential_scheme(self) -> CredentialScheme:
        """The API-key pair wins when both schemes are configured."""
        if self.ROBOT_API_KEY_ID and self.ROBOT_API_KEY:
            return CredentialScheme.API_KEY
        return CredentialScheme.LOCATION_SECRET

    @property
    def debug(self) -> bool:
        return self.PROFILE == 'development'

    class Config:
        env_prefix = ENV_PREFIX
        env_file = str(get_env_path())
        env_file_encoding = 'utf-8'
        extra = 'ignore'
        validate_assignment = True


def load_settings(**overrides) -> EnvSettings:
    """
    Build the settings from the environment (and env file), applying any
    keyword overrides on top.

    Raises:
        ConfigurationError: a required value is missing or invalid.
    """
    try:
        return EnvSettings(**overrides)
    except ValidationError as e:
        messages = [err['msg'].removeprefix('Value error, ') for err in e.errors()]
        raise ConfigurationError('; '.join(messages)) from e
