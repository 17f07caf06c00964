"""Configuration management for GitLab Storage Moves."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .api_clients.base_client import DEFAULT_BASE_URL, GitLabAPIClient

logger = logging.getLogger(__name__)

URL_ENV_VAR = "GITLAB_URL"
TOKEN_ENV_VAR = "GITLAB_TOKEN"


class GitLabConfig(BaseModel):
    """Connection settings for a GitLab instance.

    The token is normally supplied through the GITLAB_TOKEN environment
    variable rather than stored in the config file.
    """

    url: str = Field(default=DEFAULT_BASE_URL, description="GitLab instance URL")
    token: Optional[str] = Field(
        default=None, description="Personal access token with admin API scope"
    )
    timeout: float = Field(default=30.0, description="Read timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"GitLab URL must start with http:// or https://: {v}")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class Config(BaseModel):
    """Main configuration."""

    gitlab: GitLabConfig = Field(default_factory=GitLabConfig)


class ConfigManager:
    """Manages configuration loading, saving, and environment overrides."""

    DEFAULT_CONFIG_PATH = Path(".gitlab-storage-moves/config.json")

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[Config] = None
        # Token values of the last load, so save() writes back the file token
        self._env_token: Optional[str] = None
        self._file_token: Optional[str] = None

    def load(self) -> Config:
        """Load configuration from file or defaults, then apply env overrides."""
        data = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")

        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration in {self.config_path}: expected a JSON object"
            )
        gitlab_data = data.get("gitlab")
        if gitlab_data is None:
            gitlab_data = {}
        if not isinstance(gitlab_data, dict):
            raise ValueError(
                f"Invalid configuration in {self.config_path}: "
                '"gitlab" must be a JSON object'
            )
        gitlab_data = dict(gitlab_data)
        self._file_token = gitlab_data.get("token")
        self._env_token = None
        env_url = os.environ.get(URL_ENV_VAR)
        if env_url:
            gitlab_data["url"] = env_url
        env_token = os.environ.get(TOKEN_ENV_VAR)
        if env_token:
            gitlab_data["token"] = env_token
            self._env_token = env_token
        data["gitlab"] = gitlab_data

        try:
            self._config = Config(**data)
        except Exception as e:
            raise ValueError(f"Invalid configuration in {self.config_path}: {e}")

        return self._config

    def save(self, config: Optional[Config] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = config.model_dump(mode="json")
        # A token taken from the environment is not persisted
        if (
            config is self._config
            and self._env_token is not None
            and config.gitlab.token == self._env_token
        ):
            config_dict["gitlab"]["token"] = self._file_token

        with open(self.config_path, "w") as f:
            json.dump(config_dict, f, indent=2)

        logger.debug(f"Saved configuration to {self.config_path}")

    def get_config(self) -> Config:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load()
        return self._config


def create_client(config: Config) -> GitLabAPIClient:
    """Factory function to create a GitLabAPIClient from configuration."""
    if not config.gitlab.token:
        logger.warning(
            f"No GitLab token configured; set {TOKEN_ENV_VAR} for authenticated calls"
        )
    return GitLabAPIClient(
        base_url=config.gitlab.url,
        token=config.gitlab.token,
        timeout=config.gitlab.timeout,
        verify_ssl=config.gitlab.verify_ssl,
    )
