"""
Application configuration with Docker secrets support.

Secrets are read using the _read_secret() pattern:
  1. Direct env var (e.g., LLM_API_KEY)
  2. File-based env var (e.g., LLM_API_KEY_FILE → reads file path)
  3. Raises ValueError if neither is set
"""

import os
import logging

logger = logging.getLogger(__name__)


def _read_secret(env_var: str, file_env_var: str | None = None) -> str:
    """Read a secret from env var or Docker secrets file.

    Args:
        env_var: Direct environment variable name (e.g., LLM_API_KEY)
        file_env_var: File path env var name (e.g., LLM_API_KEY_FILE).
                      If None, defaults to env_var + '_FILE'.

    Returns:
        The secret value.

    Raises:
        ValueError: If neither source provides a value.
    """
    if file_env_var is None:
        file_env_var = f"{env_var}_FILE"

    # Priority 1: Direct env var
    value = os.environ.get(env_var)
    if value:
        return value

    # Priority 2: File-based (Docker secrets pattern)
    file_path = os.environ.get(file_env_var)
    if file_path:
        try:
            with open(file_path, "r") as f:
                value = f.read().strip()
            if value:
                return value
        except FileNotFoundError:
            logger.error(f"Secret file not found: {file_path} (from {file_env_var})")
        except PermissionError:
            logger.error(f"Permission denied reading: {file_path} (from {file_env_var})")

    raise ValueError(
        f"Secret not configured. Set {env_var} env var or {file_env_var} pointing to a file."
    )


class Settings:
    """Application settings loaded from environment and Docker secrets."""

    def __init__(self):
        # Database
        self.database_url = self._build_database_url()

        # Secrets (loaded lazily on first access via properties)
        self._llm_api_key: str | None = None

        # LLM collaborators
        self.llm_model = os.environ.get("LLM_MODEL", "gpt-4o")
        self.edit_model = os.environ.get("EDIT_MODEL", self.llm_model)
        self.intent_model = os.environ.get("INTENT_MODEL", "gpt-4o-mini")
        self.llm_temperature = float(os.environ.get("LLM_TEMPERATURE", "0.7"))
        self.llm_timeout = float(os.environ.get("LLM_TIMEOUT", "60"))
        self.llm_base_url = os.environ.get("LLM_BASE_URL") or None

        # Document history
        self.max_versions = int(os.environ.get("MAX_VERSIONS", "10"))
        self.session_ttl_seconds = int(os.environ.get("SESSION_TTL_SECONDS", "3600"))

        # Uploads
        self.max_upload_bytes = int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
        self.max_document_tokens = int(os.environ.get("MAX_DOCUMENT_TOKENS", "12000"))
        self.user_document_ttl_seconds = int(os.environ.get("USER_DOCUMENT_TTL_SECONDS", "3600"))

        # HTTP
        self.cors_origins = [
            origin.strip()
            for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]

    def _build_database_url(self) -> str:
        """Build async database URL with password from secrets."""
        base_url = os.environ.get(
            "DATABASE_URL", "postgresql+asyncpg://notova@postgres:5432/notova"
        )
        try:
            password = _read_secret("POSTGRES_PASSWORD")
            # Insert password into URL: postgresql+asyncpg://user@host → user:pass@host
            if "://" in base_url and "@" in base_url:
                scheme_user, rest = base_url.split("@", 1)
                if ":" not in scheme_user.split("://")[1]:
                    # No password in URL yet, add it
                    base_url = f"{scheme_user}:{password}@{rest}"
        except ValueError:
            logger.warning("POSTGRES_PASSWORD not set, using DATABASE_URL as-is")
        return base_url

    @property
    def llm_api_key(self) -> str:
        if self._llm_api_key is None:
            self._llm_api_key = _read_secret("LLM_API_KEY")
        return self._llm_api_key


settings = Settings()
