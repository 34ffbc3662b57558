"""Environment configuration management for Thread Harvester.

Values come from a ``.env`` file (the working directory's by default) and
the process environment, with the process environment taking precedence.
Neither source is written back to ``os.environ``.
"""

import os
import logging
from pathlib import Path
from typing import Dict, Optional, Any

from dotenv import dotenv_values
from sqlalchemy.engine import URL

from harvester.utils.error_handling import mask_secret

logger = logging.getLogger(__name__)

REQUIRED_DB_FIELDS = ("DB_HOST", "DB_PORT", "DB_USER", "DB_PASSWORD", "DB_NAME")

# Logged at startup; secrets are masked
REPORTED_KEYS = ("DB_HOST", "DB_PORT", "DB_USER", "DB_NAME", "DB_SSLMODE", "METRICS_PORT", "LOOKBACK_WINDOWS")
SECRET_KEYS = ("DB_PASSWORD", "ACCESS_TOKEN", "DATABASE_URL")


class Environment:
    """Read-only view over ``.env`` values and the process environment."""
    
    def __init__(self, env_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """Collect values from the ``.env`` file and the process environment.
        
        Args:
            env_file: Explicit ``.env`` path; ``./.env`` is used when it exists
            environ: Mapping used instead of ``os.environ`` (optional)
        """
        self.env_file_path = None
        self._values: Dict[str, str] = {}
        
        dotenv_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if dotenv_path.is_file():
            self._values.update(self._read_dotenv(dotenv_path))
            self.env_file_path = str(dotenv_path)
        elif env_file:
            logger.warning(f".env file not found at {env_file}")
        
        self._values.update(os.environ if environ is None else environ)
        self._report()
        
    @staticmethod
    def _read_dotenv(path: Path) -> Dict[str, str]:
        logger.info(f"Loading environment variables from: {path}")
        # Keys without a value parse as None and are skipped
        return {k: v for k, v in dotenv_values(dotenv_path=path).items() if v is not None}
        
    def _report(self):
        for key in REPORTED_KEYS:
            if self.get(key):
                logger.debug(f"{key}={self._values[key]}")
        for key in SECRET_KEYS:
            if self.get(key):
                logger.debug(f"{key}={mask_secret(self._values[key])}")
                
    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, treating empty strings as unset.
        
        Args:
            key: Variable name
            default: Returned when the variable is unset or empty
        """
        value = self._values.get(key)
        return value if value not in (None, "") else default
        
    def get_access_token(self) -> Optional[str]:
        """Get the bearer credential for the issue source.
        
        Returns:
            The token, or None when ``ACCESS_TOKEN`` is not set
        """
        token = self.get("ACCESS_TOKEN")
        if not token:
            logger.error("ACCESS_TOKEN environment variable is not set")
            return None
        return token.strip()
        
    def get_database_url(self, sslmode: str = "disable") -> Optional[str]:
        """Get the database URL.
        
        An explicit ``DATABASE_URL`` wins; otherwise the URL is built from the
        ``DB_*`` variables, equivalent to the libpq string
        ``host=... port=... user=... password=... dbname=... sslmode=...``.
        
        Args:
            sslmode: ``require`` or ``disable``, used when building from components
        
        Returns:
            Database URL string or None if the components are missing or invalid
        """
        database_url = self.get("DATABASE_URL")
        if database_url:
            if not database_url.startswith("postgresql"):
                logger.error("Only PostgreSQL is supported. DATABASE_URL must start with 'postgresql'")
                return None
            return database_url
        
        if not self.validate_postgres_config():
            return None
        
        try:
            port = int(self.get("DB_PORT"))
        except ValueError:
            logger.error(f"DB_PORT must be an integer, got {self.get('DB_PORT')!r}")
            return None
        
        url = URL.create(
            "postgresql+psycopg2",
            username=self.get("DB_USER"),
            password=self.get("DB_PASSWORD"),
            host=self.get("DB_HOST"),
            port=port,
            database=self.get("DB_NAME"),
            query={"sslmode": sslmode},
        )
        logger.debug(f"DATABASE_URL not set, constructed from components: {url.render_as_string(hide_password=True)}")
        return url.render_as_string(hide_password=False)
        
    def validate_postgres_config(self) -> bool:
        """Check that every DB_* variable needed to build a URL is set."""
        missing = [field for field in REQUIRED_DB_FIELDS if not self.get(field)]
        if missing:
            logger.error(f"Missing PostgreSQL settings: {', '.join(missing)}. "
                         "Set DATABASE_URL or every DB_* variable in the environment or .env file")
            return False
        return True
