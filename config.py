"""
Configuration module for the interpreter booking MCP server.

Provides centralized configuration management with support for:
- Environment variables
- Default values
- Path resolution
- Logging configuration
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file at project root
_env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=_env_path)


def _parse_int(env_var: str, default: int) -> int:
    """Parse an integer value from an environment variable."""
    value = os.getenv(env_var)
    if value is None or not value.strip():
        return default
    return int(value)


def _parse_float(env_var: str, default: float) -> float:
    """Parse a float value from an environment variable."""
    value = os.getenv(env_var)
    if value is None or not value.strip():
        return default
    return float(value)


class Config:
    """
    Configuration class for booking server settings.

    Supports configuration via environment variables (and .env file) with sensible defaults.
    All relative paths are resolved against the repository root.
    """

    def __init__(self):
        """Initialize configuration from environment variables and defaults."""
        self._repo_root = self._find_repo_root()

        # Database configuration
        self.db_path = self._resolve_db_path()

        # Logging configuration
        self.log_level = os.getenv("BOOKING_LOG_LEVEL", "INFO").upper()
        self.log_file = self._resolve_log_path()

        # Server configuration
        self.server_name = os.getenv("BOOKING_SERVER_NAME", "booking-mcp-server")
        self.app_env = os.getenv("BOOKING_APP_ENV", "dev").lower()

        # Booking intake
        self.immediate_lead_minutes = _parse_int("BOOKING_IMMEDIATE_LEAD_MINUTES", 5)

        # Night-time delay policy (local hours, window may wrap midnight)
        self.night_start_hour = _parse_int("BOOKING_NIGHT_START_HOUR", 22)
        self.night_end_hour = _parse_int("BOOKING_NIGHT_END_HOUR", 6)
        self.timezone_offset_hours = _parse_float("BOOKING_TIMEZONE_OFFSET", 1.0)

        # Push gateway (OneSignal)
        self.onesignal_url = os.getenv(
            "BOOKING_ONESIGNAL_URL", "https://onesignal.com/api/v1/notifications"
        )
        self.onesignal_prod_app_id = os.getenv("BOOKING_ONESIGNAL_PROD_APP_ID", "")
        self.onesignal_prod_api_key = os.getenv("BOOKING_ONESIGNAL_PROD_API_KEY", "")
        self.onesignal_dev_app_id = os.getenv("BOOKING_ONESIGNAL_DEV_APP_ID", "")
        self.onesignal_dev_api_key = os.getenv("BOOKING_ONESIGNAL_DEV_API_KEY", "")
        self.push_title = os.getenv("BOOKING_PUSH_TITLE", "DigitalTolk")

        # SMS gateway
        self.sms_url = os.getenv("BOOKING_SMS_URL", "")
        self.sms_api_key = os.getenv("BOOKING_SMS_API_KEY", "")
        self.sms_number = os.getenv("BOOKING_SMS_NUMBER", "")

        # Email (SES)
        self.ses_region = os.getenv("BOOKING_SES_REGION", "eu-north-1")
        self.ses_from_email = os.getenv("BOOKING_SES_FROM_EMAIL", "noreply@example.com")
        self.ses_from_name = os.getenv("BOOKING_SES_FROM_NAME", "DigitalTolk")

        self.http_timeout_seconds = _parse_float("BOOKING_HTTP_TIMEOUT_SECONDS", 10.0)

    def _find_repo_root(self) -> Path:
        """
        Find the repository root directory.

        Returns:
            Path to repository root (the directory holding config.py)
        """
        return Path(__file__).resolve().parent

    def _resolve_db_path(self) -> Path:
        """
        Resolve the database path from environment or default.

        Resolution order:
        1. BOOKING_DB environment variable (absolute or relative)
        2. BOOKING_ROOT/data/booking.db
        3. Default: <repo_root>/data/booking.db

        Returns:
            Resolved absolute Path to database
        """
        db_env = os.getenv("BOOKING_DB")
        if db_env:
            db_path = Path(db_env)
            if db_path.is_absolute():
                return db_path
            return self._repo_root / db_path

        root_env = os.getenv("BOOKING_ROOT")
        if root_env:
            return Path(root_env) / "data" / "booking.db"

        return self._repo_root / "data" / "booking.db"

    def _resolve_log_path(self) -> Optional[Path]:
        """
        Resolve the log file path from environment.

        If BOOKING_LOG_FILE is set, logs will be written to that file.
        Otherwise, logs go to stderr only.

        Returns:
            Path to log file, or None for stderr-only logging
        """
        log_env = os.getenv("BOOKING_LOG_FILE")
        if not log_env:
            return None

        log_path = Path(log_env)
        if log_path.is_absolute():
            return log_path
        return self._repo_root / log_path

    @property
    def onesignal_app_id(self) -> str:
        """OneSignal app id for the active environment."""
        if self.app_env == "prod":
            return self.onesignal_prod_app_id
        return self.onesignal_dev_app_id

    @property
    def onesignal_api_key(self) -> str:
        """OneSignal REST key for the active environment."""
        if self.app_env == "prod":
            return self.onesignal_prod_api_key
        return self.onesignal_dev_api_key

    def setup_logging(self):
        """
        Configure logging based on configuration settings.

        Sets up logging to stderr and optionally to a file. Called once at
        process start; components receive loggers rather than attaching
        handlers themselves.
        """
        numeric_level = getattr(logging, self.log_level, logging.INFO)

        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)

        # Remove existing handlers to avoid duplicates
        root_logger.handlers.clear()

        stderr_handler = logging.StreamHandler()
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(formatter)
        root_logger.addHandler(stderr_handler)

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(self.log_file)
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            logging.info(f"Logging to file: {self.log_file}")

        logging.info(f"Log level set to: {self.log_level}")
        logging.info(f"Database path: {self.db_path}")
        logging.info(f"App environment: {self.app_env}")

    def validate(self) -> list[str]:
        """
        Validate configuration and return any warnings.

        Returns:
            List of warning messages (empty if all valid)
        """
        warnings = []

        if not self.db_path.exists():
            warnings.append(
                f"Database file not found: {self.db_path}. "
                "Run scripts/init_booking_db.py to create it."
            )

        if not self.onesignal_app_id or not self.onesignal_api_key:
            warnings.append(
                f"OneSignal credentials missing for environment '{self.app_env}'. "
                "Push notifications will fail and be logged."
            )

        if not self.sms_url:
            warnings.append("BOOKING_SMS_URL not set. SMS notifications will fail and be logged.")

        if not 0 <= self.night_start_hour <= 23 or not 0 <= self.night_end_hour <= 23:
            warnings.append(
                f"Night window hours out of range: {self.night_start_hour}-{self.night_end_hour}"
            )

        if self.log_file:
            log_dir = self.log_file.parent
            if not log_dir.exists():
                try:
                    log_dir.mkdir(parents=True, exist_ok=True)
                except Exception as e:
                    warnings.append(f"Cannot create log directory {log_dir}: {e}")
            elif not os.access(log_dir, os.W_OK):
                warnings.append(f"Log directory not writable: {log_dir}")

        return warnings


# Global configuration instance
config = Config()


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        Global Config instance
    """
    return config
