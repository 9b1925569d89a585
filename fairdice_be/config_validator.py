"""
Configuration validation and startup checks.

Critical environment variables are checked before the application starts so
that a production deployment never runs on development fallbacks. House
rules for the dice engine are validated here too: a window that outlives the
block hash horizon would make bets unsettleable.
"""

import os
import sys
import warnings
import secrets
from typing import List, Tuple, Optional


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid."""
    pass


# name -> (default, minimum)
DICE_INT_SETTINGS = {
    'HOUSE_EDGE_PERCENT': (1, 0),
    'HOUSE_EDGE_MINIMUM_AMOUNT': (30_000, 0),
    'MIN_BET': (1_000_000, 1),
    'MAX_BET': (30_000_000_000_000, 1),
    'MIN_JACKPOT_BET': (10_000_000, 0),
    'JACKPOT_FEE': (100_000, 0),
    'JACKPOT_MODULO': (1000, 1),
    'BET_EXPIRATION_BLOCKS': (250, 1),
    'BLOCKHASH_HORIZON': (256, 1),
    'DEFAULT_MAX_PROFIT': (300_000_000, 0),
    'LOSS_NOMINAL_PAYMENT': (0, 0),
}


class ConfigValidator:
    """Validates application configuration and enforces production security."""

    def __init__(self, is_production: bool = None):
        """
        Initialize the configuration validator.

        Args:
            is_production: If None, production is assumed only when FLASK_ENV=production
        """
        if is_production is None:
            is_production = os.getenv('FLASK_ENV', '').lower() == 'production'

        self.is_production = is_production
        self.is_testing = os.getenv('TESTING', 'False').lower() in ('true', '1', 't')
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_required_env_var(self, var_name: str, description: str = None) -> Optional[str]:
        """
        Validate that a required environment variable is set.

        Returns:
            The environment variable value if set, None otherwise
        """
        value = os.getenv(var_name)
        if not value:
            desc = description or var_name
            if self.is_production:
                self.errors.append(f"CRITICAL: {desc} ({var_name}) must be set in production environment")
            else:
                self.warnings.append(f"WARNING: {desc} ({var_name}) not set - using development fallback")
        return value

    def validate_jwt_config(self) -> Tuple[str, int, int]:
        """Validate JWT configuration."""
        jwt_secret = self.validate_required_env_var('JWT_SECRET_KEY', 'JWT Secret Key')

        if not jwt_secret:
            if self.is_production:
                raise ConfigValidationError("JWT_SECRET_KEY is required in production")
            jwt_secret = secrets.token_urlsafe(64)
            warnings.warn(
                "JWT_SECRET_KEY not set. Generated secure random key for development. "
                "Set JWT_SECRET_KEY environment variable for production!",
                UserWarning
            )
        elif len(jwt_secret) < 32:
            error_msg = "JWT_SECRET_KEY must be at least 32 characters long"
            if self.is_production:
                self.errors.append(f"CRITICAL: {error_msg}")
            else:
                self.warnings.append(f"WARNING: {error_msg}")

        try:
            access_expires = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', '3600'))
            refresh_expires = int(os.getenv('JWT_REFRESH_TOKEN_EXPIRES', str(86400 * 7)))
        except ValueError:
            raise ConfigValidationError("JWT token expiration values must be integers")

        return jwt_secret, access_expires, refresh_expires

    def validate_database_config(self) -> str:
        """Validate database configuration."""
        database_url = os.getenv('DATABASE_URL')

        if database_url:
            if not database_url.startswith(('postgresql://', 'postgresql+psycopg2://', 'sqlite://')):
                self.errors.append("CRITICAL: DATABASE_URL must use a supported database driver")
            return database_url

        if self.is_production:
            self.errors.append("CRITICAL: DATABASE_URL must be set in production environment")
            return None

        self.warnings.append("DATABASE_URL not set - using local SQLite database for development")
        return 'sqlite:///fairdice_dev.db'

    def validate_service_config(self) -> str:
        """Validate service API token configuration."""
        service_token = os.getenv('SERVICE_API_TOKEN')

        if not service_token:
            if self.is_production:
                self.errors.append(
                    "CRITICAL: SERVICE_API_TOKEN must be set in production for internal service authentication"
                )
                service_token = None
            else:
                service_token = 'default_service_token_please_change'
                self.warnings.append(
                    "SERVICE_API_TOKEN not set - using development default. "
                    "Set a strong, unique token for production!"
                )
        elif service_token == 'default_service_token_please_change' and self.is_production:
            self.errors.append(
                "CRITICAL: Default SERVICE_API_TOKEN detected in production. "
                "Set a strong, unique SERVICE_API_TOKEN environment variable."
            )

        return service_token

    def validate_rate_limiting_config(self) -> str:
        """Validate rate limiting configuration."""
        rate_limit_uri = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

        if rate_limit_uri == 'memory://' and self.is_production:
            self.errors.append(
                "CRITICAL: Rate limiting uses memory:// storage in production. "
                "Set RATELIMIT_STORAGE_URI to a Redis URL (e.g., redis://localhost:6379/0)"
            )

        return rate_limit_uri

    def validate_cors_config(self) -> List[str]:
        """Validate CORS configuration."""
        cors_origins = os.getenv('CORS_ORIGINS', '')

        if not cors_origins and self.is_production:
            self.errors.append(
                "CRITICAL: CORS_ORIGINS must be set in production to specify allowed frontend domains"
            )
            return []

        if cors_origins:
            origins = [origin.strip() for origin in cors_origins.split(',') if origin.strip()]
            for origin in origins:
                if not origin.startswith(('http://', 'https://')):
                    self.warnings.append(f"CORS origin '{origin}' should include protocol (http:// or https://)")
            return origins

        return []

    def validate_oracle_config(self) -> Optional[str]:
        """Validate the oracle's registered address (hex compressed secp256k1 public key)."""
        oracle_address = self.validate_required_env_var('ORACLE_ADDRESS', 'Oracle signing address')
        if not oracle_address:
            return None

        oracle_address = oracle_address.lower()
        if oracle_address.startswith('0x'):
            oracle_address = oracle_address[2:]
        try:
            raw = bytes.fromhex(oracle_address)
        except ValueError:
            self.errors.append("CRITICAL: ORACLE_ADDRESS must be hex encoded")
            return None
        if len(raw) != 33 or raw[0] not in (2, 3):
            self.errors.append("CRITICAL: ORACLE_ADDRESS must be a 33-byte compressed public key")
            return None
        return oracle_address

    def validate_dice_config(self) -> dict:
        """Validate house rules of the dice engine."""
        values = {}
        for name, (default, minimum) in DICE_INT_SETTINGS.items():
            raw = os.getenv(name)
            if raw is None:
                values[name] = default
                continue
            try:
                value = int(raw)
            except ValueError:
                self.errors.append(f"CRITICAL: {name} must be an integer, got '{raw}'")
                values[name] = default
                continue
            if value < minimum:
                self.errors.append(f"CRITICAL: {name} must be >= {minimum}, got {value}")
            values[name] = value

        if values['HOUSE_EDGE_PERCENT'] >= 100:
            self.errors.append("CRITICAL: HOUSE_EDGE_PERCENT must be below 100")
        if values['MIN_BET'] > values['MAX_BET']:
            self.errors.append("CRITICAL: MIN_BET must not exceed MAX_BET")
        if values['BET_EXPIRATION_BLOCKS'] >= values['BLOCKHASH_HORIZON']:
            self.errors.append("CRITICAL: BET_EXPIRATION_BLOCKS must be smaller than BLOCKHASH_HORIZON")
        if values['DEFAULT_MAX_PROFIT'] >= values['MAX_BET']:
            self.errors.append("CRITICAL: DEFAULT_MAX_PROFIT must be smaller than MAX_BET")

        return values

    def validate_all(self) -> dict:
        """
        Validate all configuration settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If critical configuration is missing in production
        """
        config = {}

        try:
            config['JWT_SECRET_KEY'], config['JWT_ACCESS_TOKEN_EXPIRES'], config['JWT_REFRESH_TOKEN_EXPIRES'] = self.validate_jwt_config()
            config['SQLALCHEMY_DATABASE_URI'] = self.validate_database_config()
            config['SERVICE_API_TOKEN'] = self.validate_service_config()
            config['RATELIMIT_STORAGE_URI'] = self.validate_rate_limiting_config()
            config['CORS_ORIGINS'] = self.validate_cors_config()
            config['ORACLE_ADDRESS'] = self.validate_oracle_config()
            config.update(self.validate_dice_config())

            config['DEBUG'] = os.getenv('FLASK_DEBUG', 'False').lower() in ('true', '1', 't')
            config['JWT_COOKIE_SECURE'] = os.getenv('JWT_COOKIE_SECURE', 'True').lower() in ('true', '1', 't')

            if self.is_production:
                if config['DEBUG']:
                    self.errors.append("CRITICAL: DEBUG mode must be disabled in production (set FLASK_DEBUG=False)")

                if not config['JWT_COOKIE_SECURE']:
                    self.errors.append("CRITICAL: JWT cookies must be secure in production (set JWT_COOKIE_SECURE=True)")

            if self.errors:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
                if self.warnings:
                    error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warning}" for warning in self.warnings)
                raise ConfigValidationError(error_msg)

            for warning in self.warnings:
                warnings.warn(warning, UserWarning)

            return config

        except Exception as e:
            if isinstance(e, ConfigValidationError):
                raise
            raise ConfigValidationError(f"Configuration validation error: {str(e)}") from e


def validate_production_config() -> dict:
    """
    Validate configuration with fail-fast behavior.

    Returns:
        Dictionary of validated configuration values

    Raises:
        SystemExit: If validation fails during startup
    """
    try:
        validator = ConfigValidator()
        return validator.validate_all()
    except ConfigValidationError as e:
        print("\nCONFIGURATION VALIDATION FAILED\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nHow to fix:", file=sys.stderr)
        print("1. Set required environment variables", file=sys.stderr)
        print("2. Use 'flask oracle-keygen' to create the oracle key pair and set ORACLE_ADDRESS", file=sys.stderr)
        print("3. Review production deployment checklist", file=sys.stderr)
        print("\nApplication startup ABORTED\n", file=sys.stderr)

        sys.exit(1)
