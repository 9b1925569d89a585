"""
Configuration module with fail-fast validation.

All configuration values are validated at startup. Production environments
must provide every required environment variable.
"""
from fairdice_be.config_validator import validate_production_config

class Config:
    """Production-ready configuration with fail-fast validation."""

    _validated_config = validate_production_config()

    # Database Configuration
    SQLALCHEMY_DATABASE_URI = _validated_config['SQLALCHEMY_DATABASE_URI']
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT Configuration
    JWT_SECRET_KEY = _validated_config['JWT_SECRET_KEY']
    JWT_ACCESS_TOKEN_EXPIRES = _validated_config['JWT_ACCESS_TOKEN_EXPIRES']
    JWT_REFRESH_TOKEN_EXPIRES = _validated_config['JWT_REFRESH_TOKEN_EXPIRES']
    JWT_BLACKLIST_ENABLED = True
    JWT_BLACKLIST_TOKEN_CHECKS = ['access', 'refresh']

    # Browser clients use cookies, oracle and operator tooling use the Authorization header
    JWT_TOKEN_LOCATION = ['cookies', 'headers']
    JWT_COOKIE_SECURE = _validated_config['JWT_COOKIE_SECURE']
    JWT_COOKIE_SAMESITE = 'Strict'
    JWT_COOKIE_CSRF_PROTECT = True
    JWT_ACCESS_COOKIE_NAME = 'access_token_cookie'
    JWT_REFRESH_COOKIE_NAME = 'refresh_token_cookie'
    JWT_ACCESS_CSRF_HEADER_NAME = 'X-CSRF-Token'
    JWT_REFRESH_CSRF_HEADER_NAME = 'X-CSRF-Token'

    # Session Configuration
    SESSION_COOKIE_SECURE = JWT_COOKIE_SECURE
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Strict'

    # Rate Limiter Storage URI
    RATELIMIT_STORAGE_URI = _validated_config['RATELIMIT_STORAGE_URI']

    DEBUG = _validated_config['DEBUG']

    # Satoshi Conversion Factor (1 unit = 100,000,000 minor units)
    SATOSHI_FACTOR = 100_000_000

    # Service API Token for internal routes (block production)
    SERVICE_API_TOKEN = _validated_config['SERVICE_API_TOKEN']

    CORS_ORIGINS_LIST = _validated_config['CORS_ORIGINS']

    # --- Dice house rules (all amounts in minor units) ---
    HOUSE_EDGE_PERCENT = _validated_config['HOUSE_EDGE_PERCENT']
    HOUSE_EDGE_MINIMUM_AMOUNT = _validated_config['HOUSE_EDGE_MINIMUM_AMOUNT']
    MIN_BET = _validated_config['MIN_BET']
    MAX_BET = _validated_config['MAX_BET']
    MIN_JACKPOT_BET = _validated_config['MIN_JACKPOT_BET']
    JACKPOT_FEE = _validated_config['JACKPOT_FEE']
    JACKPOT_MODULO = _validated_config['JACKPOT_MODULO']
    BET_EXPIRATION_BLOCKS = _validated_config['BET_EXPIRATION_BLOCKS']
    BLOCKHASH_HORIZON = _validated_config['BLOCKHASH_HORIZON']
    DEFAULT_MAX_PROFIT = _validated_config['DEFAULT_MAX_PROFIT']
    LOSS_NOMINAL_PAYMENT = _validated_config['LOSS_NOMINAL_PAYMENT']

    # Hex compressed secp256k1 public key of the oracle
    ORACLE_ADDRESS = _validated_config['ORACLE_ADDRESS']


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///./test_fairdice_be_isolated.db' # File-based for test isolation using SQLite
    # Define a key to store the database file path for easy cleanup
    DATABASE_FILE_PATH = SQLALCHEMY_DATABASE_URI.replace('sqlite:///', '')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = 'test-jwt-secret-key-used-only-by-the-test-suite'
    JWT_COOKIE_CSRF_PROTECT = False # Disable JWT CSRF for tests
    SERVICE_API_TOKEN = 'test_internal_api_service_token'
    # Disable rate limiting for tests
    RATELIMIT_ENABLED = False
    RATELIMIT_DEFAULT_LIMITS_ENABLED = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False}
    }
    ORACLE_ADDRESS = None
    DEFAULT_MAX_PROFIT = 300_000_000
