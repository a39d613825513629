"""Flask application configuration."""
import os


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return default


class Config:
    """Base configuration."""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Gemini
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY') or os.environ.get('API_KEY')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.5-pro')
    GEMINI_API_URL = os.environ.get('GEMINI_API_URL')
    GEMINI_TIMEOUT_SECONDS = _int_env('GEMINI_TIMEOUT_SECONDS', 180)
    GEMINI_TEMPERATURE = _float_env('GEMINI_TEMPERATURE', 0.5)
    GEMINI_TOP_P = _float_env('GEMINI_TOP_P', 0.95)
    GEMINI_THINKING_BUDGET = _int_env('GEMINI_THINKING_BUDGET', 32768)

    # Uploads
    MAX_IMAGE_BYTES = 4 * 1024 * 1024
    # Chart image + essay image + form fields
    MAX_CONTENT_LENGTH = 2 * MAX_IMAGE_BYTES + 512 * 1024
    ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'heic', 'heif'}

    # Session
    SESSION_COOKIE_SECURE = False  # Set True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # CORS (for development)
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    """Test configuration with a placeholder credential."""
    DEBUG = False
    TESTING = True
    GEMINI_API_KEY = 'test-key'
    SECRET_KEY = 'test-secret'


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
