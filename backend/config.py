import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

DATA_DIR = Path(__file__).resolve().parent / "data"


class Config:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')

    # Embedding provider
    EMBEDDING_MODEL = os.getenv('EMBEDDING_MODEL', 'text-embedding-3-small')
    EMBEDDING_DIMENSIONS = int(os.getenv('EMBEDDING_DIMENSIONS', '1536'))

    # Record store ("memory" keeps everything in-process)
    RAG_DB_PATH = os.getenv('RAG_DB_PATH', str(DATA_DIR / 'rag.db'))

    # Search and chunking
    RAG_SIMILARITY_THRESHOLD = float(os.getenv('RAG_SIMILARITY_THRESHOLD', '0.3'))
    RAG_DEFAULT_TOP_K = int(os.getenv('RAG_DEFAULT_TOP_K', '5'))
    RAG_MAX_CHUNK_CHARS = int(os.getenv('RAG_MAX_CHUNK_CHARS', '500'))
    RAG_MIN_CHUNK_CHARS = int(os.getenv('RAG_MIN_CHUNK_CHARS', '30'))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration - in-memory store, no API key."""
    TESTING = True
    DEBUG = False
    OPENAI_API_KEY = None
    RAG_DB_PATH = 'memory'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(name: str | None = None) -> type[Config]:
    """Resolve a config class by name, falling back to APP_ENV and then 'default'."""
    name = name or os.getenv('APP_ENV', 'default')
    if name not in config:
        raise ValueError(f"Unknown config '{name}'")
    return config[name]
