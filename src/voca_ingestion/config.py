"""
Configuration for the ingestion worker
Loads all settings from .env file
"""
import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from root .env file
root_dir = Path(__file__).parent.parent.parent
load_dotenv(root_dir / '.env')


logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == 'true'


class IngestionConfig:
    """Configuration class for the ingestion worker"""

    # AWS / S3-compatible credentials (MinIO works with an endpoint override)
    AWS_ACCESS_KEY_ID = os.getenv('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.getenv('AWS_SECRET_ACCESS_KEY')
    AWS_REGION = os.getenv('AWS_REGION', 'us-east-1')

    # Object store
    S3_ENDPOINT_URL = os.getenv('S3_ENDPOINT_URL')
    S3_BUCKET_NAME = os.getenv('S3_BUCKET_NAME', 'resumes')

    # Job queues (one SQS queue per logical queue)
    SQS_ENDPOINT_URL = os.getenv('SQS_ENDPOINT_URL')
    RESUME_QUEUE_URL = os.getenv('RESUME_QUEUE_URL')
    DOCUMENT_QUEUE_URL = os.getenv('DOCUMENT_QUEUE_URL')
    AUDIO_QUEUE_URL = os.getenv('AUDIO_QUEUE_URL')
    QUEUE_WAIT_SECONDS = int(os.getenv('QUEUE_WAIT_SECONDS', '20'))

    # Worker pool sizes
    RESUME_CONCURRENCY = int(os.getenv('RESUME_CONCURRENCY', '2'))
    DOCUMENT_CONCURRENCY = int(os.getenv('DOCUMENT_CONCURRENCY', '2'))
    AUDIO_CONCURRENCY = int(os.getenv('AUDIO_CONCURRENCY', '1'))

    # Retry policy
    MAX_ATTEMPTS = int(os.getenv('MAX_ATTEMPTS', '3'))
    RETRY_BASE_DELAY = int(os.getenv('RETRY_BASE_DELAY', '5'))
    RETRY_MAX_DELAY = int(os.getenv('RETRY_MAX_DELAY', '300'))

    # Timeouts
    JOB_TIMEOUT_SECONDS = int(os.getenv('JOB_TIMEOUT_SECONDS', '600'))
    HTTP_TIMEOUT_SECONDS = int(os.getenv('HTTP_TIMEOUT_SECONDS', '30'))
    TRANSCRIPTION_TIMEOUT_SECONDS = int(os.getenv('TRANSCRIPTION_TIMEOUT_SECONDS', '300'))
    LLM_TIMEOUT_SECONDS = int(os.getenv('LLM_TIMEOUT_SECONDS', '120'))

    # Elasticsearch (entity store + vector index)
    ELASTICSEARCH_HOST = os.getenv('ELASTICSEARCH_HOST', 'localhost')
    ELASTICSEARCH_PORT = int(os.getenv('ELASTICSEARCH_PORT', 9200))
    ELASTICSEARCH_USERNAME = os.getenv('ELASTICSEARCH_USERNAME')
    ELASTICSEARCH_PASSWORD = os.getenv('ELASTICSEARCH_PASSWORD')
    INDEX_PREFIX = os.getenv('INDEX_PREFIX', 'voca_')

    # Embedding configuration
    EMBEDDING_PROVIDER = os.getenv('EMBEDDING_PROVIDER', 'http').strip().lower()
    EMBEDDING_ENDPOINT = os.getenv('EMBEDDING_ENDPOINT', 'http://localhost:8001')
    EMBEDDING_MODEL_NAME = os.getenv('EMBEDDING_MODEL_NAME', 'bge-small-en-v1.5')
    EMBEDDING_DIMENSIONS = int(os.getenv('EMBEDDING_DIMENSIONS', '384'))

    # Speech-to-text and summarization
    STT_ENDPOINT = os.getenv('STT_ENDPOINT', 'http://localhost:9002')
    LLM_ENDPOINT = os.getenv('LLM_ENDPOINT', 'http://localhost:11435/v1/chat/completions')
    LLM_MODEL_NAME = os.getenv('LLM_MODEL_NAME', 'qwen2.5-3b-instruct')
    LLM_API_KEY = os.getenv('LLM_API_KEY', '')

    # Chunking
    CHUNK_SIZE = int(os.getenv('CHUNK_SIZE', '500'))
    CHUNK_OVERLAP = int(os.getenv('CHUNK_OVERLAP', '50'))
    CHUNK_STRATEGY = os.getenv('CHUNK_STRATEGY', 'boundary_snap').strip().lower()

    # Recovery sweep for entities stuck in a non-terminal state
    ENABLE_RECOVERY_SWEEP = _env_bool('ENABLE_RECOVERY_SWEEP', 'true')
    RECOVERY_INTERVAL_SECONDS = int(os.getenv('RECOVERY_INTERVAL_SECONDS', '900'))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FILE = os.getenv('LOG_FILE', 'ingestion.log')

    @classmethod
    def validate(cls):
        """Validate that all required configuration is present"""
        required_vars = [
            ('S3_BUCKET_NAME', cls.S3_BUCKET_NAME),
            ('ELASTICSEARCH_HOST', cls.ELASTICSEARCH_HOST),
        ]

        missing = [var for var, val in required_vars if not val]

        if not any(cls.get_queue_urls().values()):
            missing.append('RESUME_QUEUE_URL / DOCUMENT_QUEUE_URL / AUDIO_QUEUE_URL')

        if cls.EMBEDDING_PROVIDER not in ('http', 'hash'):
            raise ValueError(
                f"Unsupported EMBEDDING_PROVIDER '{cls.EMBEDDING_PROVIDER}' (expected 'http' or 'hash')"
            )

        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        return True

    @classmethod
    def get_s3_config(cls):
        """Get S3 configuration as dict"""
        return {
            'bucket_name': cls.S3_BUCKET_NAME,
            'endpoint_url': cls.S3_ENDPOINT_URL,
            'aws_access_key_id': cls.AWS_ACCESS_KEY_ID,
            'aws_secret_access_key': cls.AWS_SECRET_ACCESS_KEY,
            'aws_region': cls.AWS_REGION,
            'timeout': cls.HTTP_TIMEOUT_SECONDS,
        }

    @classmethod
    def get_sqs_config(cls):
        """Get SQS client configuration as dict"""
        return {
            'endpoint_url': cls.SQS_ENDPOINT_URL,
            'aws_access_key_id': cls.AWS_ACCESS_KEY_ID,
            'aws_secret_access_key': cls.AWS_SECRET_ACCESS_KEY,
            'aws_region': cls.AWS_REGION,
            'wait_seconds': cls.QUEUE_WAIT_SECONDS,
        }

    @classmethod
    def get_queue_urls(cls):
        """Queue URL per logical queue name"""
        return {
            'resume': cls.RESUME_QUEUE_URL,
            'document': cls.DOCUMENT_QUEUE_URL,
            'audio': cls.AUDIO_QUEUE_URL,
        }

    @classmethod
    def get_concurrency(cls):
        """Worker count per logical queue name"""
        return {
            'resume': cls.RESUME_CONCURRENCY,
            'document': cls.DOCUMENT_CONCURRENCY,
            'audio': cls.AUDIO_CONCURRENCY,
        }

    @classmethod
    def get_elasticsearch_config(cls):
        """Get Elasticsearch configuration as dict"""
        return {
            'host': cls.ELASTICSEARCH_HOST,
            'port': cls.ELASTICSEARCH_PORT,
            'username': cls.ELASTICSEARCH_USERNAME,
            'password': cls.ELASTICSEARCH_PASSWORD,
            'timeout': cls.HTTP_TIMEOUT_SECONDS,
        }

    @classmethod
    def log_config(cls):
        """Log current configuration (masked sensitive data)"""
        logger.info("=== Ingestion Worker Configuration ===")
        logger.info(f"Object store: bucket={cls.S3_BUCKET_NAME} endpoint={cls.S3_ENDPOINT_URL or 'aws'}")
        for name, url in cls.get_queue_urls().items():
            if url:
                logger.info(f"Queue '{name}': {url} (concurrency={cls.get_concurrency()[name]})")
        logger.info(f"Elasticsearch: {cls.ELASTICSEARCH_HOST}:{cls.ELASTICSEARCH_PORT} prefix={cls.INDEX_PREFIX}")
        logger.info(f"Embedding provider: {cls.EMBEDDING_PROVIDER} ({cls.EMBEDDING_MODEL_NAME} at {cls.EMBEDDING_ENDPOINT})")
        logger.info(f"STT endpoint: {cls.STT_ENDPOINT}")
        logger.info(f"LLM: {cls.LLM_MODEL_NAME} at {cls.LLM_ENDPOINT} (api key {'set' if cls.LLM_API_KEY else 'not set'})")
        logger.info(f"Chunking: size={cls.CHUNK_SIZE} overlap={cls.CHUNK_OVERLAP} strategy={cls.CHUNK_STRATEGY}")
        logger.info(
            f"Retry policy: max_attempts={cls.MAX_ATTEMPTS} base_delay={cls.RETRY_BASE_DELAY}s "
            f"max_delay={cls.RETRY_MAX_DELAY}s, job timeout={cls.JOB_TIMEOUT_SECONDS}s"
        )
        logger.info(f"Recovery sweep: {cls.ENABLE_RECOVERY_SWEEP} (every {cls.RECOVERY_INTERVAL_SECONDS}s)")
        logger.info("=" * 38)
