#!/usr/bin/env python3
"""
Main entry point for the ingestion worker
Consumes resume, document and audio jobs from SQS until stopped
"""
import sys
import logging
import signal
import threading
from datetime import datetime

from .config import IngestionConfig
from .models.schemas import ChunkingConfig, ChunkingStrategy, PipelineConfig, RetryPolicy
from .parsers import TextExtractor
from .processors import MetadataExtractor, TextChunker
from .services import (
    ElasticsearchClient,
    EntityStore,
    LLMService,
    RecoveryService,
    S3Service,
    TranscriptionService,
    VectorIndexService,
    create_embedding_client
)
from .queue_handlers import SQSJobQueue, WorkerPool
from .pipeline import PIPELINES, PipelineContext


logger = logging.getLogger(__name__)

_shutdown = threading.Event()


def configure_logging(level: str = None, log_file: str = None) -> None:
    """Log to the console and to a file"""
    handlers = [logging.StreamHandler()]
    if log_file or IngestionConfig.LOG_FILE:
        handlers.append(logging.FileHandler(log_file or IngestionConfig.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, (level or IngestionConfig.LOG_LEVEL), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
    # boto and urllib3 are chatty at INFO
    for noisy in ('botocore', 'boto3', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class IngestionWorkerService:
    """Service wrapper that wires the clients, worker pools and recovery sweep"""

    def __init__(self):
        self.context = None
        self.job_queue = None
        self.worker_pool = None
        self.recovery_service = None
        self.running = False

    def initialize(self):
        """Initialize all services and the worker pool"""
        logger.info("=" * 60)
        logger.info("Starting Voca Ingestion Worker")
        logger.info("=" * 60)

        try:
            IngestionConfig.validate()
            IngestionConfig.log_config()
        except ValueError as e:
            logger.error(f"Configuration validation failed: {e}")
            logger.error("Please check your .env file and ensure all required variables are set")
            sys.exit(1)

        logger.info("Initializing services...")
        try:
            object_store = S3Service(**IngestionConfig.get_s3_config())
            object_store.verify_bucket()

            es_client = ElasticsearchClient(**IngestionConfig.get_elasticsearch_config())
            if not es_client.ping():
                raise ConnectionError(f"Cannot reach Elasticsearch at {es_client.base_url}")

            entity_store = EntityStore(es_client)
            entity_store.ensure_indices()
            vector_index = VectorIndexService(es_client)

            chunker = TextChunker(ChunkingConfig(
                chunk_size=IngestionConfig.CHUNK_SIZE,
                chunk_overlap=IngestionConfig.CHUNK_OVERLAP,
                strategy=ChunkingStrategy(IngestionConfig.CHUNK_STRATEGY)
            ))

            pipeline_config = PipelineConfig(
                job_timeout_seconds=IngestionConfig.JOB_TIMEOUT_SECONDS,
                retry_policy=RetryPolicy(
                    max_attempts=IngestionConfig.MAX_ATTEMPTS,
                    base_delay=IngestionConfig.RETRY_BASE_DELAY,
                    max_delay=IngestionConfig.RETRY_MAX_DELAY
                )
            )

            self.context = PipelineContext(
                object_store=object_store,
                extractor=TextExtractor(),
                chunker=chunker,
                metadata_extractor=MetadataExtractor(),
                embedding_client=create_embedding_client(),
                vector_index=vector_index,
                entity_store=entity_store,
                transcription_service=TranscriptionService(),
                llm_service=LLMService(),
                config=pipeline_config,
                http_timeout=IngestionConfig.HTTP_TIMEOUT_SECONDS
            )

            self.job_queue = SQSJobQueue(**IngestionConfig.get_sqs_config())
            self.worker_pool = WorkerPool(self.job_queue, self.context)
            logger.info("All services initialized successfully")
        except Exception as e:
            logger.error(f"Service initialization failed: {e}", exc_info=True)
            sys.exit(1)

        if IngestionConfig.ENABLE_RECOVERY_SWEEP:
            self.recovery_service = RecoveryService(
                entity_store=self.context.entity_store,
                job_queue=self.job_queue,
                check_interval=IngestionConfig.RECOVERY_INTERVAL_SECONDS,
                unclaimed_grace_seconds=pipeline_config.lease_seconds
            )
        else:
            logger.info("Recovery sweep disabled")

    def start(self):
        """Start one worker pool per configured queue and block until shutdown"""
        if not self.worker_pool:
            logger.error("Worker pool not initialized")
            return

        concurrency = IngestionConfig.get_concurrency()
        for queue_name in self.job_queue.queue_urls:
            self.worker_pool.run(queue_name, concurrency[queue_name], PIPELINES[queue_name])

        if self.recovery_service:
            self.recovery_service.start_background_sweep()

        self.running = True
        logger.info("Service is running. Press Ctrl+C to stop.")

        _shutdown.wait()
        self.stop()

    def stop(self):
        """Stop the ingestion worker"""
        if self.running:
            logger.info("Stopping ingestion worker...")
            if self.recovery_service:
                self.recovery_service.stop_background_sweep(timeout=5)
            if self.worker_pool:
                self.worker_pool.stop(timeout=IngestionConfig.JOB_TIMEOUT_SECONDS)
            self.running = False
            logger.info("Service stopped successfully")
            logger.info(f"Session ended at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}")
    _shutdown.set()


def main():
    """Main entry point"""
    configure_logging()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    service = IngestionWorkerService()

    try:
        service.initialize()
        service.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        service.stop()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        service.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
