"""Job queue and worker pool"""

from .sqs_job_queue import SQSJobQueue
from .worker_pool import WorkerPool

__all__ = [
    "SQSJobQueue",
    "WorkerPool"
]
