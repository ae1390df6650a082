"""
Job queue on Amazon SQS (or an SQS-compatible broker such as ElasticMQ)

One SQS queue per logical queue name. Delivery is at-least-once: a message is
deleted only after its job finished, and a message that is not deleted comes
back once its visibility timeout expires.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from ..models.schemas import JobMessage
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


# SQS caps visibility timeouts at 12 hours
MAX_VISIBILITY_TIMEOUT = 43200


class SQSJobQueue:
    """Producer and consumer operations on the job queues"""

    def __init__(
        self,
        queue_urls: Dict[str, str] = None,
        endpoint_url: str = None,
        aws_access_key_id: str = None,
        aws_secret_access_key: str = None,
        aws_region: str = None,
        wait_seconds: int = None,
        client=None
    ):
        """
        Initialize SQS job queue

        Args:
            queue_urls: Queue URL per logical queue name (default: from .env)
            endpoint_url: Endpoint override for local brokers
            aws_access_key_id: AWS access key
            aws_secret_access_key: AWS secret key
            aws_region: AWS region
            wait_seconds: Long-polling wait time
            client: Pre-built boto3 SQS client (tests)
        """
        urls = queue_urls if queue_urls is not None else IngestionConfig.get_queue_urls()
        self.queue_urls = {name: url for name, url in urls.items() if url}
        self.wait_seconds = wait_seconds if wait_seconds is not None else IngestionConfig.QUEUE_WAIT_SECONDS

        if client is not None:
            self.sqs_client = client
        else:
            self.sqs_client = boto3.client(
                'sqs',
                endpoint_url=endpoint_url or IngestionConfig.SQS_ENDPOINT_URL,
                aws_access_key_id=aws_access_key_id or IngestionConfig.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=aws_secret_access_key or IngestionConfig.AWS_SECRET_ACCESS_KEY,
                region_name=aws_region or IngestionConfig.AWS_REGION,
                config=Config(
                    connect_timeout=10,
                    # long polling holds the connection open for wait_seconds
                    read_timeout=self.wait_seconds + 10,
                    retries={'max_attempts': 3, 'mode': 'standard'}
                )
            )

        logger.info(f"SQSJobQueue initialized with queues: {sorted(self.queue_urls)}")

    def queue_url(self, queue_name: str) -> str:
        try:
            return self.queue_urls[queue_name]
        except KeyError:
            raise ValueError(f"No queue URL configured for '{queue_name}'")

    def send(
        self,
        queue_name: str,
        job: Union[BaseModel, Dict[str, Any]],
        delay_seconds: int = 0
    ) -> str:
        """
        Enqueue a job

        Args:
            queue_name: Logical queue name
            job: Job model (serialized with its wire aliases) or a raw dict
            delay_seconds: Delivery delay

        Returns:
            str: SQS message id
        """
        body = job.to_message() if hasattr(job, "to_message") else job
        response = self.sqs_client.send_message(
            QueueUrl=self.queue_url(queue_name),
            MessageBody=json.dumps(body),
            DelaySeconds=delay_seconds
        )
        message_id = response['MessageId']
        logger.info(f"Enqueued job on '{queue_name}': {message_id}")
        return message_id

    def receive(
        self,
        queue_name: str,
        max_messages: int = 1,
        visibility_timeout: Optional[int] = None
    ) -> List[JobMessage]:
        """
        Long-poll for jobs

        Args:
            queue_name: Logical queue name
            max_messages: Maximum messages to retrieve (1-10)
            visibility_timeout: Seconds the messages stay hidden from other consumers

        Returns:
            list: Received messages (empty when the poll timed out)
        """
        params = {
            'QueueUrl': self.queue_url(queue_name),
            'MaxNumberOfMessages': max(1, min(max_messages, 10)),
            'WaitTimeSeconds': self.wait_seconds,
            'AttributeNames': ['ApproximateReceiveCount'],
        }
        if visibility_timeout is not None:
            params['VisibilityTimeout'] = min(visibility_timeout, MAX_VISIBILITY_TIMEOUT)

        try:
            response = self.sqs_client.receive_message(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to poll queue '{queue_name}': {e}")
            return []

        messages = []
        for message in response.get('Messages', []):
            try:
                body = json.loads(message['Body'])
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse message {message.get('MessageId')}: {e}")
                body = {}
            if not isinstance(body, dict):
                body = {}

            attempt = int(message.get('Attributes', {}).get('ApproximateReceiveCount', 1))
            messages.append(JobMessage(
                queue_name=queue_name,
                message_id=message['MessageId'],
                receipt_handle=message['ReceiptHandle'],
                body=body,
                attempt=attempt
            ))

        if messages:
            logger.debug(f"Received {len(messages)} messages from '{queue_name}'")
        return messages

    def ack(self, message: JobMessage) -> bool:
        """
        Delete a finished message from its queue

        Returns:
            bool: True if successful
        """
        try:
            self.sqs_client.delete_message(
                QueueUrl=self.queue_url(message.queue_name),
                ReceiptHandle=message.receipt_handle
            )
            return True
        except (ClientError, BotoCoreError) as e:
            # the message will be redelivered and handled as a duplicate
            logger.error(f"Failed to delete message {message.message_id}: {e}")
            return False

    def retry_later(self, message: JobMessage, delay_seconds: int) -> bool:
        """
        Make a message visible again after ``delay_seconds``

        Returns:
            bool: True if successful
        """
        try:
            self.sqs_client.change_message_visibility(
                QueueUrl=self.queue_url(message.queue_name),
                ReceiptHandle=message.receipt_handle,
                VisibilityTimeout=max(0, min(delay_seconds, MAX_VISIBILITY_TIMEOUT))
            )
            logger.info(f"Message {message.message_id} will be retried in {delay_seconds}s")
            return True
        except (ClientError, BotoCoreError) as e:
            # falls back to the receive-time visibility timeout
            logger.error(f"Failed to reschedule message {message.message_id}: {e}")
            return False
