"""
Speech-to-text client
Sends audio to the STT service's /transcribe endpoint
"""
import os
import time
import logging
from typing import Optional

import requests

from ..exceptions import TranscriptionException
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


class TranscriptionService:
    """Client for the speech-to-text service"""

    def __init__(self, endpoint: str = None, timeout: float = None):
        """
        Initialize transcription client

        Args:
            endpoint: STT service base URL (default: STT_ENDPOINT)
            timeout: Request timeout in seconds (default: TRANSCRIPTION_TIMEOUT_SECONDS)
        """
        self.url = f"{(endpoint or IngestionConfig.STT_ENDPOINT).rstrip('/')}/transcribe"
        self.timeout = timeout or IngestionConfig.TRANSCRIPTION_TIMEOUT_SECONDS
        logger.info(f"Initialized transcription client: {self.url}")

    def transcribe(
        self,
        audio: bytes,
        file_name: str,
        language: str = "en",
        timeout: Optional[float] = None
    ) -> str:
        """
        Transcribe an audio file

        Args:
            audio: Audio file bytes
            file_name: File name sent with the upload
            language: Spoken language hint
            timeout: Request timeout in seconds

        Returns:
            str: The transcript (may be empty for silent audio)

        Raises:
            TranscriptionException: If the service fails or returns no transcript field
        """
        start_time = time.time()
        files = {"file": (os.path.basename(file_name) or "audio", audio, "application/octet-stream")}
        data = {"language": language or "en"}

        try:
            logger.info(f"Sending {file_name} ({len(audio)} bytes) to STT service")
            response = requests.post(self.url, files=files, data=data, timeout=timeout or self.timeout)
        except requests.exceptions.Timeout as e:
            raise TranscriptionException(f"Transcription timed out for {file_name}", original_error=e)
        except requests.exceptions.ConnectionError as e:
            raise TranscriptionException(
                "Connection error - ensure STT service is running", original_error=e
            )
        except requests.exceptions.RequestException as e:
            raise TranscriptionException(f"Transcription request failed for {file_name}", original_error=e)

        elapsed = time.time() - start_time

        if response.status_code != 200:
            raise TranscriptionException(
                f"STT service returned status {response.status_code}: {response.text[:300]}",
                retryable=response.status_code >= 500 or response.status_code == 429
            )

        try:
            transcript = response.json()["transcript"]
        except (ValueError, KeyError, TypeError) as e:
            raise TranscriptionException(
                "Malformed STT response", original_error=e, retryable=False
            )

        transcript = transcript or ""
        logger.info(f"Transcribed {file_name}: {len(transcript)} chars in {elapsed:.2f}s")
        return transcript
