"""
LLM Service for transcript summarization (OpenAI-compatible chat completions)
"""
import requests
import logging
from typing import Optional
from ..exceptions import LLMServiceException
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that summarizes transcripts."
SUMMARY_PROMPT = "Summarize the following transcript in 3-5 bullet points:\n\n{text}"


class LLMService:
    """Service to interact with the chat-completions endpoint"""

    def __init__(self, endpoint: str = None, model_name: str = None, api_key: str = None, timeout: float = None):
        """Initialize LLM service with configuration"""
        self.endpoint = endpoint or IngestionConfig.LLM_ENDPOINT
        self.model_name = model_name or IngestionConfig.LLM_MODEL_NAME
        self.api_key = api_key or IngestionConfig.LLM_API_KEY
        self.timeout = timeout or IngestionConfig.LLM_TIMEOUT_SECONDS
        logger.info(f"LLMService initialized: {self.model_name} at {self.endpoint}")

    def summarize(self, text: str, timeout: Optional[float] = None) -> str:
        """
        Summarize a transcript as 3-5 bullet points

        Args:
            text: Transcript text
            timeout: Request timeout in seconds

        Returns:
            str: The summary

        Raises:
            LLMServiceException: If the call fails
        """
        return self.complete(
            SUMMARY_PROMPT.format(text=text),
            system=SUMMARY_SYSTEM_PROMPT,
            timeout=timeout
        )

    def complete(
        self,
        prompt: str,
        system: str = "You are a helpful assistant.",
        temperature: float = 0.3,
        timeout: Optional[float] = None
    ) -> str:
        """
        Call the LLM API endpoint

        Args:
            prompt: User prompt
            system: System prompt
            temperature: Sampling temperature
            timeout: Request timeout in seconds

        Returns:
            str: Message content of the first choice

        Raises:
            LLMServiceException: On transport errors, non-200 responses or malformed bodies
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt}
            ],
            "max_tokens": 1024,
            "temperature": temperature
        }

        try:
            response = requests.post(
                self.endpoint,
                headers=headers,
                json=payload,
                timeout=timeout or self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise LLMServiceException("LLM request timeout", original_error=e)
        except requests.exceptions.ConnectionError as e:
            raise LLMServiceException("Connection error - ensure LLM service is running", original_error=e)
        except requests.exceptions.RequestException as e:
            raise LLMServiceException("LLM request failed", original_error=e)

        if response.status_code != 200:
            raise LLMServiceException(
                f"API returned status {response.status_code}: {response.text[:300]}",
                retryable=response.status_code >= 500 or response.status_code == 429
            )

        try:
            result = response.json()
            return result["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMServiceException("Malformed LLM response", original_error=e, retryable=False)
