"""
Tests for the transcription and summarization clients
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from voca_ingestion.exceptions import LLMServiceException, TranscriptionException
from voca_ingestion.services.llm_service import LLMService, SUMMARY_SYSTEM_PROMPT
from voca_ingestion.services.transcription_service import TranscriptionService


def _response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text
    return response


def test_transcribe_sends_multipart_upload():
    service = TranscriptionService(endpoint="http://stt.test", timeout=90)
    with patch(
        "voca_ingestion.services.transcription_service.requests.post",
        return_value=_response(payload={"transcript": " hello world "})
    ) as post:
        transcript = service.transcribe(b"RIFF....", "audio/u1/abc_meeting.wav", language="de")

    assert transcript == " hello world "
    url = post.call_args[0][0]
    kwargs = post.call_args[1]
    assert url == "http://stt.test/transcribe"
    assert kwargs["files"]["file"][0] == "abc_meeting.wav"
    assert kwargs["data"] == {"language": "de"}
    assert kwargs["timeout"] == 90


def test_transcribe_server_error_is_transient():
    service = TranscriptionService(endpoint="http://stt.test")
    with patch("voca_ingestion.services.transcription_service.requests.post", return_value=_response(502)):
        with pytest.raises(TranscriptionException) as exc_info:
            service.transcribe(b"x", "a.wav")
    assert exc_info.value.retryable


def test_transcribe_unsupported_audio_is_permanent():
    service = TranscriptionService(endpoint="http://stt.test")
    with patch("voca_ingestion.services.transcription_service.requests.post", return_value=_response(415)):
        with pytest.raises(TranscriptionException) as exc_info:
            service.transcribe(b"x", "a.wav")
    assert not exc_info.value.retryable


def test_transcribe_timeout_is_transient():
    service = TranscriptionService(endpoint="http://stt.test")
    with patch(
        "voca_ingestion.services.transcription_service.requests.post",
        side_effect=requests.exceptions.Timeout("slow")
    ):
        with pytest.raises(TranscriptionException) as exc_info:
            service.transcribe(b"x", "a.wav")
    assert exc_info.value.retryable


def test_summarize_uses_chat_completions():
    service = LLMService(endpoint="http://llm.test/v1/chat/completions", model_name="m", api_key="k")
    payload = {"choices": [{"message": {"content": "- point one\n- point two"}}]}
    with patch("voca_ingestion.services.llm_service.requests.post", return_value=_response(payload=payload)) as post:
        summary = service.summarize("the transcript")

    assert summary == "- point one\n- point two"
    body = post.call_args[1]["json"]
    assert body["model"] == "m"
    assert body["messages"][0] == {"role": "system", "content": SUMMARY_SYSTEM_PROMPT}
    assert body["messages"][1]["content"].startswith("Summarize the following transcript in 3-5 bullet points:")
    assert body["messages"][1]["content"].endswith("the transcript")
    assert post.call_args[1]["headers"]["Authorization"] == "Bearer k"


def test_summarize_malformed_response_is_permanent():
    service = LLMService(endpoint="http://llm.test", model_name="m")
    with patch("voca_ingestion.services.llm_service.requests.post", return_value=_response(payload={"choices": []})):
        with pytest.raises(LLMServiceException) as exc_info:
            service.summarize("text")
    assert not exc_info.value.retryable
