"""
Minimal Elasticsearch HTTP client shared by the entity store and the vector index
"""
import json
import logging
import threading
from typing import Any, Dict, Iterable, Optional, Type

import requests
from requests.auth import HTTPBasicAuth

from ..exceptions import ElasticsearchException
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


class ElasticsearchClient:
    """Thin wrapper over the Elasticsearch REST API using requests"""

    def __init__(
        self,
        host: str = None,
        port: int = None,
        username: str = None,
        password: str = None,
        timeout: float = None,
        session: Optional[requests.Session] = None
    ):
        resolved_host = host or IngestionConfig.ELASTICSEARCH_HOST
        resolved_port = port or IngestionConfig.ELASTICSEARCH_PORT
        self.username = username or IngestionConfig.ELASTICSEARCH_USERNAME
        self.password = password or IngestionConfig.ELASTICSEARCH_PASSWORD
        self.timeout = timeout or IngestionConfig.HTTP_TIMEOUT_SECONDS
        self._session = session
        self._local = threading.local()

        if resolved_host.startswith("http://") or resolved_host.startswith("https://"):
            self.base_url = resolved_host.rstrip("/")
        else:
            self.base_url = f"http://{resolved_host}:{resolved_port}"

    @property
    def session(self) -> requests.Session:
        """Injected session, or one connection pool per worker thread"""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def ping(self) -> bool:
        """Simple reachability check"""
        try:
            resp = self.session.get(self.base_url, timeout=3, auth=self._auth())
            return resp.status_code < 500
        except requests.RequestException as e:
            logger.warning(f"Elasticsearch ping failed: {e}")
            return False

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        allowed_statuses: Iterable[int] = (),
        ndjson: bool = False,
        error_cls: Type[ElasticsearchException] = ElasticsearchException
    ) -> requests.Response:
        """
        Send a request and map failures onto ingestion exceptions

        Args:
            method: HTTP method
            path: Path below the base URL (leading slash optional)
            body: JSON body, or a list of lines when ``ndjson`` is True
            params: Query string parameters
            timeout: Per-call timeout in seconds (defaults to the client timeout)
            allowed_statuses: Non-2xx statuses returned to the caller instead of raised
            ndjson: Send ``body`` as newline-delimited JSON (bulk API)
            error_cls: Exception type raised on failure

        Returns:
            requests.Response: The response

        Raises:
            ElasticsearchException: On connection errors, timeouts and unexpected statuses.
                5xx and 429 are retryable, other statuses are not.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs = {
            "params": params,
            "timeout": timeout or self.timeout,
            "auth": self._auth(),
        }
        if ndjson:
            kwargs["data"] = "".join(json.dumps(line) + "\n" for line in body).encode("utf-8")
            kwargs["headers"] = {"Content-Type": "application/x-ndjson"}
        elif body is not None:
            kwargs["json"] = body

        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.Timeout as e:
            raise error_cls(f"Elasticsearch request timed out: {method} {path}", original_error=e)
        except requests.RequestException as e:
            raise error_cls(f"Elasticsearch request failed: {method} {path}", original_error=e)

        if resp.status_code < 300 or resp.status_code in allowed_statuses:
            return resp

        retryable = resp.status_code >= 500 or resp.status_code == 429
        raise error_cls(
            f"Elasticsearch {method} {path} failed: status={resp.status_code} body={resp.text[:500]}",
            retryable=retryable
        )

    def _auth(self):
        if self.username and self.password:
            return HTTPBasicAuth(self.username, self.password)
        return None
