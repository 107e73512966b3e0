"""HTTP client for the CMS API."""

import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import requests

from integrations.auth import auth_headers, get_api_token
from integrations.errors import ApiError, AuthenticationExpired
from processing import MediaBlob
from processing.batch import compress_batch, compress_media


DEFAULT_BASE_URL = "http://localhost:3001"


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Callable[[], Optional[str]] = get_api_token,
        on_auth_expired: Optional[Callable[[], None]] = None,
        timeout: float = 20,
        session: Optional[requests.Session] = None,
    ):
        base_url = base_url or os.environ.get("CMS_API_BASE_URL", DEFAULT_BASE_URL)
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.on_auth_expired = on_auth_expired
        self.timeout = timeout
        self.session = session or requests.Session()

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        json_body: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[List[Tuple[str, Tuple[str, bytes, str]]]] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        An empty body gives None; a body that is not JSON is returned as text.

        Raises:
            AuthenticationExpired: on HTTP 401/403
            ApiError: on any other failed request
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        request_headers = {**auth_headers(self.token_provider()), **(headers or {})}

        try:
            response = self.session.request(
                method.upper(),
                url,
                json=json_body,
                data=data,
                files=files,
                params=params,
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logging.error("Request to %s failed: %s", url, str(exc))
            raise ApiError(str(exc)) from exc

        if response.status_code in (401, 403):
            logging.warning("API rejected token for %s %s", method.upper(), url)
            if self.on_auth_expired:
                self.on_auth_expired()
            raise AuthenticationExpired(response.status_code)

        if not response.ok:
            raise ApiError(_error_message(response), response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def upload_media(
        self,
        endpoint: str,
        files: Mapping[str, Sequence[MediaBlob]],
        fields: Optional[Mapping[str, Any]] = None,
        method: str = "POST",
        compress: Callable[[MediaBlob], MediaBlob] = compress_media,
    ) -> Any:
        """Compress every file and submit them as one multipart form.

        Files keep their order within each field, so index-paired fields such
        as modifiedImages/modifiedImageIndices stay aligned.
        """
        multipart: List[Tuple[str, Tuple[str, bytes, str]]] = []
        for field_name, blobs in files.items():
            for blob in compress_batch(blobs, compress):
                multipart.append((field_name, (blob.filename, blob.data, blob.mime_type)))

        logging.info("Uploading %d files to %s", len(multipart), endpoint)
        return self.request(endpoint, method=method, data=fields, files=multipart)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        if message:
            return str(message)
    return response.text or f"HTTP {response.status_code}"
