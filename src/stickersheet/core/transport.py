"""Transports that submit a generation request and open the response stream.

Two transports share one contract, ``open_stream(request) -> httpx.Response``:
the returned response has a success status, its body has not been read yet,
and the caller must ``aclose()`` it.

:class:`UpstreamTransport`
    Talks to the chat-completions provider directly.  It checks the access
    password against the server-held secret, builds the multimodal payload,
    normalises the endpoint URL and injects the bearer key.  The API server
    proxies through this transport.

:class:`GatewayTransport`
    Posts the inbound JSON contract (``password``, ``imageBase64``,
    ``mimeType``, ``mode``) to a running Sticker Sheet Studio server and maps
    its JSON error envelopes back to typed errors.
"""

from __future__ import annotations

import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from stickersheet.core.codec import encode_to_transport
from stickersheet.core.config import StickerSheetConfig
from stickersheet.core.errors import AuthError, ServerConfigError, TransportError, UpstreamError
from stickersheet.core.instructions import GenerationMode, get_instruction, resolve_mode

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
GENERATE_PATH = "/api/generate"


@dataclass(frozen=True)
class GenerationRequest:
    """One user-triggered generation.

    Attributes:
        image_base64: Base64 payload of the reference photo (no data-URI
            prefix).
        mime_type: MIME type of the reference photo.
        mode: Which instruction template to use.
        credential: Access password presented to the server.
    """

    image_base64: str
    mime_type: str
    mode: GenerationMode
    credential: str

    @classmethod
    def from_image_bytes(
        cls,
        image: bytes,
        mime_type: str,
        mode: GenerationMode | str,
        credential: str,
    ) -> "GenerationRequest":
        """Build a request from raw image bytes, validating them first."""
        return cls(
            image_base64=encode_to_transport(image),
            mime_type=mime_type,
            mode=resolve_mode(mode),
            credential=credential,
        )

    def to_gateway_payload(self) -> dict[str, str]:
        return {
            "password": self.credential,
            "imageBase64": self.image_base64,
            "mimeType": self.mime_type,
            "mode": self.mode.value,
        }


class Transport(Protocol):
    async def open_stream(self, request: GenerationRequest) -> httpx.Response:
        ...


def normalize_upstream_url(base_url: str) -> str:
    """Return the chat-completions endpoint for a provider base URL.

    Trailing slashes are dropped.  A URL already ending in
    ``/chat/completions`` is kept, one ending in ``/v1`` gets
    ``/chat/completions``, anything else gets ``/v1/chat/completions``.
    """
    url = base_url.strip().rstrip("/")
    if url.endswith(CHAT_COMPLETIONS_PATH):
        return url
    if url.endswith("/v1"):
        return url + CHAT_COMPLETIONS_PATH
    return url + "/v1" + CHAT_COMPLETIONS_PATH


def build_chat_payload(model: str, instruction: str, image_base64: str, mime_type: str) -> dict[str, Any]:
    """Build the single-message multimodal chat-completions payload."""
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": instruction},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{image_base64}"},
                    },
                ],
            }
        ],
        "stream": True,
    }


def check_access(password: str | None, config: StickerSheetConfig) -> str:
    """Authenticate a caller and return the upstream API key.

    The checks run in a fixed order so that nothing reaches the provider
    unless every one of them passes.

    Raises:
        ServerConfigError: If the access password or the API key is not
            configured.
        AuthError: If ``password`` does not match the configured secret.
    """
    if not config.access_password:
        raise ServerConfigError("Server misconfigured: ACCESS_PASSWORD not set")
    if not hmac.compare_digest((password or "").encode("utf-8"), config.access_password.encode("utf-8")):
        logger.warning("Rejected generation request: invalid password")
        raise AuthError("Unauthorized: Invalid Password")
    if not config.gemini_api_key:
        raise ServerConfigError("Server misconfigured: GEMINI_API_KEY not set")
    return config.gemini_api_key


def build_timeout(config: StickerSheetConfig) -> httpx.Timeout:
    return httpx.Timeout(config.request_timeout, connect=config.connect_timeout)


async def _send_streaming(client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
    try:
        return await client.send(request, stream=True)
    except httpx.HTTPError as e:
        raise TransportError(f"Request to {request.url} failed: {e}") from e


async def _read_error_body(response: httpx.Response) -> str:
    try:
        await response.aread()
        return response.text
    finally:
        await response.aclose()


class UpstreamTransport:
    """Direct transport to the chat-completions provider."""

    def __init__(self, config: StickerSheetConfig, client: httpx.AsyncClient) -> None:
        self._config = config
        self._client = client

    @property
    def endpoint(self) -> str:
        return normalize_upstream_url(self._config.api_base_url)

    async def open_stream(self, request: GenerationRequest) -> httpx.Response:
        api_key = check_access(request.credential, self._config)

        payload = build_chat_payload(
            self._config.model_id,
            get_instruction(request.mode),
            request.image_base64,
            request.mime_type,
        )
        http_request = self._client.build_request(
            "POST",
            self.endpoint,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
            timeout=build_timeout(self._config),
        )
        logger.info(f"Requesting {request.mode.value} from {self.endpoint} (model={self._config.model_id})")

        response = await _send_streaming(self._client, http_request)
        if response.is_error:
            body = await _read_error_body(response)
            logger.warning(f"Upstream returned {response.status_code}")
            raise UpstreamError(response.status_code, body)
        return response


class GatewayTransport:
    """Client-side transport posting to a Sticker Sheet Studio server."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient,
        *,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + GENERATE_PATH
        self._client = client
        self._timeout = timeout

    async def open_stream(self, request: GenerationRequest) -> httpx.Response:
        kwargs: dict[str, Any] = {"json": request.to_gateway_payload()}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        http_request = self._client.build_request("POST", self._url, **kwargs)

        response = await _send_streaming(self._client, http_request)
        if response.is_error:
            body = await _read_error_body(response)
            raise _gateway_error(response.status_code, body)
        return response


def _gateway_error(status: int, body: str) -> Exception:
    """Map a gateway error envelope back to its typed error."""
    try:
        envelope = json.loads(body)
    except json.JSONDecodeError:
        envelope = {}
    if not isinstance(envelope, dict):
        envelope = {}

    message = envelope.get("error") or f"Request failed ({status})"
    kind = envelope.get("kind")
    if status == 401 or kind == AuthError.__name__:
        return AuthError(message)
    if kind == ServerConfigError.__name__:
        return ServerConfigError(message)
    details = envelope.get("details")
    return UpstreamError(status, details if isinstance(details, str) else body, message)
