# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  网络请求适配器 - 基于 httpx 的统一 HTTP 接口，负责基础地址拼接、
  默认请求头、超时与错误标准化。
  Network Adapter - unified HTTP interface over httpx: base-URL joining,
  default headers, timeouts and error normalisation.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles
import httpx

from lianyu.exceptions import NetworkError, RequestTimeoutError
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 10000
BODY_METHODS = ("POST", "PUT", "PATCH")


@dataclass
class NetworkResponse:
    """Decoded response returned by the request helpers."""

    data: Any
    status: int
    status_text: str
    headers: Dict[str, str] = field(default_factory=dict)


def _decode_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class NetworkAdapter:
    """
    跨平台网络请求适配器

    Unified request interface for the chat client.

    All requests share one ``httpx.AsyncClient`` owned by the caller. Failures
    surface as :class:`NetworkError` (``status_code`` set for HTTP errors,
    ``None`` for transport failures) or :class:`RequestTimeoutError`.

    Attributes:
        client (httpx.AsyncClient): 共享 HTTP 客户端 / Shared HTTP client
        base_url (str): 相对地址的基础地址 / Base URL for relative paths
        timeout_ms (int): 默认超时（毫秒）/ Default timeout in milliseconds
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms

    def resolve_url(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        if not url.startswith("/"):
            url = "/" + url
        return self.base_url + url

    @staticmethod
    def normalize_error(error: Exception) -> NetworkError:
        """
        标准化错误信息

        Map httpx errors onto the application's network errors.
        """
        if isinstance(error, NetworkError):
            return error
        if isinstance(error, httpx.TimeoutException):
            return RequestTimeoutError(f"Request timed out: {error}")
        if isinstance(error, httpx.HTTPStatusError):
            response = error.response
            return NetworkError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        if isinstance(error, httpx.TransportError):
            return NetworkError(f"Network connection failed: {error}")
        return NetworkError(str(error))

    async def send(self, request: httpx.Request) -> httpx.Response:
        """
        原样发送请求

        Send a prepared request and return the raw response, whatever its status.
        Only transport failures raise.
        """
        try:
            return await self.client.send(request)
        except httpx.HTTPError as exc:
            raise self.normalize_error(exc) from exc

    async def request(
        self,
        url: str,
        method: str = "GET",
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> NetworkResponse:
        """
        通用请求方法

        Generic request helper.

        Args:
            url: 绝对地址或相对于 base_url 的路径 / Absolute URL or path relative to base_url
            method: HTTP 方法 / HTTP method
            data: 请求体（POST/PUT/PATCH 时发送）/ Body, sent for POST/PUT/PATCH
            headers: 额外请求头 / Extra headers
            timeout_ms: 本次请求超时 / Per-request timeout

        Returns:
            解码后的响应 / Decoded response

        Raises:
            NetworkError: 传输失败或非 2xx 响应 / Transport failure or non-2xx status
            RequestTimeoutError: 超时 / Timeout
        """
        method = method.upper()
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        timeout = (timeout_ms or self.timeout_ms) / 1000.0

        kwargs: Dict[str, Any] = {"headers": request_headers, "timeout": timeout}
        if data is not None and method in BODY_METHODS:
            if isinstance(data, (str, bytes)):
                kwargs["content"] = data
            else:
                kwargs["json"] = data

        full_url = self.resolve_url(url)
        try:
            response = await self.client.request(method, full_url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            error = self.normalize_error(exc)
            logger.error("Network request error (%s %s): %s", method, full_url, error)
            raise error from exc

        return NetworkResponse(
            data=_decode_body(response),
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
        )

    async def get(self, url: str, **options) -> NetworkResponse:
        return await self.request(url, method="GET", **options)

    async def post(self, url: str, data: Any = None, **options) -> NetworkResponse:
        return await self.request(url, method="POST", data=data, **options)

    async def put(self, url: str, data: Any = None, **options) -> NetworkResponse:
        return await self.request(url, method="PUT", data=data, **options)

    async def delete(self, url: str, **options) -> NetworkResponse:
        return await self.request(url, method="DELETE", **options)

    async def upload_file(
        self,
        url: str,
        file_path: Union[str, Path],
        name: str = "file",
        form_data: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> NetworkResponse:
        """
        文件上传

        Upload a file as multipart/form-data. No Content-Type header is set so
        httpx can add the multipart boundary.
        """
        path = Path(file_path)
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()

        full_url = self.resolve_url(url)
        try:
            response = await self.client.post(
                full_url,
                files={name: (path.name, content)},
                data=form_data or {},
                headers=headers or {},
                timeout=self.timeout_ms / 1000.0,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            error = self.normalize_error(exc)
            logger.error("File upload error (%s): %s", full_url, error)
            raise error from exc

        return NetworkResponse(
            data=_decode_body(response),
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
        )
