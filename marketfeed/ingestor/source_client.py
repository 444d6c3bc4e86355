"""
Source Client - httpx Async Fetcher
===================================

주소 하나에 대한 단일 콘텐츠 수집기
- file:// 또는 http(s):// 만 지원
- content-type 으로 문자셋 결정 (MS950/Big5 또는 UTF-8)
- 거래소 도메인(TWSE/TPEx)은 프록시를 우회
- 재시도 없음: 실패는 호출자가 로깅하고 버림
"""

import asyncio
import time
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

import httpx

from marketfeed.common.errors import (
    FetchError,
    UnsupportedScheme,
    NotFound,
    FetchFailed,
    DecodeError,
)
from marketfeed.common.kafka_config import get_config, FetcherConfig, ProxyConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedContent:
    """수집 결과 (파서로 한 번만 전달됨)"""
    body: str
    source_address: str
    content_kind: str
    observed_date: Optional[str] = None

    def with_date(self, observed_date: str) -> "FetchedContent":
        """날짜를 주입한 사본 반환 (거래소 페이지는 날짜를 포함하지 않음)"""
        return replace(self, observed_date=observed_date)


@dataclass
class SourceClientStats:
    """Source Client 통계"""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_bytes: int = 0
    total_fetch_time_ms: float = 0.0
    start_time: float = field(default_factory=time.time)

    # 에러 유형별 카운트
    errors_by_kind: dict = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        return self.successful_requests / self.total_requests if self.total_requests > 0 else 0

    @property
    def average_fetch_time_ms(self) -> float:
        return self.total_fetch_time_ms / self.successful_requests if self.successful_requests > 0 else 0

    def record_success(self, fetch_time_ms: float, raw_bytes: int):
        self.total_requests += 1
        self.successful_requests += 1
        self.total_fetch_time_ms += fetch_time_ms
        self.total_bytes += raw_bytes

    def record_failure(self, kind: str):
        self.total_requests += 1
        self.failed_requests += 1
        self.errors_by_kind[kind] = self.errors_by_kind.get(kind, 0) + 1

    def __str__(self) -> str:
        return (
            f"SourceClientStats("
            f"total={self.total_requests:,}, "
            f"success={self.successful_requests:,}, "
            f"failed={self.failed_requests:,}, "
            f"rate={self.success_rate:.1%}, "
            f"bytes={self.total_bytes:,}, "
            f"avg_time={self.average_fetch_time_ms:.0f}ms)"
        )


def uses_direct_route(address: str) -> bool:
    """거래소 도메인이면 프록시를 거치지 않음"""
    return any(host in address for host in SourceClient.DIRECT_HOSTS)


def select_charset(content_type: str) -> str:
    """content-type 헤더로 디코딩 문자셋 결정"""
    lowered = content_type.lower()
    if any(marker in lowered for marker in SourceClient.LEGACY_CHARSET_MARKERS):
        return SourceClient.LEGACY_CHARSET
    return "utf-8"


class SourceClient:
    """
    단일 주소 수집 클라이언트

    특징:
    - httpx AsyncClient 두 개 (프록시 / 직접 연결)
    - 호출 단위 타임아웃 (타임아웃은 FetchFailed)
    - 외부에서 클라이언트 주입 가능 (테스트용 MockTransport)
    """

    DIRECT_HOSTS = ("www.twse.com.tw", "www.tpex.org.tw")
    LEGACY_CHARSET_MARKERS = ("ms950", "big5", "csv")
    # MS950 = 마이크로소프트판 Big5
    LEGACY_CHARSET = "cp950"

    FILE_PREFIX = "file://"
    HTTP_PREFIXES = ("http://", "https://")

    def __init__(
        self,
        config: Optional[FetcherConfig] = None,
        proxy: Optional[ProxyConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        direct_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            config: Fetcher 설정 (없으면 기본값 사용)
            proxy: 프록시 설정 (host 가 없으면 프록시 미사용)
            client: 프록시 경유 클라이언트 (주입 시 소유권은 호출자)
            direct_client: 직접 연결 클라이언트 (주입 시 소유권은 호출자)
        """
        self.config = config or get_config().fetcher
        self.proxy = proxy or get_config().proxy

        self._client = client
        self._direct_client = direct_client
        self._owns_clients = client is None and direct_client is None

        self.stats = SourceClientStats()

        logger.info(
            f"SourceClient initialized: "
            f"timeout={self.config.request_timeout}s, "
            f"proxy={'on' if self.proxy.url else 'off'}"
        )

    async def start(self) -> None:
        """클라이언트 생성"""
        if self._owns_clients:
            timeout = httpx.Timeout(self.config.request_timeout, connect=10.0)
            self._client = httpx.AsyncClient(
                timeout=timeout,
                proxy=self.proxy.url,
                follow_redirects=True,
            )
            self._direct_client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
            )
        elif self._direct_client is None:
            self._direct_client = self._client
        elif self._client is None:
            self._client = self._direct_client

        self.stats = SourceClientStats()
        logger.info("SourceClient started")

    async def stop(self) -> None:
        """클라이언트 종료 (직접 생성한 경우만)"""
        if self._owns_clients:
            for client in (self._client, self._direct_client):
                if client is not None:
                    await client.aclose()
            self._client = None
            self._direct_client = None

        logger.info(f"SourceClient stopped. {self.stats}")

    async def __aenter__(self) -> "SourceClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def fetch(self, address: str) -> FetchedContent:
        """
        단일 주소 수집

        Args:
            address: file:// 또는 http(s):// 로 시작하는 주소

        Returns:
            FetchedContent 객체

        Raises:
            FetchError: UnsupportedScheme / NotFound / FetchFailed / DecodeError
        """
        start_time = time.time()

        try:
            if address.startswith(self.FILE_PREFIX):
                content, raw_size = await self._fetch_file(address)
            elif address.startswith(self.HTTP_PREFIXES):
                content, raw_size = await self._fetch_url(address)
            else:
                raise UnsupportedScheme(
                    address, f"Only http/https/file are supported: {address}"
                )
        except FetchError as e:
            self.stats.record_failure(e.kind)
            raise

        self.stats.record_success((time.time() - start_time) * 1000, raw_size)
        return content

    def _client_for(self, address: str) -> httpx.AsyncClient:
        client = self._direct_client if uses_direct_route(address) else self._client
        if client is None:
            raise RuntimeError("SourceClient not started. Call start() first.")
        return client

    async def _fetch_url(self, address: str) -> tuple[FetchedContent, int]:
        client = self._client_for(address)

        try:
            response = await client.get(address)
        except httpx.TimeoutException as e:
            raise FetchFailed(address, message=f"Timeout fetching {address}: {e}") from e
        except httpx.HTTPError as e:
            raise FetchFailed(address, message=f"Error fetching {address}: {e}") from e

        if response.status_code == 404:
            raise NotFound(address, f"Not found: {address}")
        if response.status_code != 200:
            raise FetchFailed(address, status=response.status_code)

        content_type = response.headers.get("content-type", "")
        charset = select_charset(content_type)
        raw = response.content

        try:
            body = raw.decode(charset)
        except UnicodeDecodeError as e:
            raise DecodeError(address, charset, f"Failed to decode {address} as {charset}: {e}") from e

        logger.debug(f"Fetched {address}: {len(raw):,} bytes, content-type={content_type!r}")

        return FetchedContent(
            body=body,
            source_address=address,
            content_kind=content_type,
        ), len(raw)

    async def _fetch_file(self, address: str) -> tuple[FetchedContent, int]:
        path = Path(address[len(self.FILE_PREFIX):])

        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise NotFound(address, f"File not found: {path}") from e
        except OSError as e:
            raise FetchFailed(address, message=f"Error reading {path}: {e}") from e

        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(address, "utf-8") from e

        return FetchedContent(
            body=body,
            source_address=address,
            content_kind="text/plain",
        ), len(raw)

    def get_stats(self) -> dict:
        """현재 통계 반환"""
        return {
            'total_requests': self.stats.total_requests,
            'successful_requests': self.stats.successful_requests,
            'failed_requests': self.stats.failed_requests,
            'success_rate': self.stats.success_rate,
            'average_fetch_time_ms': self.stats.average_fetch_time_ms,
            'total_bytes': self.stats.total_bytes,
            'errors_by_kind': self.stats.errors_by_kind,
        }
