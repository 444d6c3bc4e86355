"""
Pipeline Errors
===============

수집 파이프라인 전 계층에서 사용하는 예외 정의
- Fetch 계층: 작업 단위(URL) 하나만 실패 처리
- Parse 계층: 콘텐츠 하나만 실패 처리 (CSV 행 단위 오류는 조용히 스킵)
- Publish 계층: 제한된 재시도 후 로깅하고 버림
"""

from typing import Optional


class MarketFeedError(Exception):
    """모든 파이프라인 예외의 기반 클래스"""


# ---------------------------------------------------------------------------
# Fetch 계층
# ---------------------------------------------------------------------------

class FetchError(MarketFeedError):
    """콘텐츠 수집 실패"""

    kind = "fetch_error"

    def __init__(self, address: str, message: str = ""):
        self.address = address
        super().__init__(message or f"{self.kind}: {address}")


class UnsupportedScheme(FetchError):
    kind = "unsupported_scheme"


class NotFound(FetchError):
    kind = "not_found"


class FetchFailed(FetchError):
    """200/404 이외의 응답, 타임아웃, 전송 오류"""

    kind = "fetch_failed"

    def __init__(self, address: str, status: Optional[int] = None, message: str = ""):
        self.status = status
        super().__init__(
            address,
            message or f"Failed to fetch {address} (status={status})",
        )


class DecodeError(FetchError):
    kind = "decode_error"

    def __init__(self, address: str, charset: str, message: str = ""):
        self.charset = charset
        super().__init__(
            address,
            message or f"Failed to decode {address} as {charset}",
        )


# ---------------------------------------------------------------------------
# Parse 계층
# ---------------------------------------------------------------------------

class ParseError(MarketFeedError):
    """콘텐츠 파싱 실패"""


class UnidentifiedLayout(ParseError):
    """주소로 거래소 CSV 레이아웃을 판별할 수 없음"""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Cannot identify CSV layout for {address}")


class MalformedDocument(ParseError):
    """문서 구조가 예상과 다름 (마커 개수, 주소 패턴 등)"""


class ConversionError(ParseError):
    """숫자 변환 실패"""

    def __init__(self, field: str, raw: str):
        self.field = field
        self.raw = raw
        super().__init__(f"Cannot convert field '{field}': {raw!r}")


# ---------------------------------------------------------------------------
# Publish / Pipeline
# ---------------------------------------------------------------------------

class PublishError(MarketFeedError):
    """재시도 소진 후 메시지 전송 실패"""

    def __init__(self, topic: str, attempts: int, message: str = ""):
        self.topic = topic
        self.attempts = attempts
        super().__init__(
            message or f"Failed to publish to {topic} after {attempts} attempt(s)"
        )


class PipelineError(MarketFeedError):
    """파이프라인 시작 불가 (큐 생성 실패 등)"""
