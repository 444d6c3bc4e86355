"""
Parser Base - 공통 파싱 인터페이스
==================================

모든 파싱 전략의 기반
- ParseStrategy: 전략 추상 클래스 (콘텐츠 -> 레코드 리스트)
- Parser: 전략 하나를 콘텐츠에 적용하는 얇은 어댑터
- parse_number: 천 단위 구분자/공백 허용 숫자 변환
- CsvStrategy: 거래소별 컬럼 레이아웃 기반 CSV 전략 공통부
"""

import csv
import io
import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Generic, Iterator, Optional, TypeVar

from marketfeed.common.errors import ConversionError, UnidentifiedLayout
from marketfeed.ingestor.source_client import FetchedContent
from .models import ParsedRecord

logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)
L = TypeVar("L")

# 부호 + 정수 또는 소수 (nan, inf, 지수 표기 불가)
NUMBER_PATTERN = re.compile(r"[+-]?\d+(\.\d+)?")


class RecordFamily(Enum):
    """레코드 유형 (전략 집합은 고정)"""
    CONCENTRATION = "concentration"
    DAILY_CLOSE = "daily_close"
    THREE_PRIMARY = "three_primary"


def parse_number(text: str, kind: type[N], field: str = "value") -> N:
    """
    숫자 문자열 변환

    Args:
        text: 원본 문자열 (예: "1,845,919", "-1.05 ")
        kind: int 또는 float
        field: 에러 메시지에 쓸 필드 이름

    Raises:
        ConversionError: 변환 불가
    """
    cleaned = text.strip().replace(",", "")
    # int()/float() 는 "1_000", "nan", "1e3" 도 받아들임
    if not cleaned.isascii() or not NUMBER_PATTERN.fullmatch(cleaned):
        raise ConversionError(field, text)
    try:
        return kind(cleaned)
    except ValueError as e:
        raise ConversionError(field, text) from e


class ParseStrategy(ABC):
    """
    파싱 전략 추상 클래스

    서브클래스에서 구현해야 할 메서드:
    - parse(): FetchedContent 를 레코드 리스트로 변환
    """

    family: RecordFamily

    @abstractmethod
    def parse(self, content: FetchedContent) -> list[ParsedRecord]:
        """
        Raises:
            ParseError: 콘텐츠 전체를 해석할 수 없음
        """


class Parser:
    """전략 하나를 콘텐츠 하나에 바인딩"""

    def __init__(self, strategy: ParseStrategy):
        self.strategy = strategy

    def parse(self, content: FetchedContent) -> list[ParsedRecord]:
        return self.strategy.parse(content)


class CsvStrategy(ParseStrategy, Generic[L]):
    """
    거래소 CSV 전략 공통부

    - 주소의 "twse" / "tpex" 로 레이아웃 선택
    - 행 단위 유효성 검사 실패/변환 실패는 해당 행만 조용히 제외
      (CSV 내보내기에는 헤더/푸터 잡음이 섞여 있음)
    """

    # 최소 필드 수
    MIN_FIELDS = 0
    INVALID_SENTINEL = "---"

    twse_layout: L
    tpex_layout: L

    def layout_for(self, address: str) -> L:
        if "twse" in address:
            return self.twse_layout
        if "tpex" in address:
            return self.tpex_layout
        raise UnidentifiedLayout(address)

    def parse(self, content: FetchedContent) -> list[ParsedRecord]:
        layout = self.layout_for(content.source_address)
        date = content.observed_date or ""

        records = []
        skipped = 0
        for row in self.read_rows(content.body):
            if row is None or not self.is_valid_row(row, layout):
                skipped += 1
                continue
            try:
                records.append(self.parse_row(row, layout, date))
            except ConversionError:
                skipped += 1

        logger.debug(
            f"{self.__class__.__name__}: {len(records)} records, "
            f"{skipped} rows skipped from {content.source_address}"
        )
        return records

    @staticmethod
    def read_rows(body: str) -> Iterator[Optional[list[str]]]:
        """행 단위 읽기 (읽을 수 없는 행은 None)"""
        reader = csv.reader(io.StringIO(body))
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                logger.debug(f"Unreadable CSV row at line {reader.line_num}: {e}")
                yield None
                continue
            yield row

    @staticmethod
    def clean_stock_id(raw: str) -> str:
        """TWSE 내보내기의 ="0050" 형태 정리"""
        return raw.strip().lstrip("=").strip('"').strip()

    @classmethod
    def is_stock_id(cls, raw: str) -> bool:
        stock_id = cls.clean_stock_id(raw)
        return len(stock_id) == 4 and stock_id.isascii() and stock_id.isdigit()

    @classmethod
    def is_present(cls, raw: Optional[str]) -> bool:
        if raw is None:
            return False
        value = raw.strip()
        return bool(value) and value != cls.INVALID_SENTINEL

    @abstractmethod
    def is_valid_row(self, row: list[str], layout: L) -> bool:
        ...

    @abstractmethod
    def parse_row(self, row: list[str], layout: L, date: str) -> ParsedRecord:
        ...
