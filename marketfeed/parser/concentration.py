"""
Concentration Strategy - 브로커 집중도 HTML 파서
===============================================

브로커 페이지(zco_<종목>_<기간>.djhtm)에서 합계 4개 셀 추출
- td.t3n1[colspan=4]: 합계매수, 합계매도, 평균매수가, 평균매도가 (순서 고정)
- 정확히 4개가 아니면 MalformedDocument
"""

import re
import logging

from bs4 import BeautifulSoup

from marketfeed.common.errors import MalformedDocument
from marketfeed.ingestor.source_client import FetchedContent
from .base import ParseStrategy, RecordFamily, parse_number
from .models import CONCENTRATION_PAGES, ConcentrationFragment

logger = logging.getLogger(__name__)


class ConcentrationStrategy(ParseStrategy):
    """
    BeautifulSoup 기반 집중도 페이지 파서

    주소 토큰 -> 슬롯:
    - 1, 2, 3, 4 -> 0, 1, 2, 3
    - 6 -> 4 (40일 페이지는 건너뛰고 60일 페이지로 대체)
    """

    family = RecordFamily.CONCENTRATION

    IDENTIFIER_PATTERN = re.compile(r"zco_(\d+)_(\d+)")
    AGGREGATE_SELECTOR = 'td.t3n1[colspan="4"]'
    EXPECTED_CELLS = 4

    # 60일 페이지 토큰
    BACKFILL_TOKEN = 6
    PAGE_TOKENS = (1, 2, 3, 4, BACKFILL_TOKEN)

    @classmethod
    def slot_for_token(cls, token: int) -> int:
        if token == cls.BACKFILL_TOKEN:
            return CONCENTRATION_PAGES - 1
        return token - 1

    @classmethod
    def token_for_slot(cls, slot: int) -> int:
        if slot == CONCENTRATION_PAGES - 1:
            return cls.BACKFILL_TOKEN
        return slot + 1

    def identifier(self, address: str) -> tuple[str, int]:
        """주소에서 (종목코드, 슬롯) 추출"""
        match = self.IDENTIFIER_PATTERN.search(address)
        if not match:
            raise MalformedDocument(f"Invalid concentration address: {address}")

        stock_id = match.group(1)
        token = int(match.group(2))
        if token not in self.PAGE_TOKENS:
            raise MalformedDocument(f"Unexpected page token {token} in {address}")

        return stock_id, self.slot_for_token(token)

    def parse(self, content: FetchedContent) -> list[ConcentrationFragment]:
        stock_id, slot = self.identifier(content.source_address)

        soup = BeautifulSoup(content.body, 'lxml')
        values = [
            cell.get_text(strip=True)
            for cell in soup.select(self.AGGREGATE_SELECTOR)
        ]

        if len(values) != self.EXPECTED_CELLS:
            raise MalformedDocument(
                f"Expected {self.EXPECTED_CELLS} aggregate cells, "
                f"found {len(values)} in {content.source_address}"
            )

        total_buy = parse_number(values[0], int, "total_buy")
        total_sell = parse_number(values[1], int, "total_sell")
        avg_buy_price = parse_number(values[2], float, "avg_buy_price")
        avg_sell_price = parse_number(values[3], float, "avg_sell_price")

        return [
            ConcentrationFragment(
                entity_id=stock_id,
                page_index=slot,
                net_shares=total_buy - total_sell,
                total_buy=total_buy,
                total_sell=total_sell,
                avg_buy_price=avg_buy_price,
                avg_sell_price=avg_sell_price,
            )
        ]
