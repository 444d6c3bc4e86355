"""
Daily Close Strategy - 거래소 일일 종가 CSV 파서
=================================================

TWSE(MI_INDEX) / TPEx(stk_quote_download) 일괄 내보내기
- TWSE: 부호가 별도 컬럼("+" / "-")에 있음
- TPEx: 부호가 등락 필드 자체에 포함됨
"""

from dataclasses import dataclass
from typing import Optional

from .base import CsvStrategy, RecordFamily, parse_number
from .models import DailyCloseRecord


@dataclass(frozen=True)
class DailyCloseLayout:
    """일일 종가 CSV 컬럼 인덱스"""
    stock_id: int
    trade_shares: int
    transactions: int
    turnover: int
    open: int
    high: int
    low: int
    close: int
    diff: int
    diff_sign: Optional[int] = None

    @property
    def width(self) -> int:
        indices = [
            self.stock_id, self.trade_shares, self.transactions, self.turnover,
            self.open, self.high, self.low, self.close, self.diff,
        ]
        if self.diff_sign is not None:
            indices.append(self.diff_sign)
        return max(indices) + 1


TWSE_LAYOUT = DailyCloseLayout(
    stock_id=0,
    trade_shares=2,
    transactions=3,
    turnover=4,
    open=5,
    high=6,
    low=7,
    close=8,
    diff_sign=9,
    diff=10,
)

TPEX_LAYOUT = DailyCloseLayout(
    stock_id=0,
    close=2,
    diff=3,
    open=4,
    high=5,
    low=6,
    trade_shares=8,
    turnover=9,
    transactions=10,
)


class DailyCloseStrategy(CsvStrategy[DailyCloseLayout]):
    """일일 종가 전략 (CSV 한 행 = 완성 레코드)"""

    family = RecordFamily.DAILY_CLOSE

    MIN_FIELDS = 17

    twse_layout = TWSE_LAYOUT
    tpex_layout = TPEX_LAYOUT

    def is_valid_row(self, row: list[str], layout: DailyCloseLayout) -> bool:
        if len(row) < max(self.MIN_FIELDS, layout.width):
            return False
        if not self.is_stock_id(row[layout.stock_id]):
            return False
        price_fields = (layout.open, layout.high, layout.low, layout.close, layout.diff)
        return all(self.is_present(row[index]) for index in price_fields)

    def parse_row(self, row: list[str], layout: DailyCloseLayout, date: str) -> DailyCloseRecord:
        diff = parse_number(row[layout.diff], float, "price_diff")
        if layout.diff_sign is not None and "-" in row[layout.diff_sign]:
            diff = -diff

        return DailyCloseRecord(
            entity_id=self.clean_stock_id(row[layout.stock_id]),
            date=date,
            trade_shares=parse_number(row[layout.trade_shares], int, "trade_shares"),
            transactions=parse_number(row[layout.transactions], int, "transactions"),
            turnover=parse_number(row[layout.turnover], int, "turnover"),
            open=parse_number(row[layout.open], float, "open"),
            high=parse_number(row[layout.high], float, "high"),
            low=parse_number(row[layout.low], float, "low"),
            close=parse_number(row[layout.close], float, "close"),
            price_diff=diff,
        )
