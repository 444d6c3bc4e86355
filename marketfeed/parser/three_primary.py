"""
Three Primary Strategy - 삼대법인 매매 CSV 파서
===============================================

TWSE(T86) / TPEx(3itrade_hedge_result) 일괄 내보내기
- 외국인 / 투신 / 자영상 / 자영상(헤지) 순매수 주식수
- 부호 처리 없음, 가격 필드 없음
"""

from dataclasses import dataclass

from .base import CsvStrategy, RecordFamily, parse_number
from .models import ThreePrimaryRecord


@dataclass(frozen=True)
class ThreePrimaryLayout:
    """삼대법인 CSV 컬럼 인덱스"""
    stock_id: int
    foreign_shares: int
    trust_shares: int
    dealer_shares: int
    hedging_shares: int

    @property
    def share_fields(self) -> tuple[int, int, int, int]:
        return (
            self.foreign_shares,
            self.trust_shares,
            self.dealer_shares,
            self.hedging_shares,
        )

    @property
    def width(self) -> int:
        return max(self.stock_id, *self.share_fields) + 1


TWSE_LAYOUT = ThreePrimaryLayout(
    stock_id=0,
    foreign_shares=4,
    trust_shares=10,
    dealer_shares=14,
    hedging_shares=17,
)

TPEX_LAYOUT = ThreePrimaryLayout(
    stock_id=0,
    foreign_shares=10,
    trust_shares=13,
    dealer_shares=16,
    hedging_shares=19,
)


class ThreePrimaryStrategy(CsvStrategy[ThreePrimaryLayout]):
    """삼대법인 전략 (CSV 한 행 = 완성 레코드)"""

    family = RecordFamily.THREE_PRIMARY

    MIN_FIELDS = 19

    twse_layout = TWSE_LAYOUT
    tpex_layout = TPEX_LAYOUT

    def is_valid_row(self, row: list[str], layout: ThreePrimaryLayout) -> bool:
        if len(row) < max(self.MIN_FIELDS, layout.width):
            return False
        if not self.is_stock_id(row[layout.stock_id]):
            return False
        return all(self.is_present(row[index]) for index in layout.share_fields)

    def parse_row(self, row: list[str], layout: ThreePrimaryLayout, date: str) -> ThreePrimaryRecord:
        return ThreePrimaryRecord(
            entity_id=self.clean_stock_id(row[layout.stock_id]),
            date=date,
            foreign_shares=parse_number(row[layout.foreign_shares], int, "foreign_shares"),
            trust_shares=parse_number(row[layout.trust_shares], int, "trust_shares"),
            dealer_shares=parse_number(row[layout.dealer_shares], int, "dealer_shares"),
            hedging_shares=parse_number(row[layout.hedging_shares], int, "hedging_shares"),
        )
