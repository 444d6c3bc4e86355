"""
Parser 모듈 테스트
==================

Usage:
    pytest tests/test_parser.py -v
    pytest tests/test_parser.py -v -k "concentration"
"""

import csv

import pytest

from marketfeed.common.errors import ConversionError, MalformedDocument, UnidentifiedLayout
from marketfeed.ingestor.source_client import FetchedContent
from marketfeed.parser import (
    ConcentrationStrategy,
    DailyCloseStrategy,
    ThreePrimaryStrategy,
    Parser,
    RecordFamily,
    parse_number,
    strategy_for,
)
from marketfeed.parser.models import (
    ConcentrationFragment,
    DailyCloseRecord,
    ThreePrimaryRecord,
)


BROKER_PAGE = """<table class="hasBorder" width="100%" cellspacing="1" cellpadding="0" border="0" bgcolor="#F0F0F0"><TR>
<TD class="t4t1" nowrap><a href="/z/zc/zco/zco0/zco0.djhtm?a=3704&b=0035003300380045&BHID=5380">第一金-自由</a></TD>
<TD class="t3n1">34</TD>
<TD class="t3n1">8</TD>
<TD class="t3n1">26</TD>
<TD class="t3n1">0.32%</TD>
<TD class="t4t1" nowrap><a href="/z/zc/zco/zco0/zco0.djhtm?a=3704&b=0039003200300041&BHID=9200">凱基-板橋</a></TD>
<TD class="t3n1">2</TD>
<TD class="t3n1">36</TD>
<TD class="t3n1">34</TD>
<TD class="t3n1">0.42%</TD>
</tr>
<TR id="oScrollFoot">
<TD class="t4t1" nowrap>合計買超張數</td>
<td class="t3n1" colspan=4>2,108</td>
<TD class="t4t1" nowrap>合計賣超張數</td>
<td class="t3n1" colspan=4>1,252</td>
</TR>
<TR id="oScrollFoot">
<TD class="t4t1" nowrap>平均買超成本</td>
<td class="t3n1" colspan=4>54.59</td>
<TD class="t4t1" nowrap>平均賣超成本</td>
<td class="t3n1" colspan=4>54.32</td>
</TR>
<TR id="oScrollFoot">
<td class="t3t1" colspan=10>
【註1】上述買賣超個股僅提供排序後的前15名券商，且未計入自營商部份。<BR>
</td>
</TR></table>"""

BROKER_URL = "https://fubon-ebrokerdj.fbs.com.tw/z/zc/zco/zco_2330_2.djhtm"

TWSE_DAILY_URL = "https://www.twse.com.tw/exchangeReport/MI_INDEX?response=csv&date=20240102&type=ALLBUT0999"
TPEX_DAILY_URL = (
    "https://www.tpex.org.tw/web/stock/aftertrading/daily_close_quotes/"
    "stk_quote_download.php?l=zh-tw&d=113/01/02&s=0,asc,0"
)

TWSE_T86_URL = "https://www.twse.com.tw/rwd/zh/fund/T86?response=csv&date=20240102&selectType=ALLBUT0999"
TPEX_3I_URL = (
    "https://www.tpex.org.tw/web/stock/3insti/daily_trade/"
    "3itrade_hedge_result.php?l=zh-tw&o=csv&se=EW&t=D&d=113/01/02"
)


def csv_line(fields: list[str]) -> str:
    return ",".join(f'"{value}"' for value in fields)


def twse_daily_row(stock_id="2330", open_="10", high="11", low="9", close="10.5", sign="-", diff="0.5") -> list[str]:
    """TWSE MI_INDEX 형식 (17개 필드)"""
    return [
        stock_id, "台積電", "1,234,567", "8,910", "12,345,678,901",
        open_, high, low, close, sign, diff,
        "10.45", "12", "10.5", "30", "0.00", "",
    ]


def tpex_daily_row(stock_id="6488", close="10.5", diff="-0.5", open_="10", high="11", low="9") -> list[str]:
    """TPEx stk_quote_download 형식 (17개 필드)"""
    return [
        stock_id, "環球晶", close, diff, open_, high, low, "10.2",
        "2,000", "21,000", "15", "10.4", "1", "10.5", "2", "100", "10.00",
    ]


def content(body: str, address: str, observed_date=None) -> FetchedContent:
    return FetchedContent(
        body=body,
        source_address=address,
        content_kind="text/csv",
        observed_date=observed_date,
    )


class TestParseNumber:
    """숫자 변환 정책 테스트"""

    def test_thousands_separator(self):
        """천 단위 구분자 제거"""
        assert parse_number("1,845,919", int) == 1845919

    def test_negative_decimal_with_whitespace(self):
        """앞뒤 공백 + 음수 소수"""
        assert parse_number("-1.05 ", float) == -1.05

    def test_integer_as_float(self):
        assert parse_number(" 10 ", float) == 10.0

    @pytest.mark.parametrize("raw", [
        "", "   ", "abc", "1.2.3", "--", "1_000", "N/A",
        "nan", "NaN", "inf", "-Infinity", "1e3", "２３３０",
    ])
    def test_rejects_garbage(self, raw):
        """숫자가 아니면 ConversionError"""
        with pytest.raises(ConversionError) as exc_info:
            parse_number(raw, int, "trade_shares")

        assert exc_info.value.field == "trade_shares"
        assert exc_info.value.raw == raw

    def test_decimal_is_not_an_integer(self):
        with pytest.raises(ConversionError):
            parse_number("10.5", int)


class TestConcentrationStrategy:
    """집중도 HTML 전략 테스트"""

    def test_parse_broker_page(self):
        """4개 합계 셀 추출 및 순매수 계산"""
        strategy = ConcentrationStrategy()

        records = strategy.parse(FetchedContent(BROKER_PAGE, BROKER_URL, "text/html"))

        assert records == [
            ConcentrationFragment(
                entity_id="2330",
                page_index=1,
                net_shares=856,
                total_buy=2108,
                total_sell=1252,
                avg_buy_price=54.59,
                avg_sell_price=54.32,
            )
        ]

    def test_net_shares_can_be_negative(self):
        page = BROKER_PAGE.replace(">2,108<", ">1,000<")

        records = ConcentrationStrategy().parse(FetchedContent(page, BROKER_URL, "text/html"))

        assert records[0].net_shares == 1000 - 1252

    @pytest.mark.parametrize("token,slot", [(1, 0), (2, 1), (3, 2), (4, 3), (6, 4)])
    def test_token_to_slot(self, token, slot):
        """토큰 -> 슬롯 (6 -> 4, 40일 페이지 대체)"""
        strategy = ConcentrationStrategy()
        url = f"https://fubon-ebrokerdj.fbs.com.tw/z/zc/zco/zco_2330_{token}.djhtm"

        assert strategy.identifier(url) == ("2330", slot)
        assert ConcentrationStrategy.token_for_slot(slot) == token

    def test_token_six_never_maps_to_slot_five(self):
        assert ConcentrationStrategy.slot_for_token(6) == 4

    @pytest.mark.parametrize("url", [
        "https://fubon-ebrokerdj.fbs.com.tw/z/zc/zco/zco_2330_5.djhtm",
        "https://fubon-ebrokerdj.fbs.com.tw/z/zc/zco/zco_2330_7.djhtm",
        "https://fubon-ebrokerdj.fbs.com.tw/z/zc/zco/zco_2330_0.djhtm",
        "https://fubon-ebrokerdj.fbs.com.tw/z/zc/zco/index.djhtm",
    ])
    def test_invalid_address(self, url):
        """알 수 없는 페이지 토큰이나 패턴 불일치"""
        with pytest.raises(MalformedDocument):
            ConcentrationStrategy().parse(FetchedContent(BROKER_PAGE, url, "text/html"))

    def test_too_few_markers(self):
        """합계 셀이 4개가 아니면 MalformedDocument"""
        page = BROKER_PAGE.replace('<td class="t3n1" colspan=4>54.32</td>', "")

        with pytest.raises(MalformedDocument):
            ConcentrationStrategy().parse(FetchedContent(page, BROKER_URL, "text/html"))

    def test_too_many_markers(self):
        page = BROKER_PAGE.replace("</table>", '<tr><td class="t3n1" colspan=4>1</td></tr></table>')

        with pytest.raises(MalformedDocument):
            ConcentrationStrategy().parse(FetchedContent(page, BROKER_URL, "text/html"))

    def test_other_colspan_ignored(self):
        """colspan=4 가 아닌 t3n1 셀은 무시"""
        page = BROKER_PAGE.replace("</table>", '<tr><td class="t3n1" colspan=3>1</td></tr></table>')

        records = ConcentrationStrategy().parse(FetchedContent(page, BROKER_URL, "text/html"))

        assert records[0].total_buy == 2108

    def test_empty_document(self):
        with pytest.raises(MalformedDocument):
            ConcentrationStrategy().parse(FetchedContent("", BROKER_URL, "text/html"))

    def test_non_numeric_cell(self):
        page = BROKER_PAGE.replace(">2,108<", ">N/A<")

        with pytest.raises(ConversionError):
            ConcentrationStrategy().parse(FetchedContent(page, BROKER_URL, "text/html"))


class TestDailyCloseStrategy:
    """일일 종가 CSV 전략 테스트"""

    def test_twse_sign_column(self):
        """TWSE: 부호 컬럼에 '-' 가 있으면 음수"""
        body = csv_line(twse_daily_row())

        records = DailyCloseStrategy().parse(content(body, TWSE_DAILY_URL, "20240102"))

        assert len(records) == 1
        record = records[0]
        assert record.price_diff == -0.5
        assert record.entity_id == "2330"
        assert record.trade_shares == 1234567
        assert record.transactions == 8910
        assert record.turnover == 12345678901
        assert (record.open, record.high, record.low, record.close) == (10.0, 11.0, 9.0, 10.5)

    def test_twse_html_sign_markup(self):
        """TWSE 부호 컬럼은 HTML 조각으로 올 때도 있음"""
        row = twse_daily_row(sign="<p style= color:green>-</p>")

        records = DailyCloseStrategy().parse(content(csv_line(row), TWSE_DAILY_URL))

        assert records[0].price_diff == -0.5

    def test_twse_positive(self):
        row = twse_daily_row(sign="+")

        records = DailyCloseStrategy().parse(content(csv_line(row), TWSE_DAILY_URL))

        assert records[0].price_diff == 0.5

    def test_tpex_sign_in_diff(self):
        """TPEx: 부호가 등락 필드에 포함 (별도 컬럼 참조 안 함)"""
        records = DailyCloseStrategy().parse(content(csv_line(tpex_daily_row()), TPEX_DAILY_URL))

        assert len(records) == 1
        assert records[0].price_diff == -0.5
        assert records[0].entity_id == "6488"
        assert records[0].trade_shares == 2000
        assert records[0].turnover == 21000
        assert records[0].transactions == 15

    def test_both_layouts_with_supplied_date(self):
        """두 거래소 CSV -> 날짜가 주입된 레코드 2개"""
        strategy = DailyCloseStrategy()

        twse = strategy.parse(content(csv_line(twse_daily_row()), TWSE_DAILY_URL, "20240102"))
        tpex = strategy.parse(content(csv_line(tpex_daily_row()), TPEX_DAILY_URL, "20240102"))

        records = twse + tpex
        assert len(records) == 2
        assert all(isinstance(r, DailyCloseRecord) for r in records)
        assert [r.date for r in records] == ["20240102", "20240102"]
        assert [r.price_diff for r in records] == [-0.5, -0.5]

    def test_noise_rows_skipped(self):
        """헤더/푸터/무효 행은 조용히 제외"""
        body = "\n".join([
            '"113年01月02日 每日收盤行情(全部(不含權證、牛熊證))"',
            csv_line(["證券代號", "證券名稱", "成交股數", "成交筆數", "成交金額", "開盤價", "最高價",
                      "最低價", "收盤價", "漲跌(+/-)", "漲跌價差", "最後揭示買價", "最後揭示買量",
                      "最後揭示賣價", "最後揭示賣量", "本益比", ""]),
            csv_line(twse_daily_row(stock_id="2330")),
            csv_line(twse_daily_row(stock_id="00878")),          # 5자리 ETF
            csv_line(twse_daily_row(stock_id="2317", open_="--", high="--", low="--", close="--")),
            csv_line(twse_daily_row(stock_id="2454", diff="---")),
            csv_line(twse_daily_row(stock_id="1101", open_="")),
            csv_line(twse_daily_row(stock_id="2603")[:12]),      # 필드 부족
            '"備註:"',
        ])

        records = DailyCloseStrategy().parse(content(body, TWSE_DAILY_URL))

        assert [r.entity_id for r in records] == ["2330"]

    def test_conversion_failure_drops_row_only(self):
        """변환 실패는 해당 행만 제외"""
        body = "\n".join([
            csv_line(twse_daily_row(stock_id="2330")),
            csv_line(twse_daily_row(stock_id="2317", open_="abc")),
            csv_line(twse_daily_row(stock_id="2454")),
        ])

        records = DailyCloseStrategy().parse(content(body, TWSE_DAILY_URL))

        assert [r.entity_id for r in records] == ["2330", "2454"]

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity", "1e3"])
    def test_non_finite_price_drops_row(self, value):
        """nan / inf / 지수 표기 가격은 행 제외 (JSON 으로 전송 불가)"""
        body = "\n".join([
            csv_line(twse_daily_row(stock_id="2330", open_=value)),
            csv_line(twse_daily_row(stock_id="2454")),
        ])

        records = DailyCloseStrategy().parse(content(body, TWSE_DAILY_URL))

        assert [r.entity_id for r in records] == ["2454"]
        assert "NaN" not in records[0].to_json()

    def test_full_width_stock_id_rejected(self):
        """전각 숫자 종목코드는 제외"""
        body = "\n".join([
            csv_line(twse_daily_row(stock_id="２３３０")),
            csv_line(twse_daily_row(stock_id="2³30")),
            csv_line(twse_daily_row(stock_id="2454")),
        ])

        records = DailyCloseStrategy().parse(content(body, TWSE_DAILY_URL))

        assert [r.entity_id for r in records] == ["2454"]

    def test_unreadable_row_skipped(self):
        """필드 크기 제한을 넘는 행만 제외하고 나머지는 파싱"""
        oversized = twse_daily_row(stock_id="2317")
        oversized[1] = "x" * (csv.field_size_limit() + 1)
        body = "\n".join([
            csv_line(twse_daily_row(stock_id="2330")),
            csv_line(oversized),
            csv_line(twse_daily_row(stock_id="2454")),
        ])

        records = DailyCloseStrategy().parse(content(body, TWSE_DAILY_URL))

        assert [r.entity_id for r in records] == ["2330", "2454"]

    def test_excel_style_stock_id(self):
        """="2330" 형태의 종목코드 정리"""
        row = twse_daily_row()
        body = '="2330",' + csv_line(row[1:])

        records = DailyCloseStrategy().parse(content(body, TWSE_DAILY_URL))

        assert records[0].entity_id == "2330"

    def test_unidentified_layout(self):
        with pytest.raises(UnidentifiedLayout):
            DailyCloseStrategy().parse(content(csv_line(twse_daily_row()), "https://example.com/daily.csv"))

    def test_missing_date_is_empty(self):
        records = DailyCloseStrategy().parse(content(csv_line(twse_daily_row()), TWSE_DAILY_URL))

        assert records[0].date == ""


class TestThreePrimaryStrategy:
    """삼대법인 CSV 전략 테스트"""

    @staticmethod
    def twse_row(stock_id="2330", foreign="1,000", trust="-200", dealer="300", hedging="-40") -> list[str]:
        row = [""] * 19
        row[0], row[1] = stock_id, "台積電"
        row[4], row[10], row[14], row[17] = foreign, trust, dealer, hedging
        return row

    @staticmethod
    def tpex_row(stock_id="6488", foreign="500", trust="0", dealer="-10", hedging="7") -> list[str]:
        row = ["0"] * 24
        row[0], row[1] = stock_id, "環球晶"
        row[10], row[13], row[16], row[19] = foreign, trust, dealer, hedging
        return row

    def test_twse_layout(self):
        records = ThreePrimaryStrategy().parse(content(csv_line(self.twse_row()), TWSE_T86_URL, "20240102"))

        assert records == [
            ThreePrimaryRecord(
                entity_id="2330",
                date="20240102",
                foreign_shares=1000,
                trust_shares=-200,
                dealer_shares=300,
                hedging_shares=-40,
            )
        ]

    def test_tpex_layout(self):
        records = ThreePrimaryStrategy().parse(content(csv_line(self.tpex_row()), TPEX_3I_URL, "20240102"))

        assert len(records) == 1
        assert records[0].foreign_shares == 500
        assert records[0].dealer_shares == -10
        assert records[0].hedging_shares == 7

    def test_short_rows_skipped(self):
        """19개 미만, 또는 레이아웃보다 좁은 행은 제외"""
        strategy = ThreePrimaryStrategy()

        assert strategy.parse(content(csv_line(self.twse_row()[:18]), TWSE_T86_URL)) == []
        assert strategy.parse(content(csv_line(self.tpex_row()[:19]), TPEX_3I_URL)) == []

    def test_each_share_field_gated(self):
        """네 필드 각각 유효성 검사"""
        body = "\n".join([
            csv_line(self.twse_row(stock_id="2330")),
            csv_line(self.twse_row(stock_id="2317", trust="")),
            csv_line(self.twse_row(stock_id="2454", hedging="---")),
            csv_line(self.twse_row(stock_id="abcd")),
        ])

        records = ThreePrimaryStrategy().parse(content(body, TWSE_T86_URL))

        assert [r.entity_id for r in records] == ["2330"]

    def test_unidentified_layout(self):
        with pytest.raises(UnidentifiedLayout):
            ThreePrimaryStrategy().parse(content(csv_line(self.twse_row()), "file:///tmp/t86.csv"))


class TestParser:
    """Parser 어댑터 및 전략 집합 테스트"""

    def test_parser_delegates(self):
        parser = Parser(ConcentrationStrategy())

        records = parser.parse(FetchedContent(BROKER_PAGE, BROKER_URL, "text/html"))

        assert records[0].net_shares == 856

    def test_parser_propagates_errors(self):
        parser = Parser(DailyCloseStrategy())

        with pytest.raises(UnidentifiedLayout):
            parser.parse(content("", "https://example.com"))

    @pytest.mark.parametrize("family,cls", [
        (RecordFamily.CONCENTRATION, ConcentrationStrategy),
        (RecordFamily.DAILY_CLOSE, DailyCloseStrategy),
        (RecordFamily.THREE_PRIMARY, ThreePrimaryStrategy),
    ])
    def test_strategy_for(self, family, cls):
        strategy = strategy_for(family)

        assert isinstance(strategy, cls)
        assert strategy.family is family
