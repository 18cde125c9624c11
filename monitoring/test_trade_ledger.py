"""Tests for the CSV trade ledger."""
import pytest

from execution.errors import LedgerError
from models import LEDGER_HEADER, Market, TradeRecord
from monitoring.trade_ledger import TradeLedger


@pytest.fixture
def market():
    return Market(
        slug="eth-updown-15m-1771140600",
        title="Ethereum Up or Down - February 15, 2:30AM-2:45AM ET",
        yes_token="1",
        no_token="2",
        close_time=1771141500.0,
    )


class TestTradeLedger:

    def test_header_written_once(self, tmp_path, market):
        path = tmp_path / "ETH_trading_log.csv"
        ledger = TradeLedger(path)
        ledger.append(TradeRecord.for_market(market))
        ledger.append(TradeRecord.for_market(market))

        lines = path.read_text().splitlines()
        assert lines[0] == ",".join(LEDGER_HEADER)
        assert len(lines) == 3

    def test_header_added_to_empty_file(self, tmp_path, market):
        path = tmp_path / "ledger.csv"
        path.touch()
        TradeLedger(path).append(TradeRecord.for_market(market))
        assert path.read_text().splitlines()[0].startswith("Market Title,Market Link,Status")

    def test_unset_columns_render_dash(self, tmp_path, market):
        ledger = TradeLedger(tmp_path / "ledger.csv")
        record = TradeRecord.for_market(market)
        record.status = "ENTRY_TIMEOUT"
        record.final_status = "NO_POSITION"
        ledger.append(record)

        row = ledger.read()[0]
        assert row["Market Link"] == "https://polymarket.com/event/eth-updown-15m-1771140600"
        assert row["entry_Price"] == "-"
        assert row["is_SL_Triggered"] == "-"
        assert row["Final_Status"] == "NO_POSITION"

    def test_title_with_comma_survives(self, tmp_path, market):
        ledger = TradeLedger(tmp_path / "ledger.csv")
        ledger.append(TradeRecord.for_market(market))
        assert ledger.read()[0]["Market Title"] == market.title

    def test_second_flush_raises(self, tmp_path, market):
        ledger = TradeLedger(tmp_path / "ledger.csv")
        record = TradeRecord.for_market(market)
        ledger.append(record)
        with pytest.raises(LedgerError):
            ledger.append(record)
        assert len(ledger.read()) == 1

    def test_notes_accumulate(self, market):
        record = TradeRecord.for_market(market)
        record.add_note("first")
        record.add_note("second")
        assert record.notes == "first; second"

    def test_read_missing_file(self, tmp_path):
        assert TradeLedger(tmp_path / "absent.csv").read() == []
