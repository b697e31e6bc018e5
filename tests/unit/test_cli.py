"""Tests for the CLI module."""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from quote_resolver.cli import _read_holdings, cli
from quote_resolver.core.models import PricePointSettled, QuoteSettled


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_engine():
    """QuoteEngine stand-in usable as ``async with``."""
    engine = MagicMock()
    engine.__aenter__ = AsyncMock(return_value=engine)
    engine.__aexit__ = AsyncMock(return_value=False)
    engine.get_quote_batch = AsyncMock(return_value={})
    engine.get_history = AsyncMock(return_value=[])
    engine.get_history_batch = AsyncMock(return_value={})
    engine.get_portfolio_value = AsyncMock(return_value=[])
    engine.get_fx_rate = AsyncMock(return_value=None)
    return engine


def _points(*closes):
    return [
        PricePointSettled(date=date(2024, 6, 24 + i), close=c) for i, c in enumerate(closes)
    ]


# ---------------------------------------------------------------------------
# CLI group tests
# ---------------------------------------------------------------------------


class TestCLIGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Quote Resolver" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_unknown_command(self, runner):
        result = runner.invoke(cli, ["nonexistent"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# classify command tests
# ---------------------------------------------------------------------------


class TestClassifyCommand:
    def test_json(self, runner):
        result = runner.invoke(cli, ["classify", "pko.wa", "AAPL", "--format", "json"])
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert rows[0]["canonical"] == "PKO.WA"
        assert rows[0]["segment"] == "domestic"
        assert rows[0]["domestic_codes"] == ["pko"]
        assert rows[1]["global_codes"] == ["AAPL"]

    def test_requires_symbol(self, runner):
        result = runner.invoke(cli, ["classify"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# quote command tests
# ---------------------------------------------------------------------------


class TestQuoteCommand:
    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_json_uses_wire_names(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine
        mock_engine.get_quote_batch.return_value = {
            "XYZ.WA": QuoteSettled(price_pln=50.1, prev_close_pln=49.0, currency="PLN"),
        }

        result = runner.invoke(cli, ["quote", "XYZ.WA", "--format", "json"])

        assert result.exit_code == 0
        out = json.loads(result.stdout)
        assert out["XYZ.WA"]["pricePLN"] == 50.1
        assert out["XYZ.WA"]["prevClosePLN"] == 49.0
        mock_engine.get_quote_batch.assert_awaited_once_with(["XYZ.WA"])

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_all_empty_exits_1(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine
        mock_engine.get_quote_batch.return_value = {"NOPE": QuoteSettled.empty()}

        result = runner.invoke(cli, ["quote", "NOPE"])

        assert result.exit_code == 1

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_table(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine
        mock_engine.get_quote_batch.return_value = {
            "ABC": QuoteSettled(price_pln=40.0, currency="USD", fx_rate=4.0),
        }

        result = runner.invoke(cli, ["quote", "ABC"])

        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# history command tests
# ---------------------------------------------------------------------------


class TestHistoryCommand:
    def test_rejects_unknown_range(self, runner):
        result = runner.invoke(cli, ["history", "XYZ.WA", "--range", "2w"])
        assert result.exit_code != 0

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_csv(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine
        mock_engine.get_history.return_value = _points(50.1, 50.8)

        result = runner.invoke(cli, ["history", "XYZ.WA", "-r", "1mo", "--format", "csv"])

        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0] == "date,close"
        assert lines[1] == "2024-06-24,50.100000"
        mock_engine.get_history.assert_awaited_once_with("XYZ.WA", "1mo", "1d")

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_json(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine
        mock_engine.get_history.return_value = _points(50.1)

        result = runner.invoke(cli, ["history", "XYZ.WA", "--format", "json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"date": "2024-06-24", "close": 50.1}]

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_empty_exits_1(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["history", "NOPE"])

        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# batch command tests
# ---------------------------------------------------------------------------


class TestBatchCommand:
    def test_read_holdings_json(self, tmp_path):
        path = tmp_path / "h.json"
        path.write_text('[{"symbol": "PKO.WA", "shares": 10}]')
        assert _read_holdings(str(path)) == [{"symbol": "PKO.WA", "shares": 10}]

    def test_read_holdings_csv(self, tmp_path):
        path = tmp_path / "h.csv"
        path.write_text("symbol,shares\nPKO.WA,10\nAAPL,\n")
        assert _read_holdings(str(path)) == [
            {"id": "", "symbol": "PKO.WA", "shares": 10.0},
            {"id": "", "symbol": "AAPL", "shares": 0.0},
        ]

    def test_read_holdings_rejects_non_list(self, tmp_path):
        from click import UsageError

        path = tmp_path / "h.json"
        path.write_text('{"symbol": "PKO.WA"}')
        with pytest.raises(UsageError, match="JSON list"):
            _read_holdings(str(path))

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_value_mode(self, mock_create, mock_load, runner, mock_engine, tmp_path):
        mock_create.return_value = mock_engine
        mock_engine.get_portfolio_value.return_value = _points(1000.0)
        path = tmp_path / "h.json"
        path.write_text('[{"symbol": "PKO.WA", "shares": 10}]')

        result = runner.invoke(cli, ["batch", str(path)])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"date": "2024-06-24", "close": 1000.0}]

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_quotes_mode(self, mock_create, mock_load, runner, mock_engine, tmp_path):
        mock_create.return_value = mock_engine
        mock_engine.get_quote_batch.return_value = {
            "PKO.WA": QuoteSettled(price_pln=50.0),
            "NOPE": QuoteSettled.empty(),
        }
        path = tmp_path / "h.json"
        path.write_text('["PKO.WA", "NOPE"]')

        result = runner.invoke(cli, ["batch", str(path), "--mode", "quotes"])

        assert result.exit_code == 0
        out = json.loads(result.stdout)
        assert out["PKO.WA"]["pricePLN"] == 50.0
        assert out["NOPE"]["pricePLN"] is None


# ---------------------------------------------------------------------------
# fx command tests
# ---------------------------------------------------------------------------


class TestFxCommand:
    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_rate(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine
        mock_engine.get_fx_rate.return_value = 3.9432

        result = runner.invoke(cli, ["fx", "usd", "--date", "2024-01-02"])

        assert result.exit_code == 0
        assert result.stdout.strip() == "3.943200"
        mock_engine.get_fx_rate.assert_awaited_once_with("usd", date(2024, 1, 2))

    @patch("quote_resolver.core.load_config")
    @patch("quote_resolver.cli._create_engine")
    def test_missing_rate_exits_1(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["fx", "XAU"])

        assert result.exit_code == 1
