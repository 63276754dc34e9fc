import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from csv_io import MalformedInputError
from ledger import Ledger
from models import Amount, ProcessingResult
from payments_engine import PaymentsEngine


def amt(text: str) -> Amount:
    return Amount.parse(text)


@pytest.fixture(params=[1, 2], ids=["sequential", "sharded"])
def engine(request):
    return PaymentsEngine(num_workers=request.param)


def write_csv(tmp_path, *lines):
    csv_file = tmp_path / "test.csv"
    csv_file.write_text('\n'.join(lines))
    return str(csv_file)


class TestPaymentsEngine:
    def test_basic_transactions(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        )

        accounts = engine.process_file(csv_file)

        assert set(accounts) == {1, 2}

        assert accounts[1].available == amt("1.5")
        assert accounts[1].held == amt("0")
        assert accounts[1].total == amt("1.5")

        assert accounts[2].available == amt("2.0")
        assert accounts[2].held == amt("0")
        assert accounts[2].total == amt("2.0")

        assert engine.stats.processed == 4
        assert engine.stats.failed == 1
        assert engine.stats.rejections() == {ProcessingResult.INSUFFICIENT_FUNDS: 1}

    def test_dispute_resolve(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("100")
        assert accounts[1].held == amt("0")
        assert accounts[1].locked is False

    def test_chargeback(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("0")
        assert accounts[1].held == amt("0")
        assert accounts[1].total == amt("0")
        assert accounts[1].locked is True

    def test_dispute_before_deposit_ignored(self, tmp_path, engine):
        """No retries: a dispute for a tx not seen yet is dropped."""
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "dispute, 1, 1,",
            "deposit, 1, 1, 100.0",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("100")
        assert accounts[1].held == amt("0")
        assert engine.stats.rejections() == {ProcessingResult.TRANSACTION_NOT_FOUND: 1}

    def test_decimal_precision(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 1.2345",
            "deposit, 1, 2, 0.0001",
            "withdrawal, 1, 3, 0.2346",
        )

        accounts = engine.process_file(csv_file)

        # 1.2345 + 0.0001 - 0.2346 = 1.0000
        assert accounts[1].available == amt("1.0000")
        assert str(accounts[1].available) == "1"

    def test_scenario_dispute_blocks_withdrawal_then_resolves(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 1, 2, 2.0",
            "dispute, 1, 1,",
            "withdrawal, 1, 3, 2.5",
            "resolve, 1, 1,",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("3.0")
        assert accounts[1].held == amt("0")
        assert accounts[1].total == amt("3.0")
        assert accounts[1].locked is False

    def test_scenario_locked_after_chargeback(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 2, 4, 5.0",
            "dispute, 2, 4,",
            "chargeback, 2, 4,",
            "deposit, 2, 5, 10.0",
            "withdrawal, 2, 6, 1.0",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[2].available == amt("0")
        assert accounts[2].held == amt("0")
        assert accounts[2].total == amt("0")
        assert accounts[2].locked is True
        assert engine.stats.rejections() == {ProcessingResult.ACCOUNT_LOCKED: 2}

    def test_wrong_client_dispute_ignored(self, tmp_path):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 2, 1,",
        )

        accounts = PaymentsEngine().process_file(csv_file)

        # Client 2's only record was rejected, so it has no account
        assert accounts[1].available == amt("100")
        assert accounts[1].held == amt("0")
        assert 2 not in accounts

    def test_partial_withdrawal_then_dispute(self, tmp_path, engine):
        """Dispute after partial withdrawal holds full deposit amount."""
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "withdrawal, 1, 2, 30.0",
            "dispute, 1, 1,",
        )

        accounts = engine.process_file(csv_file)

        # available = 70 - 100 = -30, held = 100
        assert accounts[1].available == amt("-30")
        assert accounts[1].held == amt("100")
        assert accounts[1].total == amt("70")

    def test_multiple_disputes_same_client(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 2, 50.0",
            "dispute, 1, 1,",
            "dispute, 1, 2,",
            "resolve, 1, 1,",
            "chargeback, 1, 2,",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("100")
        assert accounts[1].held == amt("0")
        assert accounts[1].total == amt("100")
        assert accounts[1].locked is True

    def test_duplicate_deposit_across_clients(self, tmp_path):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 1, 100.0",
            "deposit, 2, 1, 7.0",
        )

        engine = PaymentsEngine()
        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("100")
        assert 2 not in accounts
        assert engine.stats.rejections() == {ProcessingResult.DUPLICATE_TRANSACTION: 2}

    def test_malformed_rows_counted(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "refund, 1, 2, 5.0",
            "deposit, 1, 3, 1.00001",
            "deposit, 1, 4, 0",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("100")
        assert engine.stats.rejections() == {
            ProcessingResult.MALFORMED_RECORD: 2,
            ProcessingResult.INVALID_AMOUNT: 1,
        }

    def test_huge_amount_does_not_stop_stream(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 5",
            "deposit, 1, 2, 1e999999",
            "deposit, 1, 3, 2",
        )

        accounts = engine.process_file(csv_file)

        assert accounts[1].available == amt("7")
        assert engine.stats.rejections() == {ProcessingResult.MALFORMED_RECORD: 1}

    def test_rejected_only_clients_not_reported(self, tmp_path, engine):
        csv_file = write_csv(
            tmp_path,
            "type, client, tx, amount",
            "deposit, 1, 1, 10",
            "withdrawal, 2, 2, 1.0",
            "deposit, 3, 3, 0",
            "dispute, 4, 1,",
            "resolve, 5, 99,",
        )

        accounts = engine.process_file(csv_file)

        assert set(accounts) == {1}
        assert engine.stats.failed == 4

    def test_missing_file_raises(self, tmp_path, engine):
        with pytest.raises(OSError):
            engine.process_file(str(tmp_path / "missing.csv"))

    def test_bad_header_raises(self, tmp_path, engine):
        csv_file = write_csv(tmp_path, "kind, who, amount", "deposit, 1, 1.0")
        with pytest.raises(MalformedInputError):
            engine.process_file(csv_file)

    def test_uses_injected_ledger(self, tmp_path):
        ledger = Ledger()
        csv_file = write_csv(tmp_path, "type, client, tx, amount", "deposit, 3, 1, 9.5")

        engine = PaymentsEngine(ledger=ledger)
        engine.process_file(csv_file)

        assert engine.ledger is ledger
        assert ledger.get_account(3).available == amt("9.5")
