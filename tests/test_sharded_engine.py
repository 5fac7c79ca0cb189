import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from config import EngineConfig
from models import Chargeback, Deposit, Dispute, InvalidTransactionError, ProcessingHaltedError, RejectionReason, Withdrawal
from payments_engine import PaymentsEngine
from sharded_engine import ShardedPaymentsEngine


class TestShardedPaymentsEngine:
    def test_routes_client_to_fixed_shard(self):
        engine = ShardedPaymentsEngine(num_shards=4)
        assert engine.shard_for(5) == engine.shard_for(5)
        assert {engine.shard_for(client_id) for client_id in range(100)} == {0, 1, 2, 3}

    def test_invalid_shard_count(self):
        with pytest.raises(ValueError):
            ShardedPaymentsEngine(num_shards=0)

    def test_per_client_order_preserved(self):
        transactions = []
        tx = 1
        for client_id in range(1, 21):
            transactions.append(Deposit(client_id, tx, Decimal("10")))
            transactions.append(Withdrawal(client_id, tx + 1, Decimal("4")))
            transactions.append(Dispute(client_id, tx))
            transactions.append(Chargeback(client_id, tx))
            transactions.append(Deposit(client_id, tx + 2, Decimal("1")))
            tx += 3

        engine = ShardedPaymentsEngine(num_shards=3)
        accounts = engine.process_transactions(transactions)

        assert len(accounts) == 20
        for account in accounts.values():
            assert account.available == Decimal("-4")
            assert account.held == Decimal("0")
            assert account.total == Decimal("-4")
            assert account.locked is True

    def test_matches_sequential_engine(self, tmp_path):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
            "dispute, 1, 1,",
            "deposit, 3, 6, 0.0001",
            "resolve, 1, 1,",
            "bogus, 1, 7, 1",
        ]))

        sequential = PaymentsEngine()
        sequential.process_file(str(csv_file))
        sharded = ShardedPaymentsEngine(num_shards=2)
        sharded.process_file(str(csv_file))

        assert sharded.snapshot() == sequential.snapshot()
        assert sharded.stats.processed == sequential.stats.processed
        assert sharded.stats.rejected == sequential.stats.rejected == 1
        assert sharded.stats.malformed == sequential.stats.malformed == 1

    def test_halt_propagates_to_caller(self):
        config = EngineConfig(num_shards=2, halt_on=frozenset({RejectionReason.INSUFFICIENT_FUNDS}))
        engine = ShardedPaymentsEngine(num_shards=2, config=config)

        with pytest.raises(ProcessingHaltedError) as excinfo:
            engine.process_transactions([Deposit(1, 1, Decimal("1")), Withdrawal(1, 2, Decimal("2"))])

        assert excinfo.value.reason == RejectionReason.INSUFFICIENT_FUNDS

    def test_reader_error_stops_workers(self, tmp_path):
        engine = ShardedPaymentsEngine(num_shards=2)

        with pytest.raises(OSError):
            engine.process_file(str(tmp_path / "missing.csv"))

    def test_malformed_rows_counted_before_routing(self, tmp_path, caplog):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, x, 1.0",
            "refund, 3, 3, 1.0",
        ]))
        engine = ShardedPaymentsEngine(num_shards=3)

        accounts = engine.process_file(str(csv_file))

        assert list(accounts) == [1]
        assert engine.stats.malformed == 2
        assert engine.stats.processed == 1
        assert "Skipping line 3" in caplog.text

    def test_strict_mode_stops_on_malformed_row(self, tmp_path):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "withdrawal, 1, 2,",
        ]))
        config = EngineConfig(num_shards=2, halt_on_malformed=True)
        engine = ShardedPaymentsEngine(num_shards=2, config=config)

        with pytest.raises(InvalidTransactionError, match="line 3"):
            engine.process_file(str(csv_file))

        assert engine.stats.malformed == 1
