import csv
import sys
import logging
from typing import List, Optional

from account_writer import write_accounts
from config import ConfigError, EngineConfig
from models import InvalidTransactionError, LedgerInvariantError, ProcessingHaltedError
from payments_engine import PaymentsEngine
from sharded_engine import ShardedPaymentsEngine


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        return 1

    try:
        config = EngineConfig.from_env()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config.log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    filepath = args[0]
    if config.num_shards > 1:
        engine = ShardedPaymentsEngine(num_shards=config.num_shards, config=config)
    else:
        engine = PaymentsEngine(config)

    try:
        engine.process_file(filepath)
    except (
        OSError,
        UnicodeDecodeError,
        csv.Error,
        InvalidTransactionError,
        LedgerInvariantError,
        ProcessingHaltedError,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    write_accounts(engine.snapshot(), sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
