import sys
import logging

from config import EngineSettings
from csv_io import MalformedInputError, write_accounts
from payments_engine import PaymentsEngine


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    settings = EngineSettings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if len(argv) != 1:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        return 1

    engine = PaymentsEngine(num_workers=settings.num_workers)
    try:
        accounts = engine.process_file(argv[0])
    except (OSError, MalformedInputError) as e:
        print(f"Error: cannot read {argv[0]}: {e}", file=sys.stderr)
        return 1

    write_accounts(accounts.values(), sys.stdout)

    if settings.report_stats:
        print(
            f"Processed: {engine.stats.processed}, "
            f"Failed: {engine.stats.failed}",
            file=sys.stderr,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
