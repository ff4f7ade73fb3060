"""Main module entrypoint for local runtime execution.

This module validates startup configuration and launches the FastAPI service
or runs one ledger verification from the command line.
"""

import argparse

import uvicorn

from position_ledger.bootstrap import bootstrap_create_application, bootstrap_create_transaction_service
from position_ledger.config import config_load_settings
from position_ledger.domain import LedgerValidationError
from position_ledger.logging_config import setup_logging


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with code 1 when verification finds a mismatch, 2 on invalid arguments.
    """

    argument_parser = argparse.ArgumentParser(description="Position ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", "verify-key"),
        help="Runtime command: `api` starts server, `verify-key` replays one ledger key and compares stored state",
        type=str,
    )
    argument_parser.add_argument("--owner-id", dest="owner_id", type=str, help="Owner id for `verify-key`")
    argument_parser.add_argument("--ticker", dest="ticker", type=str, help="Ticker for `verify-key`")
    argument_parser.add_argument("--currency", dest="currency", type=str, help="Currency code for `verify-key`")
    parsed_arguments = argument_parser.parse_args()

    settings = config_load_settings()

    if parsed_arguments.command == "verify-key":
        if not (parsed_arguments.owner_id and parsed_arguments.ticker and parsed_arguments.currency):
            argument_parser.error("verify-key requires --owner-id, --ticker and --currency")
        setup_logging(settings.log_level)
        transaction_service = bootstrap_create_transaction_service(settings=settings)
        try:
            verification = transaction_service.ledger_verify_key(
                owner_id=parsed_arguments.owner_id,
                ticker=parsed_arguments.ticker,
                currency=parsed_arguments.currency,
            )
        except LedgerValidationError as error:
            argument_parser.error(f"verify-key: {error}")
        print(
            f"{verification.key.describe()} consistent={verification.consistent} "
            f"transactions={verification.transaction_count} "
            f"quantity={verification.stored_quantity} average_cost={verification.stored_average_cost}"
        )
        for mismatch in verification.mismatches:
            print("MISMATCH:", mismatch)
        if not verification.consistent:
            raise SystemExit(1)
        return

    application = bootstrap_create_application(settings)
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


if __name__ == "__main__":
    main()
