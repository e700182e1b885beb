"""
Command-line interface for the transaction sender.

Provides the `send` and `sendBatch` commands.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

from txsender import __version__
from txsender.config import DispatcherConfig, set_config
from txsender.core.dispatcher import Dispatcher
from txsender.core.intent import BatchRange, TransactionIntent

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--passphrase",
        help="Passphrase unlocking the sender account",
    )
    parser.add_argument(
        "--passphrase-file",
        help="File whose first line is the passphrase",
    )
    parser.add_argument(
        "--keystore",
        help="Keystore directory (default: from config)",
    )
    parser.add_argument(
        "--client",
        help="JSON-RPC endpoint of the node (default: from config)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="txsender",
        description="Send transactions to an Ethereum node",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Send command
    send_parser = subparsers.add_parser(
        "send",
        help="Send transaction to ethereum network",
        description="Send transaction to connected ethereum node with specified arguments",
    )
    _add_common_arguments(send_parser)
    send_parser.add_argument(
        "--sender",
        required=True,
        help="Sender address",
    )
    send_parser.add_argument(
        "--receiver",
        default="",
        help="Receiver address, empty to create a contract",
    )
    send_parser.add_argument(
        "--value",
        type=int,
        default=0,
        help="Value to transfer in wei (default: 0)",
    )
    send_parser.add_argument(
        "--data",
        default="",
        help="Hex encoded transaction payload",
    )
    send_parser.add_argument(
        "--sync",
        action="store_true",
        help="Wait for the transaction to be mined",
    )

    # Batch command
    batch_parser = subparsers.add_parser(
        "sendBatch",
        aliases=["send-batch"],
        help="Send batch of transactions to ethereum network",
        description="Send a batch of transactions to specified ethereum server",
    )
    _add_common_arguments(batch_parser)
    batch_parser.add_argument(
        "--batch-file",
        required=True,
        help="Batch file (.xlsx spreadsheet or delimited text)",
    )
    batch_parser.add_argument(
        "--begin",
        type=int,
        default=0,
        help="First row to send (default: 0)",
    )
    batch_parser.add_argument(
        "--end",
        type=int,
        default=0,
        help="Row after the last one to send (default: all rows)",
    )
    batch_parser.add_argument(
        "--token-file",
        help="Token definition file used to expand macro payloads",
    )
    batch_parser.add_argument(
        "--sheet",
        help="Worksheet name or index of spreadsheet batch files",
    )

    return parser


def build_config(args: argparse.Namespace) -> DispatcherConfig:
    """Create configuration from environment overridden by flags."""
    config = DispatcherConfig()
    overrides = {}
    if args.client:
        overrides["rpc_url"] = args.client
    if args.keystore:
        overrides["keystore_dir"] = args.keystore
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_json:
        overrides["log_json"] = True
    if getattr(args, "sheet", None) is not None:
        overrides["sheet"] = args.sheet
    if overrides:
        config = config.model_copy(update=overrides)
    return config


def resolve_passphrase(
    passphrase: Optional[str],
    passphrase_file: Optional[str],
    config: DispatcherConfig,
    interactive: bool = False,
) -> Optional[str]:
    """
    Pick the passphrase from the flag, the file, the config or a prompt.

    Returns None when no source provides one.
    """
    if passphrase is not None:
        return passphrase
    if passphrase_file:
        lines = Path(passphrase_file).read_text(encoding="utf-8").splitlines()
        return lines[0] if lines else ""
    if config.passphrase is not None:
        return config.passphrase
    if interactive and sys.stdin.isatty():
        return getpass.getpass("Passphrase: ")
    return None


async def send(args: argparse.Namespace, config: DispatcherConfig) -> None:
    """Send a single transaction."""
    intent = TransactionIntent(
        sender=args.sender,
        receiver=args.receiver or None,
        value=args.value,
        payload=args.data,
    )
    passphrase = resolve_passphrase(args.passphrase, args.passphrase_file, config, interactive=True)

    async with Dispatcher(config) as dispatcher:
        tx_hash = await dispatcher.send(intent, passphrase, wait=args.sync)

    print(tx_hash)


async def send_batch(args: argparse.Namespace, config: DispatcherConfig) -> None:
    """Send the transactions of a batch file."""
    from txsender.rows import open_row_source

    batch_range = BatchRange(args.begin, args.end or None)
    batch_range.check()

    source = open_row_source(args.batch_file, sheet=config.sheet, delimiter=config.text_delimiter)
    passphrase = resolve_passphrase(args.passphrase, args.passphrase_file, config)

    async with Dispatcher(config) as dispatcher:
        report = await dispatcher.send_batch(
            source,
            batch_range,
            default_passphrase=passphrase,
            token_file=args.token_file,
        )

    print(f"Rows {report.batch_range.begin}-{report.batch_range.end}: "
          f"{report.recorded} sent, {report.failed} failed")


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = build_config(args)
    set_config(config)

    # Setup logging
    setup_logging(config.log_level, config.log_json)

    # Run appropriate command
    try:
        if args.command == "send":
            asyncio.run(send(args, config))
        else:
            asyncio.run(send_batch(args, config))
    except Exception as e:
        logger.error("command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
