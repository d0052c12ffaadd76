"""
Command-line interface for the transaction workflow.

Provides commands for invoking a program, checking a signature, and
generating keypair files.
"""

import argparse
import asyncio
import logging
import sys

import structlog

from txflow import __version__
from txflow.config import ClientConfig, Commitment, set_config
from txflow.core.reporter import Reporter
from txflow.core.transaction import AccountReference
from txflow.core.workflow import TransactionWorkflow
from txflow.exceptions import TxFlowError
from txflow.node.rpc import JsonRpcAdapter
from txflow.tx.builder import to_pubkey
from txflow.tx.keys import (
    KeyLoadError,
    load_keypair,
    load_keypair_from_file,
    write_keypair_file,
)


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
        stream=sys.stderr,
    )


def _add_node_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rpc-url",
        help="Node JSON-RPC URL (default: http://127.0.0.1:8899)",
    )
    parser.add_argument(
        "--commitment",
        choices=[c.value for c in Commitment],
        help="Required commitment level (default: confirmed)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: TXFLOW_LOG_LEVEL, else INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="txflow",
        description="Submit a program invocation to a ledger node and wait for confirmation",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Invoke command
    invoke_parser = subparsers.add_parser("invoke", help="Invoke a program once")
    program = invoke_parser.add_mutually_exclusive_group()
    program.add_argument(
        "--program-id",
        help="Base58 program id",
    )
    program.add_argument(
        "--program-keypair",
        help="Program keypair file whose public key is the program id "
             "(default: deploy/test-keypair.json)",
    )
    invoke_parser.add_argument(
        "--signer-keypair",
        help="Signer keypair file (overrides --signer-env)",
    )
    invoke_parser.add_argument(
        "--signer-env",
        help="Environment variable holding the signer keypair JSON (default: SIGNER)",
    )
    invoke_parser.add_argument(
        "--data",
        default="",
        help="Instruction data as hex (default: empty)",
    )
    invoke_parser.add_argument(
        "--max-attempts",
        type=int,
        default=1,
        help="Rebuild and resend after expiry up to this many attempts (default: 1)",
    )
    _add_node_arguments(invoke_parser)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show a transaction's status")
    status_parser.add_argument("signature", help="Transaction signature")
    _add_node_arguments(status_parser)

    # Keygen command
    keygen_parser = subparsers.add_parser("keygen", help="Generate a keypair file")
    keygen_parser.add_argument(
        "--outfile",
        required=True,
        help="Path of the keypair file to write",
    )
    keygen_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing file",
    )

    return parser


def build_config(args: argparse.Namespace) -> ClientConfig:
    """Create configuration from environment overlaid with CLI arguments."""
    overrides = {}
    if getattr(args, "rpc_url", None):
        overrides["rpc_url"] = args.rpc_url
    if getattr(args, "commitment", None):
        overrides["commitment"] = Commitment(args.commitment)
    if getattr(args, "program_keypair", None):
        overrides["program_keypair_path"] = args.program_keypair
    if getattr(args, "signer_keypair", None):
        overrides["signer_keypair_path"] = args.signer_keypair
    if getattr(args, "signer_env", None):
        overrides["signer_env_var"] = args.signer_env
    if getattr(args, "log_level", None):
        overrides["log_level"] = args.log_level
    if getattr(args, "log_json", False):
        overrides["log_json"] = True
    return ClientConfig(**overrides)


async def invoke_program(args: argparse.Namespace, config: ClientConfig) -> str:
    """Invoke the program with the signer as its only account."""
    if args.program_id:
        program_id = to_pubkey(args.program_id)
    elif config.program_keypair_path:
        program_id = load_keypair_from_file(config.program_keypair_path).pubkey()
    else:
        raise KeyLoadError("No program id or program keypair configured")

    signer = load_keypair(config.signer_keypair_path, config.signer_env_var)
    data = bytes.fromhex(args.data)

    async with TransactionWorkflow(config) as workflow:
        return await workflow.execute(
            program_id,
            [AccountReference(signer.pubkey(), is_signer=True, is_writable=True)],
            [signer],
            instruction_data=data,
            max_attempts=args.max_attempts,
        )


async def show_status(args: argparse.Namespace, config: ClientConfig) -> str:
    """Query a signature's status once."""
    async with JsonRpcAdapter(config) as node:
        status = await node.get_signature_status(args.signature)

    if status is None:
        return f"{args.signature}: not found"
    if status.failed:
        return f"{args.signature}: failed at slot {status.slot}: {status.err}"
    return f"{args.signature}: {status.commitment.value} at slot {status.slot}"


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "keygen":
        setup_logging("WARNING")
        try:
            keypair = write_keypair_file(args.outfile, overwrite=args.force)
        except TxFlowError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"Wrote keypair to {args.outfile}")
        print(f"Public key: {keypair.pubkey()}")
        return

    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    try:
        if args.command == "invoke":
            print(asyncio.run(invoke_program(args, config)))
        elif args.command == "status":
            print(asyncio.run(show_status(args, config)))
    except ValueError as e:
        print(f"Error: invalid argument: {e}", file=sys.stderr)
        sys.exit(2)
    except TxFlowError as e:
        print(Reporter.describe_error(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
