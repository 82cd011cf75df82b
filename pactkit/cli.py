"""
pactkit command line entry point.

Usage:
    pactkit verify --provider VAIS-Producer --consumer SF-Consumer \\
        --provider-base-url http://localhost:9001 \\
        --provider-states-url http://localhost:9001/provider-states --publish
    pactkit verify --provider VAIS-Producer --pact-file pacts/SF-Consumer-VAIS-Producer.json \\
        --provider-base-url http://localhost:9001
    pactkit show pacts/SF-Consumer-VAIS-Producer.json

Environment Variables:
    PACT_BROKER_BASE_URL, PROVIDER_VERSION, BRANCH_NAME and the other
    settings documented in pactkit.core.config.

Exit codes: 0 verification passed, 1 verification failed, 2 contract not loadable.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pactkit.core import storage
from pactkit.core.config import Settings, get_settings
from pactkit.core.errors import ContractLoadError
from pactkit.core.locator import ContractLocator
from pactkit.schemas.interaction import contract_file_name
from pactkit.services.publisher import BrokerPublisher
from pactkit.services.verifier import Verifier

logger = logging.getLogger("pactkit.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOAD_ERROR = 2


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _resolve_pact_file(args: argparse.Namespace, settings: Settings) -> Optional[Path]:
    if args.pact_file:
        return Path(args.pact_file)
    if not args.consumer:
        return None
    locator = ContractLocator.from_settings(settings)
    return locator.locate(contract_file_name(args.consumer, args.provider))


def cmd_verify(args: argparse.Namespace, settings: Settings) -> int:
    """
    Verify a provider against a contract file, optionally publishing results.

    Returns:
        Exit code
    """
    pact_file = _resolve_pact_file(args, settings)
    if pact_file is None:
        print("Error: no contract file found (use --pact-file or --consumer)", file=sys.stderr)
        return EXIT_LOAD_ERROR

    logger.info(f"Using pact file: {pact_file.resolve()}")
    logger.info(f"Provider version: {settings.provider_version}")

    verifier = Verifier(
        settings,
        provider_base_url=args.provider_base_url,
        provider_states_url=args.provider_states_url,
    )
    try:
        run = verifier.verify(pact_file, only=args.only or None)
    except (ContractLoadError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR

    if run.provider_name != args.provider:
        logger.warning(
            f"Contract names provider {run.provider_name!r}, verifying {args.provider!r}"
        )

    print(run.report())

    if args.publish or settings.publishing_enabled:
        if settings.pact_broker_base_url:
            outcome = BrokerPublisher(settings).publish(run)
            if not outcome.ok:
                logger.warning("Publishing to the broker did not complete; verification result unchanged")
        else:
            logger.warning("--publish given but PACT_BROKER_BASE_URL is not set")

    return EXIT_OK if run.overall_success else EXIT_FAILED


def cmd_show(args: argparse.Namespace, settings: Settings) -> int:
    """Print a summary of a contract file."""
    try:
        contract = storage.load(args.path)
    except ContractLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR

    print(f"{contract.consumer_name} -> {contract.provider_name} "
          f"(pact specification {contract.specification_version})")
    for interaction in contract.interactions:
        state = f" given '{interaction.provider_state}'" if interaction.provider_state else ""
        print(f"  - {interaction.description}{state}: "
              f"{interaction.request.method} {interaction.request.path} "
              f"-> {interaction.response.status}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pactkit",
        description="Consumer-driven contract testing: verify providers against pact files.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    verify = sub.add_parser("verify", help="Replay a contract against a live provider")
    verify.add_argument("--provider", required=True, help="Provider name")
    verify.add_argument("--provider-base-url", required=True, help="Base URL of the running provider")
    verify.add_argument("--provider-states-url", help="Provider-state setup endpoint")
    source = verify.add_mutually_exclusive_group()
    source.add_argument("--pact-file", help="Contract file to verify")
    source.add_argument("--consumer", help="Consumer name; the contract file is located by search")
    verify.add_argument("--only", action="append", metavar="DESCRIPTION",
                        help="Verify only this interaction (repeatable)")
    verify.add_argument("--publish", action="store_true", help="Publish results to the broker")
    verify.set_defaults(handler=cmd_verify)

    show = sub.add_parser("show", help="Summarize a contract file")
    show.add_argument("path", help="Contract file")
    show.set_defaults(handler=cmd_show)

    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return args.handler(args, settings or get_settings())


if __name__ == "__main__":
    sys.exit(main())
