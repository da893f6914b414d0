"""CLI entrypoint for the inventory duplicate detector."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

# Settings below are read from the environment at import time.
load_dotenv()

import artifacts  # noqa: E402
from pipeline import detect_duplicates  # noqa: E402
from run_registry import RunRegistry, new_run_id  # noqa: E402
from token_store import TokenStore  # noqa: E402
from zoho_auth import setup_auth  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Find duplicate Zoho Books items with a generative model")
    subparsers = parser.add_subparsers(dest="command", required=True)

    setup = subparsers.add_parser("setup", help="Exchange a Zoho grant token and create the token file")
    setup.add_argument("--client-id", default=None)
    setup.add_argument("--client-secret", default=None)
    setup.add_argument("--grant-token", default=None, help="One-time grant token from the Zoho API console")

    detect = subparsers.add_parser("detect", help="Run duplicate detection once and write the Excel report")
    detect.add_argument(
        "--org-id",
        default=None,
        help="Zoho organization id (defaults to ZOHO_ORGANIZATION_ID)",
    )

    serve = subparsers.add_parser("serve", help="Start the local HTTP control surface")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "3001")))

    return parser.parse_args(argv)


def _prompt(value: str | None, label: str) -> str:
    if value:
        return value
    answer = input(f"Enter your Zoho {label}: ").strip()
    if not answer:
        raise SystemExit(f"{label} is required")
    return answer


def run_setup(args: argparse.Namespace) -> int:
    client_id = _prompt(args.client_id, "Client ID")
    client_secret = _prompt(args.client_secret, "Client Secret")
    grant_token = _prompt(args.grant_token, "Grant Token")

    try:
        setup_auth(client_id, client_secret, grant_token, TokenStore())
    except Exception as exc:
        logging.error("Setup failed: %s", exc)
        return 1

    print("Setup successful. Token file created.")
    return 0


def run_detect(args: argparse.Namespace) -> int:
    organization_id = args.org_id or os.getenv("ZOHO_ORGANIZATION_ID")
    if not organization_id:
        logging.error("Organization ID is required. Pass --org-id or set ZOHO_ORGANIZATION_ID.")
        return 2

    registry = RunRegistry()
    run_id = new_run_id()
    filename = detect_duplicates(organization_id, run_id, registry)
    status = registry.get(run_id)

    if filename is None:
        error = status.error if status else "unknown error"
        logging.error("Run %s failed: %s", run_id, error)
        if status and status.diagnostic_file:
            logging.error("Raw AI response saved to %s", artifacts.resolve_artifact(status.diagnostic_file))
        return 1

    logging.info("Run %s complete. %s", run_id, status.progress if status else "")
    print(artifacts.resolve_artifact(filename))
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn  # noqa: PLC0415

    uvicorn.run("server:app", host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Initialize config and dispatch the selected command."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    handlers = {"setup": run_setup, "detect": run_detect, "serve": run_serve}
    sys.exit(handlers[args.command](args))


if __name__ == "__main__":
    main()
