#!/usr/bin/env python3
"""
Dev helper: send a test Cakto webhook to the local backend.

Builds a Cakto-shaped payload ({secret, event, data}) and POST-s it to the
/api/cakto-webhook endpoint, then prints the JSON response.

Usage
-----
# Basic — approved purchase for buyer@example.com, targeting localhost:8000
python scripts/send_test_purchase.py

# Custom buyer and product
python scripts/send_test_purchase.py --email ana@example.com --name Ana --product "Curso X"

# An event the webhook should ignore
python scripts/send_test_purchase.py --event purchase_refused

# Target a different backend URL
python scripts/send_test_purchase.py --url https://precisionx.example.com

Environment / .env
------------------
CAKTO_SECRET   Shared webhook secret (required unless --secret or --dry-run).

Variables are read from a .env file in the project root or backend/ if
present.
"""

import argparse
import json
import os
import sys
import textwrap
import uuid
from pathlib import Path

import httpx
from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Payload builder
# ---------------------------------------------------------------------------

def _build_payload(
    secret: str,
    event: str,
    email: str,
    name: str,
    product: str,
    order_id: str,
) -> dict:
    """
    Build a Cakto webhook payload.

    Cakto format:
      secret   — shared secret configured in the Cakto dashboard
      event    — e.g. "purchase_approved"
      data     — {id, checkoutUrl, customer{email,name}, product{name}, offer{name}}
    """
    return {
        "secret": secret,
        "event": event,
        "data": {
            "id": order_id,
            "checkoutUrl": f"https://pay.cakto.com.br/checkout/{order_id}",
            "customer": {"email": email, "name": name},
            "product": {"name": product},
            "offer": {"name": product},
        },
    }


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_purchase.py",
        description=textwrap.dedent("""\
            Send a test Cakto webhook to the backend.

            Reads CAKTO_SECRET from the environment or a .env file.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--event",
        default="purchase_approved",
        help="Cakto event name (default: purchase_approved)",
    )
    parser.add_argument("--email", default="buyer@example.com", help="Buyer e-mail")
    parser.add_argument("--name", default="Comprador Teste", help="Buyer name")
    parser.add_argument("--product", default="Produto Teste", help="Product name")
    parser.add_argument(
        "--order-id",
        default=None,
        help="Order id (default: random)",
    )
    parser.add_argument(
        "--secret",
        default=None,
        metavar="SECRET",
        help="Override the webhook secret. Defaults to CAKTO_SECRET.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    secret = args.secret or os.getenv("CAKTO_SECRET", "")
    if not secret and not args.dry_run:
        print(
            "ERROR: No webhook secret found.\n"
            "Set CAKTO_SECRET in your environment or .env file, or pass --secret.",
            file=sys.stderr,
        )
        return 1

    payload = _build_payload(
        secret=secret,
        event=args.event,
        email=args.email,
        name=args.name,
        product=args.product,
        order_id=args.order_id or uuid.uuid4().hex[:12],
    )
    endpoint = f"{args.url.rstrip('/')}/api/cakto-webhook"

    print(f"Endpoint : {endpoint}")
    print(f"Event    : {args.event}")
    print(f"Buyer    : {args.name} <{args.email}>")
    print(f"Product  : {args.product}")

    if args.dry_run:
        display = {**payload, "secret": "<redacted>"}
        print("\n[DRY RUN] Payload:")
        print(json.dumps(display, indent=2, ensure_ascii=False))
        return 0

    try:
        response = httpx.post(endpoint, json=payload, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"\nERROR: request failed: {e}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
