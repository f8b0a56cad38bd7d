#!/usr/bin/env python3
"""
Dev helper: send a signed provider webhook to the local communications backend.

Builds a Resend-style delivery event, signs it with EMAIL_WEBHOOK_SECRET the
same way the provider does (resend-signature: t=<seconds>,v1=<hmac>), and
POST-s it to /webhooks/provider.

Usage
-----
# Basic - "email.delivered" event for a generated message id
python scripts/send_test_webhook.py

# A different event type and message id
python scripts/send_test_webhook.py --type email.bounced --message-id msg_123

# Sign with a stale timestamp to exercise replay protection
python scripts/send_test_webhook.py --skew -600

# Print the body and header without sending
python scripts/send_test_webhook.py --dry-run

Environment / .env
------------------
EMAIL_WEBHOOK_SECRET   Webhook signing secret (required unless --secret).

The script reads the .env file in the project root (and backend/) if present.
"""

import argparse
import json
import sys
import textwrap
import time
import uuid
from pathlib import Path

import httpx
from dotenv import load_dotenv

from app.config import get_webhook_secret
from app.services.signature import SIGNATURE_HEADER, sign


def _build_event(event_type: str, message_id: str, to: str) -> dict:
    """Resend-style event body: {type, created_at, data: {email_id, to, ...}}."""
    return {
        "type": event_type,
        "created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "data": {
            "email_id": message_id,
            "to": [to],
            "subject": "Test notification",
        },
    }


def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if 200 <= status < 300 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    if response.content:
        try:
            print(json.dumps(response.json(), indent=2))
        except ValueError:
            print(response.text)


def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_webhook.py",
        description=textwrap.dedent("""\
            Send a signed provider webhook to the communications backend.

            Reads EMAIL_WEBHOOK_SECRET from the environment or a .env file.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8700",
        help="Backend base URL (default: http://localhost:8700)",
    )
    parser.add_argument(
        "--type",
        dest="event_type",
        default="email.delivered",
        help='Provider event type (default: "email.delivered")',
    )
    parser.add_argument(
        "--message-id",
        default=None,
        help="Provider message id (default: a random id)",
    )
    parser.add_argument(
        "--to",
        default="user@example.com",
        help="Recipient recorded in the event (default: user@example.com)",
    )
    parser.add_argument(
        "--skew",
        type=int,
        default=0,
        metavar="SECONDS",
        help="Offset added to the signing timestamp (default: 0)",
    )
    parser.add_argument(
        "--secret",
        default=None,
        help="Override the signing secret (default: EMAIL_WEBHOOK_SECRET)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the signed request without sending it.",
    )
    args = parser.parse_args()

    secret = args.secret or get_webhook_secret()
    if not secret:
        print(
            "ERROR: No webhook secret found.\n"
            "Set EMAIL_WEBHOOK_SECRET in your environment or .env file, "
            "or pass --secret.",
            file=sys.stderr,
        )
        return 1

    message_id = args.message_id or f"msg_{uuid.uuid4().hex[:12]}"
    body = json.dumps(_build_event(args.event_type, message_id, args.to)).encode()
    timestamp = int(time.time()) + args.skew
    header = sign(secret, timestamp, body)

    endpoint = f"{args.url.rstrip('/')}/webhooks/provider"
    print(f"Endpoint  : {endpoint}")
    print(f"Event     : {args.event_type}")
    print(f"Message id: {message_id}")
    print(f"Signature : {SIGNATURE_HEADER}: t={timestamp},v1=...")

    if args.dry_run:
        print("\n[DRY RUN] Body:")
        print(json.dumps(json.loads(body), indent=2))
        return 0

    try:
        response = httpx.post(
            endpoint,
            content=body,
            headers={"Content-Type": "application/json", SIGNATURE_HEADER: header},
            timeout=10.0,
        )
    except httpx.HTTPError as exc:
        print(f"\n[FAIL] Request failed: {exc}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
