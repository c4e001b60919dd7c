"""Sign a sample Yaya Wallet webhook the way the provider does.

Builds the demo payload with a fresh id and current timestamp, prints the
signing string, signature and a ready-to-paste curl command, and optionally
posts it to a running receiver.
"""

import argparse
import hashlib
import hmac
import json
import time
from uuid import uuid4

import httpx


FIELD_ORDER = [
    "id",
    "amount",
    "currency",
    "created_at_time",
    "timestamp",
    "cause",
    "full_name",
    "account_name",
    "invoice_url",
]


def build_payload(webhook_id: str, now: int) -> dict:
    """Demo payload used in manual receiver checks."""

    return {
        "id": webhook_id,
        "amount": 100,
        "currency": "ETB",
        "created_at_time": now,
        "timestamp": now,
        "cause": "Testing",
        "full_name": "Abebe Kebede",
        "account_name": "abebekebede1",
        "invoice_url": "https://yayawallet.com/en/invoice/xxxx",
    }


def sign(secret: str, payload: dict) -> tuple[str, str]:
    """Return (signing string, hex signature) for one payload."""

    signed = "".join(str(payload[name]) for name in FIELD_ORDER)
    digest = hmac.new(secret.encode("utf-8"), signed.encode("utf-8"), hashlib.sha256).hexdigest()
    return signed, digest


def main() -> None:
    """Parse CLI args, sign the payload and print or send it."""

    parser = argparse.ArgumentParser(description="Generate a signed Yaya Wallet webhook payload.")
    parser.add_argument("--secret", default="secret")
    parser.add_argument("--id", dest="webhook_id", default=None, help="Event id (random UUID by default)")
    parser.add_argument("--timestamp", type=int, default=None, help="Epoch seconds (now by default)")
    parser.add_argument("--url", default="http://localhost:8080/webhook")
    parser.add_argument("--header", default="YAYA-SIGNATURE")
    parser.add_argument("--send", action="store_true", help="POST the payload to --url")
    args = parser.parse_args()

    now = args.timestamp if args.timestamp is not None else int(time.time())
    payload = build_payload(args.webhook_id or str(uuid4()), now)
    signed, signature = sign(args.secret, payload)

    print(f"signing_string={signed}")
    print(f"signature={signature}")
    body = json.dumps(payload)
    print(
        f"curl -X POST {args.url} -H 'Content-Type: application/json' "
        f"-H '{args.header}: {signature}' -d '{body}'"
    )

    if args.send:
        resp = httpx.post(
            args.url,
            content=body,
            headers={"Content-Type": "application/json", args.header: signature},
            timeout=10.0,
        )
        print(f"status={resp.status_code} body={resp.text}")


if __name__ == "__main__":
    main()
