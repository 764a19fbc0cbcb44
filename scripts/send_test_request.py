import argparse
import base64
import json
from pathlib import Path
from typing import Any, Dict
from urllib.parse import unquote_to_bytes

import requests


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Request a QR code from the server and save the image."
    )
    parser.add_argument("text", help="Content to encode in the QR code.")
    parser.add_argument(
        "--host",
        default="http://127.0.0.1:5000",
        help="Server host (default: http://127.0.0.1:5000).",
    )
    parser.add_argument("--size", type=int, default=300, help="Image width in pixels.")
    parser.add_argument(
        "--format",
        choices=("png", "svg"),
        default="png",
        help="Image format (default: png).",
    )
    parser.add_argument(
        "--qr-output",
        type=Path,
        default=None,
        help="Path to save the QR code image (default: qr_code.<format>).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the query instead of sending the request.",
    )
    return parser.parse_args()


def save_qr_code(data_uri: str, output_path: Path) -> None:
    header, _, body = data_uri.partition(",")
    if header.endswith(";base64"):
        data = base64.b64decode(body)
    else:
        data = unquote_to_bytes(body)
    output_path.write_bytes(data)


def main() -> None:
    args = parse_args()
    params: Dict[str, Any] = {
        "text": args.text,
        "size": args.size,
        "format": args.format,
    }

    if args.dry_run:
        print(json.dumps(params, indent=2))
        return

    response = requests.get(
        f"{args.host.rstrip('/')}/api/qrcode",
        params=params,
        timeout=10,
    )

    print(f"Status: {response.status_code}")
    response.raise_for_status()
    data = response.json()

    qr_code = data.get("qr_code")
    if qr_code:
        output = args.qr_output or Path(f"qr_code.{args.format}")
        save_qr_code(qr_code, output)
        print(f"Saved QR code to {output.resolve()}")
    else:
        print(json.dumps(data, indent=2))
        print("No QR code returned in response.")


if __name__ == "__main__":
    main()
