#!/usr/bin/env python3
"""
Convert a base58 wallet secret into a solana-keygen style keypair file.

Usage:
    python scripts/convert_secret_key.py <BASE58_SECRET> [--output keypair.json]

Without --output the JSON byte array is printed, ready to paste into
WALLET_SECRET_KEY. The public key is always printed to stderr so it can be
checked against the wallet before funding it.
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Get project root (parent of scripts/)
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent

# Add src to path
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from solana_sniper.execution import load_keypair, secret_key_to_json_array


def main() -> int:
    parser = argparse.ArgumentParser(description="Convert a base58 secret key to a JSON byte array")
    parser.add_argument("secret", help="Base58 secret key (as exported by wallets)")
    parser.add_argument("--output", "-o", type=str, help="Write a keypair file instead of printing")
    args = parser.parse_args()

    try:
        key_bytes = secret_key_to_json_array(args.secret)
    except ValueError as e:
        print(f"Invalid secret key: {e}", file=sys.stderr)
        return 1

    pubkey = load_keypair(json.dumps(key_bytes)).pubkey()
    print(f"Public key: {pubkey}", file=sys.stderr)

    if args.output:
        path = Path(args.output)
        path.write_text(json.dumps(key_bytes))
        os.chmod(path, 0o600)
        print(f"Keypair written to {path}", file=sys.stderr)
    else:
        print(json.dumps(key_bytes))
    return 0


if __name__ == "__main__":
    sys.exit(main())
