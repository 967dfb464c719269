#!/usr/bin/env python3
"""
keygen.py - Generate Fernet keys for assignment banks.

Usage:
    python tools/keygen.py --out COURSE.key
    python tools/keygen.py --stdout

Note: build_bank.py --password encrypts with a password instead of a key file.
"""

import argparse
import sys
from pathlib import Path

from cryptography.fernet import Fernet


def generate_key(output_file: str = None) -> bytes:
    """Generate a new Fernet key, optionally saving it to a file."""
    key = Fernet.generate_key()
    if output_file is None:
        return key

    path = Path(output_file)
    if path.exists():
        raise FileExistsError(f"{path} already exists; refusing to overwrite a key")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(key)
    return key


def main():
    parser = argparse.ArgumentParser(
        description="Generate a new Fernet key for assignment banks.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/keygen.py --out COURSE.key
  python tools/keygen.py --stdout

Security Notes:
  - Never distribute keys with encrypted banks
  - Use a new key for each exam session
        """
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--out",
        help="Output file path for the key (e.g., COURSE.key)"
    )
    target.add_argument(
        "--stdout",
        action="store_true",
        help="Print the key instead of writing a file"
    )

    args = parser.parse_args()

    try:
        key = generate_key(args.out)
    except OSError as e:
        print(f"[ERROR] Error generating key: {e}", file=sys.stderr)
        sys.exit(1)

    if args.stdout:
        print(key.decode('utf-8'))
        return

    print(f"[OK] Success: Encryption key generated")
    print(f"  Output: {args.out}")
    print(f"\n[!] SECURITY: Store this key securely. Never commit to version control.")


if __name__ == "__main__":
    main()
