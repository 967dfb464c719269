#!/usr/bin/env python3
"""
build_bank.py - Validate and encrypt plaintext JSON assignment banks.

A bank holds one assignment ({"assignment": {...}, "questions": [...]}) or
several ({"assignments": [...]}).

Usage with key file:
    python tools/build_bank.py --in quiz_week3.json --out banks/quiz_week3.enc --key-file COURSE.key

Usage with password:
    python tools/build_bank.py --in quiz_week3.json --out banks/quiz_week3.enc --password
"""

import argparse
import getpass
import hashlib
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from cryptography.fernet import Fernet

from quiz_session.crypto import encrypt_with_password
from quiz_session.models import AssignmentContent


def validate_bank(bank_data: dict) -> list:
    """
    Parse every assignment in the bank.

    Returns:
        List of AssignmentContent objects

    Raises:
        ValueError: If any assignment or question is malformed
    """
    if not isinstance(bank_data, dict):
        raise ValueError("Bank must be a JSON object")
    entries = bank_data['assignments'] if 'assignments' in bank_data else [bank_data]

    contents = []
    seen_ids = set()
    for entry in entries:
        content = AssignmentContent.from_dict(entry)
        if not content.assignment.id:
            raise ValueError("Every assignment in a bank needs an id")
        if content.assignment.id in seen_ids:
            raise ValueError(f"Duplicate assignment id: {content.assignment.id}")
        seen_ids.add(content.assignment.id)
        if sum(q.marks for q in content.questions) != content.assignment.total_marks:
            print(f"  [!] {content.assignment.id}: totalMarks differs from the sum of question marks")
        contents.append(content)
    return contents


def build_bank(in_file: str, out_file: str, key_file: str = None, use_password: bool = False) -> None:
    """Encrypt a plaintext JSON assignment bank."""
    try:
        with open(in_file, 'rb') as f:
            plaintext = f.read()

        try:
            contents = validate_bank(json.loads(plaintext))
        except json.JSONDecodeError as e:
            print(f"[ERROR] Invalid JSON in input file: {e}", file=sys.stderr)
            sys.exit(1)
        except ValueError as e:
            print(f"[ERROR] Invalid bank: {e}", file=sys.stderr)
            sys.exit(1)

        print("[OK] Input bank validated")
        for content in contents:
            info = content.assignment
            duration = f"{info.duration_minutes} min" if info.duration_minutes else "no limit"
            print(f"  {info.id}: {info.title or '(untitled)'} - "
                  f"{len(content.questions)} question(s), {info.total_marks} marks, {duration}")

        if use_password:
            password = getpass.getpass("Enter encryption password: ")
            password_confirm = getpass.getpass("Confirm password: ")

            if password != password_confirm:
                print("[ERROR] Passwords do not match", file=sys.stderr)
                sys.exit(1)

            if len(password) < 8:
                print("[ERROR] Password must be at least 8 characters", file=sys.stderr)
                sys.exit(1)

            final_data = encrypt_with_password(plaintext, password)
        else:
            with open(key_file, 'rb') as f:
                key = f.read().strip()
            final_data = Fernet(key).encrypt(plaintext)

        sha256_hash = hashlib.sha256(final_data).hexdigest()

        Path(out_file).parent.mkdir(parents=True, exist_ok=True)
        with open(out_file, 'wb') as f:
            f.write(final_data)

        print(f"\n[OK] Success: Bank encrypted")
        print(f"  Input: {in_file} ({len(plaintext)} bytes)")
        print(f"  Output: {out_file} ({len(final_data)} bytes)")
        print(f"  Method: {'Password-based' if use_password else 'Key file'}")
        print(f"  SHA256: {sha256_hash}")

    except FileNotFoundError as e:
        print(f"[ERROR] File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"[ERROR] Error encrypting bank: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(
        description="Validate and encrypt a plaintext JSON assignment bank.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/build_bank.py --in quiz_week3.json --out banks/quiz_week3.enc --key-file COURSE.key
  python tools/build_bank.py --in quiz_week3.json --out banks/quiz_week3.enc --password

Notes:
  - Every question is validated before encryption
  - Output directory will be created if it doesn't exist
  - Produces SHA256 checksum for verification
        """
    )
    parser.add_argument(
        "--in",
        dest="in_file",
        required=True,
        help="Input plaintext JSON bank"
    )
    parser.add_argument(
        "--out",
        required=True,
        help="Output encrypted bank file (.enc)"
    )
    method = parser.add_mutually_exclusive_group(required=True)
    method.add_argument(
        "--key-file",
        help="File containing the Fernet key"
    )
    method.add_argument(
        "--password",
        action="store_true",
        help="Use password-based encryption instead of a key file"
    )

    args = parser.parse_args()
    build_bank(args.in_file, args.out, args.key_file, args.password)


if __name__ == "__main__":
    main()
