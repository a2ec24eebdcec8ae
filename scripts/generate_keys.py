"""
Generate the ES256 (P-256) key pair used to sign and verify JWTs.

Writes `private.pem` (PKCS#8) and `public.pem` (SubjectPublicKeyInfo) into
the output directory, which is where `Settings.from_env()` looks when
JWT_PRIVATE_KEY / JWT_PUBLIC_KEY are not set.

Usage:
    python scripts/generate_keys.py [--out keys] [--force]
"""

import argparse
import sys
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


def generate_key_pair() -> tuple[bytes, bytes]:
    """Return (private_pem, public_pem) for a fresh P-256 key."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate an ES256 key pair for JWT signing")
    parser.add_argument("--out", type=str, default="keys", help="Output directory")
    parser.add_argument("--force", action="store_true", help="Overwrite existing key files")
    args = parser.parse_args()

    out_dir = Path(args.out)
    private_path = out_dir / "private.pem"
    public_path = out_dir / "public.pem"

    if not args.force and (private_path.exists() or public_path.exists()):
        print(f"Error: key files already exist in {out_dir} (use --force to overwrite)")
        return 1

    out_dir.mkdir(parents=True, exist_ok=True)
    private_pem, public_pem = generate_key_pair()
    private_path.write_bytes(private_pem)
    private_path.chmod(0o600)
    public_path.write_bytes(public_pem)

    print(f"Wrote {private_path}")
    print(f"Wrote {public_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
