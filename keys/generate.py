"""
Write the local development RSA key pair used to sign Taskboard tokens.

``taskboard.config.load_jwt_keys`` falls back to ``keys/dev.private.pem``
and ``keys/dev.public.pem`` when no ``JWT_*`` variables are set, so running
this once is enough for ``flask run`` on a workstation.  Production keys
are injected through the environment instead.

Usage::

    python keys/generate.py [--force] [--bits 3072]
"""

from __future__ import annotations

from pathlib import Path

import click
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

KEYS_DIR = Path(__file__).resolve().parent
PRIVATE_KEY_PATH = KEYS_DIR / "dev.private.pem"
PUBLIC_KEY_PATH = KEYS_DIR / "dev.public.pem"


def generate_pem_pair(bits: int = 2048) -> tuple[bytes, bytes]:
    """Return ``(private_pem, public_pem)`` for a fresh RSA key."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
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


@click.command()
@click.option("--force", is_flag=True, help="Overwrite an existing key pair.")
@click.option("--bits", default=2048, show_default=True, type=click.IntRange(min=2048))
def main(force: bool, bits: int) -> None:
    existing = [p for p in (PRIVATE_KEY_PATH, PUBLIC_KEY_PATH) if p.exists()]
    if len(existing) == 2 and not force:
        click.echo(f"Key pair already present in {KEYS_DIR}; use --force to replace it.")
        return
    if len(existing) == 1 and not force:
        raise click.ClickException(
            f"Only {existing[0].name} exists. Re-run with --force to write a matching pair."
        )

    private_pem, public_pem = generate_pem_pair(bits)
    PRIVATE_KEY_PATH.write_bytes(private_pem)
    PRIVATE_KEY_PATH.chmod(0o600)
    PUBLIC_KEY_PATH.write_bytes(public_pem)
    click.echo(f"Wrote {PRIVATE_KEY_PATH.name} and {PUBLIC_KEY_PATH.name} to {KEYS_DIR}")


if __name__ == "__main__":
    main()
