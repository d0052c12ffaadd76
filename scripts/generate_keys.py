#!/usr/bin/env python3
"""
Generate keypair files for local testing.

This script generates:
- A program keypair (deploy/<name>-keypair.json) whose public key is the program id
- A signer keypair and the shell export line for the SIGNER variable
"""

import argparse
import json
from pathlib import Path

from txflow.tx.keys import write_keypair_file


def generate_keys(output_dir: str = "./deploy", program_name: str = "test", force: bool = False) -> dict:
    """
    Generate a program keypair and a signer keypair.

    Args:
        output_dir: Directory to save keys
        program_name: Program name used in the keypair file name
        force: Overwrite existing files

    Returns:
        Dictionary with key paths and public keys
    """
    output_path = Path(output_dir)

    program_path = output_path / f"{program_name}-keypair.json"
    program = write_keypair_file(program_path, overwrite=force)

    signer_path = output_path / "signer-keypair.json"
    signer = write_keypair_file(signer_path, overwrite=force)

    info = {
        "program_keypair_path": str(program_path),
        "program_id": str(program.pubkey()),
        "signer_keypair_path": str(signer_path),
        "signer_pubkey": str(signer.pubkey()),
    }

    info_path = output_path / "keys-info.json"
    with open(info_path, "w") as f:
        json.dump(info, f, indent=2)

    return info


def main():
    parser = argparse.ArgumentParser(description="Generate program and signer keypairs")
    parser.add_argument(
        "--output-dir",
        default="./deploy",
        help="Directory to save keys (default: ./deploy)",
    )
    parser.add_argument(
        "--program-name",
        default="test",
        help="Program name for the keypair file (default: test)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing keypair files",
    )

    args = parser.parse_args()

    print("=" * 60)
    print("Keypair Generator")
    print("=" * 60)

    info = generate_keys(args.output_dir, args.program_name, args.force)

    print(f"\nProgram keypair: {info['program_keypair_path']}")
    print(f"Program id:      {info['program_id']}")
    print(f"Signer keypair:  {info['signer_keypair_path']}")
    print(f"Signer pubkey:   {info['signer_pubkey']}")
    print("\nFund the signer on a local validator, then:")
    print(f"  export SIGNER=\"$(cat {info['signer_keypair_path']})\"")
    print("  txflow invoke")
    print("\n⚠️  Keep keypair files secret; they hold private keys in plain text.")


if __name__ == "__main__":
    main()
