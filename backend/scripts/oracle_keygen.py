import argparse
import json

from loguru import logger

from app.core.config import get_settings
from oracle import format_oracle_address, generate_oracle_keypair


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Derive the oracle Ed25519 public key from ORACLE_SEED_HEX, or generate a new seed"
    )
    parser.add_argument(
        "--generate",
        action="store_true",
        help="Ignore the configured seed and print a freshly generated one",
    )
    parser.add_argument(
        "--seed-hex",
        default=None,
        help="Explicit 32-byte hex seed (overrides ORACLE_SEED_HEX)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    if args.generate:
        keypair = generate_oracle_keypair()
    else:
        seed_hex = args.seed_hex
        if seed_hex:
            seed = bytes.fromhex(seed_hex.removeprefix("0x"))
        else:
            seed = get_settings().oracle_seed
        if seed is None:
            raise SystemExit("No seed configured: set ORACLE_SEED_HEX, pass --seed-hex or use --generate")
        keypair = generate_oracle_keypair(seed)

    output = {"public_key": keypair.public_key_hex}
    if args.generate:
        output["seed"] = keypair.seed.hex()
        logger.warning("Store the generated seed securely; it is the oracle signing key")
    logger.info("Oracle {}", format_oracle_address(keypair.public_key_hex))
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
