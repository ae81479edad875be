"""Sign a strategy and build its stored payload.

This example builds a single Collection leaf, signs its root with a local
private key and prints the JSON payload that would be pinned next to the tree.

Prerequisites:
1. pip install lending-strategy-sdk[examples]
2. Set environment variables (STRATEGIST_PRIVATE_KEY, VERIFYING_CONTRACT,
   optionally CHAIN_ID and COLLECTION_ADDRESS)

Usage:
    python sign_strategy.py
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


def main():
    from eth_account import Account

    from lending_strategy_sdk import (
        Collection,
        JsonPayload,
        Lien,
        ZERO_ADDRESS,
        build_json_payload,
        create_strategy,
        create_strategy_typed_data,
        format_wad,
        parse_wad,
        sign_strategy,
        validate_leaf_order,
        with_leaf,
    )

    logging.basicConfig(level=logging.DEBUG)

    # Configuration from environment
    PRIVATE_KEY = os.environ.get("STRATEGIST_PRIVATE_KEY")
    VERIFYING_CONTRACT = os.environ.get("VERIFYING_CONTRACT")
    CHAIN_ID = int(os.environ.get("CHAIN_ID", "1"))
    COLLECTION_ADDRESS = os.environ.get(
        "COLLECTION_ADDRESS", "0xBC4CA0EdA7647A8aB7C2061c2E118A18a936f13D"
    )

    # Validate required env vars
    required = ["STRATEGIST_PRIVATE_KEY", "VERIFYING_CONTRACT"]
    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        print(f"Missing required environment variables: {', '.join(missing)}")
        return

    print("=" * 60)
    print("  SIGN STRATEGY")
    print("=" * 60)

    strategist = Account.from_key(PRIVATE_KEY).address
    config = {"verifying_contract": VERIFYING_CONTRACT, "chain_id": CHAIN_ID}

    print("\n[1] Creating configuration leaf...")
    strategy = create_strategy(delegate=strategist, nonce=1, deadline_seconds=3600)
    print(f"    Delegate:   {strategy.delegate}")
    print(f"    Expiration: {strategy.expiration}")
    print(f"    New vault:  {strategy.opens_new_vault}")

    print("\n[2] Creating Collection leaf...")
    row = with_leaf(
        Collection(
            token=COLLECTION_ADDRESS,
            borrower=ZERO_ADDRESS,  # any borrower
            lien=Lien(
                amount=parse_wad("1"),
                rate=1,
                duration=86400,
                max_potential_debt=0,
                liquidation_initial_ask=parse_wad("2"),
            ),
        )
    )
    validate_leaf_order([strategy, row])
    print(f"    Amount: {format_wad(row.lien.amount)} WETH")
    print(f"    Leaf:   {row.leaf}")

    # A single-leaf tree has the leaf as its root; larger trees are
    # built by the Merkle tree service
    root = row.leaf

    print("\n[3] Signing StrategyDetails...")
    typed_data = create_strategy_typed_data(strategy, root, config)
    signature = sign_strategy(PRIVATE_KEY, typed_data).validate()
    print(f"    Signature: {signature.serialized[:20]}...")

    print("\n[4] Building payload...")
    payload = build_json_payload([row], signature)
    text = payload.to_json()
    assert JsonPayload.from_json(text) == payload
    print(text)


if __name__ == "__main__":
    main()
