"""Example: Deploy a new auction and wait until it is readable."""

from __future__ import annotations

import os

from _common import build_session

ITEM = os.getenv("AUCTION_ITEM", "Vintage lamp")
DURATION_MINUTES = float(os.getenv("AUCTION_DURATION_MINUTES", "10"))


def main() -> None:
    """Deploy an FHEAuction contract (needs FHE_AUCTION_ARTIFACT for the bytecode)."""

    with build_session() as session:
        wallet = session.connect()
        print(f"Connected as {wallet.address} on chain {wallet.chain_id}")

        response = session.create_auction(ITEM, DURATION_MINUTES)
        if not response.success:
            print(f"Deployment failed: {response.error}")
            return

        print(f"Auction deployed at {response.address} (tx {response.transaction_hash})")
        if response.status is not None:
            print(f"Bidding closes at {response.status.end_time}")
        else:
            print("Status not visible yet; it will appear once RPC nodes catch up")


if __name__ == "__main__":
    main()
