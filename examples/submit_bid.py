"""Example: Submit an encrypted bid to an auction."""

from __future__ import annotations

import os

from _common import build_session


def main() -> None:
    auction = os.getenv("AUCTION_ADDRESS")
    if not auction:
        raise ValueError("AUCTION_ADDRESS not found in environment variables")
    bid = int(os.getenv("BID_AMOUNT", "100"))

    with build_session() as session:
        session.connect()
        opened = session.open_auction(auction)
        if not opened.success:
            print(f"Cannot open auction: {opened.error}")
            return

        print(f"Submitting encrypted bid of {bid} to {session.display_title(auction)!r}")
        response = session.submit_bid(bid)
        if not response.success:
            print(f"Bid failed ({response.error_type}): {response.error}")
            return

        tx = response.raw_response or {}
        print(f"Bid tx hash: {response.transaction_hash}")
        if tx.get("block_number") is not None:
            print(f"Included in block: {tx.get('block_number')}")


if __name__ == "__main__":
    main()
