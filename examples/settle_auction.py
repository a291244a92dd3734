"""Example: Settle an auction whose bidding window has closed."""

from __future__ import annotations

import os

from _common import build_session


def main() -> None:
    auction = os.getenv("AUCTION_ADDRESS")
    if not auction:
        raise ValueError("AUCTION_ADDRESS not found in environment variables")

    with build_session() as session:
        session.connect()
        opened = session.open_auction(auction)
        if not opened.success:
            print(f"Cannot open auction: {opened.error}")
            return

        response = session.settle()
        if not response.success:
            print(f"Settlement failed ({response.error_type}): {response.error}")
            return

        print(f"Settled with {len(response.bidders)} bidder(s): {response.transaction_hash}")
        status = response.status
        if status is not None and status.settled:
            print(f"Winning bid handle: {status.winning_bid_enc}")
            print(f"Winning index handle: {status.winning_index_enc}")


if __name__ == "__main__":
    main()
