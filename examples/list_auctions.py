"""Example: List registered auctions and their on-chain status."""

from __future__ import annotations

from _common import build_session

from fhe_auction import Incompatible, Loaded


def main() -> None:
    with build_session() as session:
        entries = session.refresh_all()
        if not entries:
            print("No auctions registered yet; set FHE_AUCTION_SEED_AUCTIONS or add one")
            return

        for address, entry in entries.items():
            if isinstance(entry, Loaded):
                status = entry.status
                state = "settled" if status.settled else f"ends at {status.end_time}"
                print(f"{address}  {session.display_title(address)!r}  {state}")
            elif isinstance(entry, Incompatible):
                print(f"{address}  not a compatible auction contract")
            else:
                print(f"{address}  status unavailable")


if __name__ == "__main__":
    main()
