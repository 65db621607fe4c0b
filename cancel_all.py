"""Script to force-clear every order of the configured pair, local and unknown."""
import argparse
import asyncio
import logging
import sys

from mmbot.config.config import Settings
from mmbot.infra.logging_cfg import build_logger
from mmbot.main import build_runtime


async def run(pair, side, assume_yes):
    cfg = Settings.load()
    build_logger("mmbot", level=logging.WARNING, file_path=cfg.log_file, use_rich=True)
    runtime = build_runtime(cfg)
    pair = pair or cfg.default_pair

    try:
        by_purpose = await runtime.stats.stats_by_purpose(pair)
        print(f"=== Locally stored open orders on {pair} ===")
        for key, bucket in by_purpose.items():
            if bucket.orders:
                print(f"  {bucket.purpose_name} ({key}): {bucket.buy_orders} buys, {bucket.sell_orders} sells")
        print(f"Total: {by_purpose['all'].orders}")

        confirm = "yes" if assume_yes else input(f"\nCancel ALL {pair} orders, including unknown ones? Type 'yes' to confirm: ")
        if confirm.lower() != "yes":
            print("Cancelled. No orders were modified.")
            return 0

        report = await runtime.collector.clear_all(pair, do_force=True, side=side, caller_name="cancel_all.py")
        print(f"\n{report.log_message}")
        return 0 if report.success else 1
    finally:
        await runtime.close()


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--pair", help="Pair to clear, e.g. BTC/USDC (default: MM_DEFAULT_PAIR)")
    parser.add_argument("--side", choices=["buy", "sell"], help="Only this side")
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.pair, args.side, args.yes)))


if __name__ == "__main__":
    main()
