from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from brand_site_finder.config import load_config  # noqa: E402
from brand_site_finder.pipeline import run_once  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Find official websites for a list of brands")
    parser.add_argument("brands_file", help="JSON file with brands (list or {'allBrands': [...]})")
    parser.add_argument("--limit", type=int, default=None, help="Only process the first N brands")
    parser.add_argument("--scope", default=None, help="Checkpoint scope; separate scopes resume independently")
    parser.add_argument("--no-export", action="store_true", help="Skip writing the JSON/CSV report")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if not config.has_search_credentials:
        print("NAVER_CLIENT_ID and NAVER_CLIENT_SECRET must be set", file=sys.stderr)
        return 2

    stop_event = Event()

    def _request_stop(signum, _frame):
        logging.getLogger(__name__).warning("Signal %d received, stopping after the current brand", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    report = run_once(
        args.brands_file,
        config=config,
        stop_event=stop_event,
        scope=args.scope,
        limit=args.limit,
        export=not args.no_export,
    )
    print(
        f"Processed {report.processed}/{report.total_brands} brands: "
        f"{report.found} found ({report.success_rate}%), "
        f"{report.guessed} guessed, {report.searched} via search, "
        f"{report.api_requests}/{report.daily_quota_limit} API requests"
    )
    for kind, path in report.exports.items():
        print(f"{kind}: {path}")
    if report.aborted_reason:
        print(f"Run stopped early: {report.aborted_reason}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
