import sys
import logging
import argparse

import httpx

from ctroots import utils
from ctroots.utils import COLOR_ERROR, COLOR_INFO, COLOR_OK, COLOR_RESET, COLOR_SUCCESS
from ctroots.loglist import build_log_key_index, load_log_list
from ctroots.rebuild import rebuild_store
from ctroots.store import StoreCorruptError, WriteOutcome, load_store
from ctroots.diff import diff_log_lists


def load_log_lists(sources):
    """Load every log-list source and check that every log key parses.

    Any failure is fatal for the run.
    """
    log_lists = []
    with httpx.Client(timeout=utils.REQUEST_TIMEOUT, follow_redirects=True) as client:
        for source in sources:
            print(f"{COLOR_INFO}Loading log list {source}{COLOR_RESET}")
            log_lists.append(load_log_list(source, client=client))
    keys = build_log_key_index(*log_lists)
    print(f"{COLOR_INFO}Indexed {len(keys)} log keys{COLOR_RESET}")
    return log_lists


def cmd_fetch(args) -> int:
    try:
        log_lists = load_log_lists(args.log_list or utils.LOG_LISTS)
    except (httpx.HTTPError, OSError, ValueError) as e:
        print(f"{COLOR_ERROR}Error loading log lists: {e}{COLOR_RESET}")
        return 1

    summary = rebuild_store(log_lists, store_dir=args.store, max_workers=args.max_workers)

    for url in sorted(summary.results):
        result = summary.results[url]
        outcome = summary.outcomes[url]
        size = len(result.body) if result.ok else 0
        color = COLOR_OK if outcome is WriteOutcome.WRITTEN else COLOR_ERROR
        print(f"{color}Accepted roots from {url} (Log ID: {result.endpoint.log_id.hex()}): "
              f"{size} bytes [{outcome.value}]{COLOR_RESET}")

    counts = summary.counts()
    print(f"\n{COLOR_SUCCESS}Download complete. Retrieved accepted roots from "
          f"{counts[WriteOutcome.WRITTEN]} of {summary.logs} logs "
          f"({summary.bytes_retrieved} bytes).{COLOR_RESET}")
    failed = summary.logs - counts[WriteOutcome.WRITTEN]
    if failed:
        print(f"{COLOR_ERROR}{failed} log(s) were not written; see log output above.{COLOR_RESET}")
    return 0


def cmd_list(args) -> int:
    try:
        roots = load_store(args.store)
    except (FileNotFoundError, StoreCorruptError) as e:
        print(f"{COLOR_ERROR}Error loading accepted roots: {e}{COLOR_RESET}")
        return 1

    for log_id, digest in sorted(roots.hash_by_log.items()):
        certs = roots.roots_for_log(log_id)
        if certs is None:
            print(f"No accepted roots found for log with ID {log_id.hex()}")
            continue
        print(f"\n{log_id.hex()} ({digest.hex()})")
        for cert in certs:
            print(f"  {cert.subject.rfc4514_string()}")
    return 0


def cmd_diff(args) -> int:
    try:
        a, b = load_log_lists([args.list1, args.list2])
    except (httpx.HTTPError, OSError, ValueError) as e:
        print(f"{COLOR_ERROR}Error loading log lists: {e}{COLOR_RESET}")
        return 1
    for line in diff_log_lists(a, b, args.list1, args.list2):
        print(line)
    return 0


# =========================================================
# Main Roots Tool CLI Logic
# =========================================================

def build_parser():
    parser = argparse.ArgumentParser(description="CT log accepted-roots store tool.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Command: Fetch
    fetch_parser = subparsers.add_parser("fetch", help="Download every log's accepted roots into the store.")
    fetch_parser.add_argument("--log-list", action="append",
                              help="Log-list file or URL (repeatable; default: CTROOTS_LOG_LISTS or the gstatic and Apple lists).")
    fetch_parser.add_argument("--store", default=None, help="Store directory (default: CTROOTS_STORE_DIR).")
    fetch_parser.add_argument("--max-workers", type=int, default=None, help="Maximum concurrent downloads.")

    # Command: List
    list_parser = subparsers.add_parser("list", help="Print the accepted roots recorded for each log.")
    list_parser.add_argument("--store", default=None, help="Store directory (default: CTROOTS_STORE_DIR).")

    # Command: Diff
    diff_parser = subparsers.add_parser("diff", help="Compare two log lists.")
    diff_parser.add_argument("list1", help="First log-list file or URL.")
    diff_parser.add_argument("list2", help="Second log-list file or URL.")
    return parser


COMMANDS = {"fetch": cmd_fetch, "list": cmd_list, "diff": cmd_diff}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
