"""Match reconciliation script.

Promotes pairs of mutual likes that were recorded without forming a match
(two users liking each other at the same instant), then retries match events
whose conversation could not be provisioned earlier.
"""

import argparse

from matchgate.services import build_event_processor, build_reconciler
from matchgate.utils.database import init_database
from matchgate.utils.errors import MatchGateError
from matchgate.utils.logging import configure_logging, get_logger, log_error

logger = get_logger(__name__)


def reconcile_matches(limit: int = 100) -> int:
    """Run one reconciliation pass and one retry pass.

    Args:
        limit: Maximum pairs and events to handle in each pass.

    Returns:
        Number of matches formed by reconciliation.
    """
    init_database()

    formed = build_reconciler().reconcile(limit)
    retried = build_event_processor().process_pending(limit)

    logger.info(f"Reconciliation complete. Formed {formed} matches, processed {retried} pending events.")
    return formed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Promote unmatched mutual likes and retry match events.")
    parser.add_argument("--limit", type=int, default=100, help="maximum pairs/events per pass")
    args = parser.parse_args()

    configure_logging()
    try:
        reconcile_matches(args.limit)
    except MatchGateError as e:
        log_error(logger, e, "Match reconciliation failed")
        raise SystemExit(1) from e
