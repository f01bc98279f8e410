"""Services package."""

from billwatch.services.backfill import BackfillResult, BackfillSummary, backfill_links
from billwatch.services.bill_scheduler import promote_due_bills, schedule_bill
from billwatch.services.cadence import bump_next_due, cadence_anchor, infer_cadence
from billwatch.services.clustering import ClusterKey, Occurrence, cluster_transactions, label_for
from billwatch.services.consistency import ConsistentCluster, filter_cluster
from billwatch.services.detection import DetectionItem, DetectionResult, detect_recurring_for_user
from billwatch.services.errors import (
    InfrastructureError,
    NotFoundError,
    RecurringError,
    UnauthorizedError,
    ValidationError,
)
from billwatch.services.match_linker import (
    BillMatch,
    BillMatchResult,
    PaycheckMatch,
    PaycheckMatchResult,
    match_bill,
    match_paycheck,
)
from billwatch.services.overview import Overview, build_overview
from billwatch.services.seeder import SeedSummary, seed_demo_recurring
from billwatch.services.series_registry import register_series, touch_series

__all__ = [
    "BackfillResult",
    "BackfillSummary",
    "BillMatch",
    "BillMatchResult",
    "ClusterKey",
    "ConsistentCluster",
    "DetectionItem",
    "DetectionResult",
    "InfrastructureError",
    "NotFoundError",
    "Occurrence",
    "Overview",
    "PaycheckMatch",
    "PaycheckMatchResult",
    "RecurringError",
    "SeedSummary",
    "UnauthorizedError",
    "ValidationError",
    "backfill_links",
    "build_overview",
    "bump_next_due",
    "cadence_anchor",
    "cluster_transactions",
    "detect_recurring_for_user",
    "filter_cluster",
    "infer_cadence",
    "label_for",
    "match_bill",
    "match_paycheck",
    "promote_due_bills",
    "register_series",
    "schedule_bill",
    "seed_demo_recurring",
    "touch_series",
]
