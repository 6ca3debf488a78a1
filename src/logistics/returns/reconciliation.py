"""Reconciliation of in-flight return shipments against courier tracking.

Meant to run on a schedule (``python src/manage.py sync-returns``). Tracking
lookups run in a bounded thread pool; each result is applied on the calling
thread, only if the return is still in the status it had when it was read.
One shipment failing does not stop the batch.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from logistics.config import Settings
from logistics.courier.port import CourierPort
from logistics.returns.return_request import IN_FLIGHT_STATUSES, ReturnShipment, ReturnStatus
from logistics.returns.shipments import apply_courier_status

logger = structlog.get_logger(__name__)


@dataclass
class SyncSummary:
    checked: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class ReturnReconciler:
    def __init__(self, courier: CourierPort, settings: Settings):
        self.courier = courier
        self.settings = settings

    def pending_shipments(self) -> list[ReturnShipment]:
        repo = current_domain.repository_for(ReturnShipment)
        shipments = []
        for status in IN_FLIGHT_STATUSES:
            shipments.extend(repo._dao.query.filter(status=status.value).all().items)
        return shipments

    def run(self) -> SyncSummary:
        summary = SyncSummary()
        to_poll = []
        for shipment in self.pending_shipments():
            if shipment.tracking_number:
                to_poll.append(shipment)
            else:
                summary.skipped += 1

        with ThreadPoolExecutor(max_workers=self.settings.sync_max_workers) as pool:
            futures = {pool.submit(self.courier.fetch_tracking, s.tracking_number): s for s in to_poll}
            for future in as_completed(futures):
                shipment = futures[future]
                summary.checked += 1
                try:
                    snapshot = future.result()
                    changed = apply_courier_status(
                        shipment,
                        snapshot.status,
                        expected_status=ReturnStatus(shipment.status),
                        mapped_status=self.courier.map_status(snapshot.status),
                    )
                    if changed:
                        summary.updated += 1
                except Exception as exc:
                    summary.failed += 1
                    logger.error(
                        "Return shipment sync failed",
                        return_shipment_id=str(shipment.id),
                        tracking_number=shipment.tracking_number,
                        error=str(exc),
                    )

        logger.info(
            "Return shipments reconciled",
            checked=summary.checked,
            updated=summary.updated,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary
