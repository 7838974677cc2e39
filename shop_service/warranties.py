"""
warranties.py — Warranty Lifecycle Engine

Issues one warranty per purchased line item, answers status queries and
drives the warranty state machine:

    ACTIVE ──(daily sweep, end date passed)──> EXPIRED
    ACTIVE ──(order cancelled / admin void)──> VOIDED

EXPIRED and VOIDED are terminal. Claims do not change the status; they set
the claim flag, counter and timestamp. The status is never derived on read:
an ACTIVE warranty whose end date has passed stays ACTIVE until the sweep runs.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import List, Optional

from . import config
from .entities import Order, OrderItem, Product, Warranty, WarrantyStatus, add_months
from .errors import InvalidStateError, NotFoundError
from .stores import ShopStores

log = logging.getLogger(__name__)


class WarrantyService:
    """Warranty issuance, queries, claims, voiding and expiry."""

    def __init__(self, stores: ShopStores):
        self.stores = stores
        self.warranties = stores.warranties

    def generate_warranty_number(self) -> str:
        while True:
            number = "WRN-" + uuid.uuid4().hex[:12].upper()
            if not self.warranties.number_exists(number):
                return number

    def issue_warranty(self, order: Order, item: OrderItem, product: Product,
                       purchase_date: date = None) -> Warranty:
        """
        Creates the ACTIVE warranty for one order line.

        Args:
            order (Order): The originating order; supplies the owner.
            item (OrderItem): The purchased line.
            product (Product): The live product; supplies the warranty period and serial number.
            purchase_date (date): Start of the warranty, defaults to today.

        Returns:
            Warranty: The stored warranty, ending warrantyPeriodMonths after the start.
        """
        purchase_date = purchase_date or date.today()
        with self.stores.lock:
            warranty = Warranty(
                warranty_number=self.generate_warranty_number(),
                product_id=item.product_id,
                user_id=order.user_id,
                order_id=order.id,
                serial_number=product.serial_number,
                purchase_date=purchase_date,
                warranty_start_date=purchase_date,
                warranty_end_date=add_months(purchase_date, product.warranty_period_months),
            )
            self.warranties.add(warranty)
        log.info(
            f"[Warranty: {warranty.warranty_number}] Issued for order {order.order_number}, "
            f"product {item.product_sku}, valid until {warranty.warranty_end_date}."
        )
        return warranty

    # --- Queries ---

    def get_warranty(self, warranty_id: int) -> Warranty:
        return self.warranties.get(warranty_id)

    def get_warranty_by_number(self, warranty_number: str) -> Warranty:
        return self.warranties.get_by_number(warranty_number)

    def get_warranty_by_serial_number(self, serial_number: str) -> Warranty:
        # Serial numbers are copied from the product, so several warranties can share one.
        matches = self.warranties.find(lambda w: w.serial_number == serial_number)
        if not matches:
            raise NotFoundError("Warranty", "serialNumber", serial_number)
        return matches[0]

    def list_by_user(self, user_id: int) -> List[Warranty]:
        return self.warranties.find(lambda w: w.user_id == user_id)

    def list_by_order(self, order_id: int) -> List[Warranty]:
        return self.warranties.find(lambda w: w.order_id == order_id)

    def list_all(self) -> List[Warranty]:
        return self.warranties.all()

    def list_by_status(self, status: WarrantyStatus) -> List[Warranty]:
        return self.warranties.find(lambda w: w.status == status)

    def list_expiring(self, days_ahead: int, today: date = None) -> List[Warranty]:
        """ACTIVE warranties ending between today and today + days_ahead, both inclusive."""
        today = today or date.today()
        until = today + timedelta(days=days_ahead)
        return self.warranties.find(
            lambda w: w.status == WarrantyStatus.ACTIVE and today <= w.warranty_end_date <= until
        )

    def list_expiring_soon(self, today: date = None) -> List[Warranty]:
        return self.list_expiring(config.EXPIRING_SOON_DAYS, today)

    def count_by_status(self, status: WarrantyStatus) -> int:
        return len(self.list_by_status(status))

    def count_expiring_soon(self, today: date = None) -> int:
        return len(self.list_expiring_soon(today))

    # --- Transitions ---

    def file_claim(self, warranty_id: int, notes: Optional[str], today: date = None) -> Warranty:
        """
        Records a claim against a valid warranty.

        Raises:
            NotFoundError: If the warranty does not exist.
            InvalidStateError: If the warranty is not ACTIVE or its end date has been reached.
        """
        with self.stores.lock:
            warranty = self.warranties.get(warranty_id)
            if not warranty.is_valid(today):
                raise InvalidStateError("Warranty is not valid for claims")

            warranty.claim_filed = True
            warranty.claim_count += 1
            warranty.last_claim_date = datetime.now()
            warranty.notes = notes
            warranty.updated_at = warranty.last_claim_date
        log.info(f"[Warranty: {warranty.warranty_number}] Claim #{warranty.claim_count} filed.")
        return warranty

    def void_warranty(self, warranty_id: int) -> Warranty:
        """
        Voids a warranty on admin request. Voiding a VOIDED warranty is a no-op.

        Raises:
            InvalidStateError: If the warranty has already EXPIRED.
        """
        with self.stores.lock:
            warranty = self.warranties.get(warranty_id)
            if warranty.status == WarrantyStatus.VOIDED:
                return warranty
            if warranty.status == WarrantyStatus.EXPIRED:
                raise InvalidStateError("Expired warranties cannot be voided")
            self._void(warranty)
        log.info(f"[Warranty: {warranty.warranty_number}] Voided by admin.")
        return warranty

    def void_warranties_by_order(self, order_id: int) -> List[Warranty]:
        """Voids every non-terminal warranty issued for an order and returns them."""
        with self.stores.lock:
            voided = [
                self._void(w) for w in self.list_by_order(order_id)
                if w.status not in (WarrantyStatus.EXPIRED, WarrantyStatus.VOIDED)
            ]
        if voided:
            log.info(f"[Order id: {order_id}] Voided {len(voided)} warranties.")
        return voided

    def expire_stale_warranties(self, today: date = None) -> int:
        """
        Moves ACTIVE warranties whose end date is before today to EXPIRED.

        Safe to run repeatedly: a second run on the same day finds nothing.

        Returns:
            int: The number of warranties expired by this run.
        """
        today = today or date.today()
        log.info("Running warranty expiry sweep.")
        with self.stores.lock:
            stale = self.warranties.find(
                lambda w: w.status == WarrantyStatus.ACTIVE and w.warranty_end_date < today
            )
            now = datetime.now()
            for warranty in stale:
                warranty.status = WarrantyStatus.EXPIRED
                warranty.updated_at = now
        log.info(f"Updated {len(stale)} expired warranties.")
        return len(stale)

    @staticmethod
    def _void(warranty: Warranty) -> Warranty:
        warranty.status = WarrantyStatus.VOIDED
        warranty.updated_at = datetime.now()
        return warranty
