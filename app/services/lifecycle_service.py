"""
Order lifecycle controller - the single authority for order state transitions.

Every operation follows the same shape:

1. load (or receive) an ``OrderSnapshot``;
2. validate against the flow policy, the sub-workflow state and the payment
   gate - a refused transition returns ``TransitionResult.refused(reason)``
   and writes nothing;
3. open one store transaction, claim the order row (optimistic version
   check) and issue the persistence calls; any failure rolls back all of it.

Driver status and counters are mutated only from here.
"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Union

from app.blueprints.metrics import lifecycle_operations_total
from app.domain.enums import (
    DeliveryStatus, DriverStatus, EntryType, HANDOFF_STEPS, OrderStatus,
    TaskKind, TransitionReason, normalize_payment_method,
)
from app.domain.snapshots import (
    LEG_COMPLETE, LEG_START, DeliveryLeg, OrderSnapshot, PickupLeg, ServiceLeg,
    TransitionResult,
)
from app.exceptions import (
    BusinessLogicError, DriverUnavailableError, PaymentRequiredError,
)
from app.services.cash_ledger_service import (
    CATEGORY_ORDER_PAYMENT, CashLedger, order_payment_key,
)
from app.services.driver_registry import DriverStore
from app.services.flow_policy import FlowPolicy
from app.services.order_store import OrderStore

logger = logging.getLogger(__name__)

OrderRef = Union[OrderSnapshot, int]


class OrderLifecycleController:
    """
    Validates and applies order transitions.

    Args:
        order_store: Order persistence (see ``OrderStore``)
        driver_store: Driver persistence (see ``DriverStore``)
        cash_ledger: Cash register sink (see ``CashLedger``)
        flow_policy: Active step configuration for this call
        allow_reassignment: Whether a task that has a driver but has not
            started may be handed to a different driver
        clock: Returns "now"; injectable for tests
    """

    def __init__(
        self,
        order_store: OrderStore,
        driver_store: DriverStore,
        cash_ledger: CashLedger,
        flow_policy: FlowPolicy,
        allow_reassignment: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.order_store = order_store
        self.driver_store = driver_store
        self.cash_ledger = cash_ledger
        self.flow_policy = flow_policy
        self.allow_reassignment = allow_reassignment
        self.clock = clock or datetime.now

    # ------------------------------------------------------------------
    # Main pipeline
    # ------------------------------------------------------------------

    def advance(self, order: OrderRef) -> TransitionResult:
        """Move the order to the next active step."""
        order = self._load(order)
        target = self.flow_policy.next_step(order.status)
        if target is None:
            return self._refuse('advance', order, TransitionReason.NO_NEXT_STEP)
        if order.status == OrderStatus.PENDING_PICKUP and isinstance(order.pickup, PickupLeg) \
                and not order.pickup.is_terminal:
            return self._refuse('advance', order, TransitionReason.PICKUP_NOT_RECEIVED)
        if target in HANDOFF_STEPS:
            return self._refuse('advance', order, TransitionReason.HANDOFF_REQUIRED)

        def apply(now):
            self.order_store.persist_status(order.id, target, now)

        return self._commit('advance', order, apply, target)

    def regress(self, order: OrderRef) -> TransitionResult:
        """Move the order back to the previous active step."""
        order = self._load(order)
        if order.status in HANDOFF_STEPS:
            return self._refuse('regress', order, TransitionReason.HANDOFF_REQUIRED)
        # A delivery on its way pins the order at ready_delivery
        if isinstance(order.delivery, DeliveryLeg) and not order.delivery.is_initial:
            return self._refuse('regress', order, TransitionReason.TASK_ALREADY_STARTED)
        target = self.flow_policy.previous_step(order.status)
        if target is None:
            return self._refuse('regress', order, TransitionReason.NO_PREVIOUS_STEP)
        if target == OrderStatus.PENDING_PICKUP and not (
            isinstance(order.pickup, PickupLeg) and not order.pickup.is_terminal
        ):
            return self._refuse('regress', order, TransitionReason.PICKUP_NOT_PENDING)

        def apply(now):
            self.order_store.persist_status(order.id, target, now)

        return self._commit('regress', order, apply, target)

    def mark_handed_off_at_store(self, order: OrderRef) -> TransitionResult:
        """
        Hand a ready order to the customer at the counter.

        Raises:
            PaymentRequiredError: The order still has an outstanding balance
        """
        order = self._load(order)
        if order.status == OrderStatus.DELIVERED:
            return self._refuse('handoff', order, TransitionReason.ALREADY_COMPLETED)
        if order.needs_delivery:
            return self._refuse('handoff', order, TransitionReason.DELIVERY_REQUIRED)
        if order.status != OrderStatus.READY_DELIVERY:
            return self._refuse('handoff', order, TransitionReason.NOT_READY)
        if not order.is_paid:
            self._count('handoff', 'payment_required')
            raise PaymentRequiredError(order.id, order.ticket_code, order.outstanding)

        def apply(now):
            self.order_store.persist_status(order.id, OrderStatus.DELIVERED, now, delivered_at=now)

        return self._commit('handoff', order, apply, OrderStatus.DELIVERED)

    def collect_payment_and_complete(self, order: OrderRef, amount_to_collect,
                                     method: str = 'CASH') -> TransitionResult:
        """
        Collect the outstanding balance and hand the order off, atomically.

        ``amount_to_collect`` is what the customer hands over; it must cover
        the balance and any excess is returned as ``change_due``. Orders
        without delivery are handed off at the store; orders with delivery
        must have their delivery in transit and get it completed.
        """
        order = self._load(order)
        try:
            method = normalize_payment_method(method)
        except ValueError as e:
            raise BusinessLogicError(str(e))
        try:
            amount = Decimal(str(amount_to_collect)).quantize(Decimal('0.01'))
        except (InvalidOperation, ValueError):
            raise BusinessLogicError(f'Monto inválido: {amount_to_collect}')
        if amount < 0:
            raise BusinessLogicError('El monto cobrado no puede ser negativo')

        if order.status == OrderStatus.DELIVERED:
            return self._refuse('collect', order, TransitionReason.ALREADY_COMPLETED)

        delivery = order.delivery
        if isinstance(delivery, DeliveryLeg):
            if delivery.status == DeliveryStatus.PENDING_DELIVERY:
                return self._refuse('collect', order, TransitionReason.TASK_NOT_STARTED)
        elif order.status != OrderStatus.READY_DELIVERY:
            return self._refuse('collect', order, TransitionReason.NOT_READY)

        shortfall = order.outstanding
        if amount < shortfall:
            return self._refuse('collect', order, TransitionReason.INSUFFICIENT_PAYMENT)

        def apply(now):
            self.order_store.persist_payment(order.id, order.total_amount, True)
            if shortfall > 0:
                self.cash_ledger.append_entry(
                    amount=shortfall,
                    entry_type=EntryType.INCOME,
                    category=CATEGORY_ORDER_PAYMENT,
                    description=f'Cobro pedido {order.ticket_code}',
                    order_id=order.id,
                    payment_method=method,
                    idempotency_key=order_payment_key(order.id),
                )
            if isinstance(delivery, DeliveryLeg):
                self._apply_completion(order, TaskKind.DELIVERY, delivery, now)
            else:
                self.order_store.persist_status(order.id, OrderStatus.DELIVERED, now, delivered_at=now)

        result = self._commit('collect', order, apply, OrderStatus.DELIVERED)
        return TransitionResult(applied=True, order=result.order, change_due=amount - shortfall)

    # ------------------------------------------------------------------
    # Pickup / delivery tasks
    # ------------------------------------------------------------------

    def assign_driver(self, order: OrderRef, kind, driver_id: int) -> TransitionResult:
        """Put a driver on the order's pickup or delivery while it is still pending."""
        order = self._load(order)
        kind = TaskKind(kind)
        leg = order.leg(kind)
        if leg is None:
            return self._refuse('assign', order, TransitionReason.NO_SUCH_TASK)
        if not leg.is_initial:
            return self._refuse('assign', order, TransitionReason.TASK_ALREADY_STARTED)
        if leg.driver_id == driver_id:
            return self._refuse('assign', order, TransitionReason.ALREADY_ASSIGNED)
        if leg.driver_id is not None and not self.allow_reassignment:
            return self._refuse('assign', order, TransitionReason.ALREADY_ASSIGNED)

        driver = self.driver_store.fetch_driver(driver_id)
        if driver is None:
            raise DriverUnavailableError(driver_id, 'no existe')
        if not driver.can_take_tasks:
            self._count('assign', 'driver_unavailable')
            raise DriverUnavailableError(driver_id, 'fuera de servicio')
        previous = self.driver_store.fetch_driver(leg.driver_id) if leg.driver_id is not None else None

        def apply(now):
            if kind == TaskKind.PICKUP:
                self.order_store.persist_pickup_assignment(order.id, driver_id)
            else:
                self.order_store.persist_delivery_assignment(order.id, driver_id)
            self.driver_store.persist_driver_status(
                driver.id, DriverStatus.DELIVERING, driver.current_orders + 1, driver.completed_today
            )
            if previous is not None:
                self._release_driver(previous, completed=False, now=now)

        return self._commit('assign', order, apply, order.status)

    def start_task(self, order: OrderRef, kind) -> TransitionResult:
        """pending_pickup -> on_way_to_store, or pending_delivery -> in_transit."""
        order = self._load(order)
        kind = TaskKind(kind)
        leg = order.leg(kind)
        if leg is None:
            return self._refuse('start', order, TransitionReason.NO_SUCH_TASK)
        if not leg.is_initial:
            return self._refuse('start', order, TransitionReason.TASK_ALREADY_STARTED)
        if leg.driver_id is None:
            return self._refuse('start', order, TransitionReason.NO_DRIVER)
        if kind == TaskKind.DELIVERY and order.status != OrderStatus.READY_DELIVERY:
            return self._refuse('start', order, TransitionReason.NOT_READY)

        target_status = order.status
        if kind == TaskKind.DELIVERY and self.flow_policy.is_active(OrderStatus.IN_TRANSIT):
            target_status = OrderStatus.IN_TRANSIT

        def apply(now):
            new_status = LEG_START[leg.status]
            if kind == TaskKind.PICKUP:
                self.order_store.persist_pickup_sub_status(order.id, new_status)
            else:
                self.order_store.persist_delivery_sub_status(order.id, new_status)
                if target_status != order.status:
                    self.order_store.persist_status(order.id, target_status, now)

        return self._commit('start', order, apply, target_status)

    def complete_task(self, order: OrderRef, kind) -> TransitionResult:
        """
        on_way_to_store -> received, or in_transit -> delivered.

        Raises:
            PaymentRequiredError: Completing a delivery of an unpaid order
        """
        order = self._load(order)
        kind = TaskKind(kind)
        leg = order.leg(kind)
        if leg is None:
            return self._refuse('complete', order, TransitionReason.NO_SUCH_TASK)
        if leg.is_terminal:
            return self._refuse('complete', order, TransitionReason.ALREADY_COMPLETED)
        if leg.is_initial:
            return self._refuse('complete', order, TransitionReason.TASK_NOT_STARTED)
        if kind == TaskKind.DELIVERY and not order.is_paid:
            self._count('complete', 'payment_required')
            raise PaymentRequiredError(order.id, order.ticket_code, order.outstanding)

        def apply(now):
            self._apply_completion(order, kind, leg, now)

        return self._commit('complete', order, apply, self._status_after_completion(order, kind))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _status_after_completion(self, order: OrderSnapshot, kind: TaskKind) -> OrderStatus:
        if kind == TaskKind.DELIVERY:
            return OrderStatus.DELIVERED
        if order.status == OrderStatus.PENDING_PICKUP:
            return self.flow_policy.next_step(OrderStatus.PENDING_PICKUP) or OrderStatus.IN_STORE
        return order.status

    def _apply_completion(self, order: OrderSnapshot, kind: TaskKind, leg: ServiceLeg, now: datetime) -> None:
        """Persist the leg completion, the cross-entity order status and the driver release."""
        new_leg_status = LEG_COMPLETE[leg.status]
        target = self._status_after_completion(order, kind)
        if kind == TaskKind.PICKUP:
            self.order_store.persist_pickup_sub_status(order.id, new_leg_status, completed_at=now)
            if target != order.status:
                self.order_store.persist_status(order.id, target, now)
        else:
            self.order_store.persist_delivery_sub_status(order.id, new_leg_status, completed_at=now)
            self.order_store.persist_status(order.id, OrderStatus.DELIVERED, now, delivered_at=now)

        if leg.driver_id is not None:
            driver = self.driver_store.fetch_driver(leg.driver_id)
            if driver is not None:
                self._release_driver(driver, completed=True, now=now)

    def _release_driver(self, driver, completed: bool, now: datetime) -> None:
        """Drop one active task from ``driver``; count it as done when ``completed``."""
        current = max(driver.current_orders - 1, 0)
        today = now.date()
        completed_today = driver.completed_today if driver.counters_date in (None, today) else 0
        if completed:
            completed_today += 1
        if driver.status == DriverStatus.OFFLINE:
            status = DriverStatus.OFFLINE
        elif current == 0:
            status = DriverStatus.AVAILABLE
        else:
            status = DriverStatus.DELIVERING
        self.driver_store.persist_driver_status(driver.id, status, current, completed_today, counters_date=today)

    def _load(self, order: OrderRef) -> OrderSnapshot:
        if isinstance(order, OrderSnapshot):
            return order
        return self.order_store.fetch_order(order)

    def _commit(self, operation: str, order: OrderSnapshot, apply, target: OrderStatus) -> TransitionResult:
        now = self.clock()
        with self.order_store.transaction():
            self.order_store.claim(order.id, order.version, now)
            apply(now)
        self.cash_ledger.invalidate_summary()
        logger.info(f"[LIFECYCLE] {operation} {order.ticket_code}: {order.status.value} -> {OrderStatus(target).value}")
        self._count(operation, 'applied')
        return TransitionResult(applied=True, order=self.order_store.fetch_order(order.id))

    def _refuse(self, operation: str, order: OrderSnapshot, reason: TransitionReason) -> TransitionResult:
        logger.info(f"[LIFECYCLE] {operation} {order.ticket_code} refused: {reason.value}")
        self._count(operation, reason.value.lower())
        return TransitionResult.refused(order, reason)

    @staticmethod
    def _count(operation: str, outcome: str) -> None:
        lifecycle_operations_total.labels(operation=operation, outcome=outcome).inc()
