"""
Driver registry - read side of drivers plus the store the lifecycle writes through.

Driver status and counters are owned by the order lifecycle controller:
``SqlDriverStore.persist_driver_status`` is called only from there, never
from blueprints.
"""
from datetime import date
from typing import Dict, List, Optional, Protocol

from sqlalchemy import update

from app.domain.enums import DriverStatus
from app.domain.snapshots import DriverSnapshot
from app.exceptions import NotFoundError
from app.models import Driver


class DriverStore(Protocol):

    def fetch_drivers(self) -> List[DriverSnapshot]: ...

    def fetch_driver(self, driver_id: int) -> Optional[DriverSnapshot]: ...

    def persist_driver_status(self, driver_id: int, status: DriverStatus, current_orders: int,
                              completed_today: int, counters_date: Optional[date] = None) -> None: ...


def driver_to_snapshot(driver: Driver) -> DriverSnapshot:
    status = DriverStatus(driver.status)
    if not driver.is_active:
        status = DriverStatus.OFFLINE
    return DriverSnapshot(
        id=driver.id,
        name=driver.name,
        status=status,
        current_orders=driver.current_orders or 0,
        completed_today=driver.completed_today or 0,
        is_active=bool(driver.is_active),
        phone=driver.phone or '',
        zone=driver.zone or '',
        counters_date=driver.counters_date,
    )


class SqlDriverStore:
    """SQLAlchemy implementation of :class:`DriverStore`."""

    def __init__(self, session):
        self.session = session

    def fetch_drivers(self) -> List[DriverSnapshot]:
        drivers = self.session.query(Driver).populate_existing().order_by(Driver.name).all()
        return [driver_to_snapshot(d) for d in drivers]

    def fetch_driver(self, driver_id: int) -> Optional[DriverSnapshot]:
        driver = self.session.query(Driver).populate_existing().filter(Driver.id == driver_id).one_or_none()
        return driver_to_snapshot(driver) if driver else None

    def persist_driver_status(self, driver_id, status, current_orders, completed_today,
                              counters_date=None) -> None:
        values = {
            'status': DriverStatus(status).value,
            'current_orders': current_orders,
            'completed_today': completed_today,
        }
        if counters_date is not None:
            values['counters_date'] = counters_date
        stmt = (
            update(Driver)
            .where(Driver.id == driver_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)


class DriverRegistry:
    """Read access to drivers and their derived availability."""

    def __init__(self, driver_store: DriverStore):
        self.driver_store = driver_store

    def list_drivers(self) -> List[DriverSnapshot]:
        return self.driver_store.fetch_drivers()

    def get_driver(self, driver_id: int) -> DriverSnapshot:
        driver = self.driver_store.fetch_driver(driver_id)
        if driver is None:
            raise NotFoundError(f'Repartidor con ID {driver_id} no encontrado')
        return driver

    def assignment_candidates(self) -> List[DriverSnapshot]:
        """Drivers that may receive a task, least busy first. Offline drivers are excluded."""
        candidates = [d for d in self.list_drivers() if d.can_take_tasks]
        return sorted(candidates, key=lambda d: (d.current_orders, d.name))

    def availability_summary(self) -> Dict[str, int]:
        summary = {status.value: 0 for status in DriverStatus}
        for driver in self.list_drivers():
            summary[driver.status.value] += 1
        return summary
