"""
Operation flow configuration and controller wiring.

The flow policy is rebuilt from the ``operation_step`` table on every call,
so a configuration change applies to the next request.
"""
import logging
from typing import List

from flask import current_app, has_app_context

from app.models import OperationStep
from app.services.cash_ledger_service import SqlCashLedger
from app.services.driver_registry import SqlDriverStore
from app.services.flow_policy import DEFAULT_STEPS, FlowPolicy
from app.services.lifecycle_service import OrderLifecycleController
from app.services.order_store import SqlOrderStore

logger = logging.getLogger(__name__)


def list_operation_steps(session) -> List[OperationStep]:
    return session.query(OperationStep).order_by(OperationStep.position, OperationStep.id).all()


def load_flow_policy(session) -> FlowPolicy:
    """Flow policy from the configured steps, or the default flow when none are stored."""
    rows = list_operation_steps(session)
    if not rows:
        return FlowPolicy.default()
    return FlowPolicy(rows)


def seed_operation_steps(session, reset: bool = False) -> int:
    """
    Insert the default steps that are missing.

    Args:
        session: Database session
        reset: Overwrite name/icon/color/flags/position of existing rows

    Returns:
        Number of rows inserted or reset
    """
    existing = {row.key: row for row in list_operation_steps(session)}
    touched = 0
    try:
        for key, name, icon, color, active, required, position in DEFAULT_STEPS:
            row = existing.get(key.value)
            if row is None:
                session.add(OperationStep(
                    key=key.value, name=name, icon=icon, color=color,
                    is_active=active, is_required=required, position=position,
                ))
                touched += 1
            elif reset:
                row.name, row.icon, row.color = name, icon, color
                row.is_active, row.is_required, row.position = active, required, position
                touched += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[FLOW] Seeded operation steps ({touched} rows)")
    return touched


def serialize_flow(session) -> List[dict]:
    """Configured steps merged with the effective activity computed by the policy."""
    policy = load_flow_policy(session)
    rows = {row.key: row for row in list_operation_steps(session)}
    labels = {key.value: (name, icon, color) for key, name, icon, color, *_ in DEFAULT_STEPS}
    result = []
    for step in policy.steps:
        row = rows.get(step.key.value)
        name, icon, color = (row.name, row.icon, row.color) if row else labels[step.key.value]
        result.append({
            'key': step.key.value,
            'name': name,
            'icon': icon,
            'color': color,
            'position': step.position,
            'is_required': step.is_required,
            'is_active': step.is_active,
        })
    return result


def build_lifecycle_controller(session, cache=None, allow_reassignment=None) -> OrderLifecycleController:
    """Wire the SQL stores and a fresh flow policy into a controller."""
    if allow_reassignment is None:
        allow_reassignment = (
            current_app.config.get('ALLOW_DRIVER_REASSIGNMENT', False) if has_app_context() else False
        )
    return OrderLifecycleController(
        order_store=SqlOrderStore(session),
        driver_store=SqlDriverStore(session),
        cash_ledger=SqlCashLedger(session, cache),
        flow_policy=load_flow_policy(session),
        allow_reassignment=allow_reassignment,
    )
