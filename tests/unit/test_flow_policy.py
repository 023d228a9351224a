"""Unit tests for the configurable processing flow."""
from app.domain.enums import OrderStatus
from app.services.flow_policy import FlowPolicy


def _config(inactive=(), extra=()):
    steps = [
        {'key': s.value, 'is_active': s not in inactive, 'is_required': False, 'position': i}
        for i, s in enumerate(OrderStatus)
    ]
    return FlowPolicy(list(steps) + list(extra))


def test_default_flow_walks_whole_vocabulary():
    policy = FlowPolicy.default()
    assert policy.active_keys == list(OrderStatus)
    assert policy.next_step(OrderStatus.IN_STORE) == OrderStatus.WASHING
    assert policy.previous_step(OrderStatus.WASHING) == OrderStatus.IN_STORE


def test_inactive_steps_are_skipped():
    policy = _config(inactive={OrderStatus.DRYING, OrderStatus.IRONING})
    assert policy.next_step(OrderStatus.WASHING) == OrderStatus.READY_DELIVERY
    assert policy.previous_step(OrderStatus.READY_DELIVERY) == OrderStatus.WASHING


def test_status_on_inactive_step_still_has_neighbours():
    policy = _config(inactive={OrderStatus.DRYING})
    assert policy.next_step(OrderStatus.DRYING) == OrderStatus.IRONING
    assert policy.previous_step(OrderStatus.DRYING) == OrderStatus.WASHING


def test_fixed_steps_cannot_be_deactivated():
    policy = _config(inactive={OrderStatus.IN_STORE, OrderStatus.READY_DELIVERY, OrderStatus.DELIVERED})
    for key in (OrderStatus.IN_STORE, OrderStatus.READY_DELIVERY, OrderStatus.DELIVERED):
        assert policy.is_active(key)


def test_required_flag_forces_activity():
    policy = FlowPolicy([{'key': 'washing', 'is_active': False, 'is_required': True, 'position': 2}])
    assert policy.is_active(OrderStatus.WASHING)


def test_last_and_first_steps_have_no_neighbours():
    policy = FlowPolicy.default()
    assert policy.next_step(OrderStatus.DELIVERED) is None
    assert policy.previous_step(OrderStatus.PENDING_PICKUP) is None


def test_unknown_or_missing_current_is_fail_soft():
    policy = FlowPolicy.default()
    assert policy.next_step(None) is None
    assert policy.next_step('folding') is None
    assert policy.previous_step('folding') is None


def test_unknown_config_keys_are_ignored():
    policy = _config(extra=[{'key': 'folding', 'is_active': True, 'position': 3}])
    assert not policy.is_known('folding')
    assert len(policy.steps) == len(OrderStatus)


def test_missing_keys_are_added_inactive_except_fixed():
    policy = FlowPolicy([{'key': 'washing', 'is_active': True, 'position': 2}])
    assert policy.active_keys == [
        OrderStatus.IN_STORE, OrderStatus.WASHING, OrderStatus.READY_DELIVERY, OrderStatus.DELIVERED,
    ]


def test_order_alias_and_custom_positions():
    policy = FlowPolicy([
        {'key': 'ironing', 'is_active': True, 'order': 2},
        {'key': 'washing', 'is_active': True, 'order': 3},
    ])
    assert policy.next_step(OrderStatus.IN_STORE) == OrderStatus.IRONING
    assert policy.next_step(OrderStatus.IRONING) == OrderStatus.WASHING


def test_first_step_depends_on_pickup():
    policy = FlowPolicy.default()
    assert policy.first_step(needs_pickup=True) == OrderStatus.PENDING_PICKUP
    assert policy.first_step(needs_pickup=False) == OrderStatus.IN_STORE

    no_pickup_step = _config(inactive={OrderStatus.PENDING_PICKUP})
    assert no_pickup_step.first_step(needs_pickup=True) == OrderStatus.IN_STORE


def test_has_reached_uses_configured_order():
    policy = FlowPolicy.default()
    assert policy.has_reached(OrderStatus.IN_TRANSIT, OrderStatus.READY_DELIVERY)
    assert policy.has_reached(OrderStatus.READY_DELIVERY, OrderStatus.READY_DELIVERY)
    assert not policy.has_reached(OrderStatus.IRONING, OrderStatus.READY_DELIVERY)
