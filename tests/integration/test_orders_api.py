"""End-to-end tests for the JSON endpoints."""
from decimal import Decimal

from app.services.operations_service import seed_operation_steps

ITEMS = [{'name': 'Vestido', 'item_type': 'piece', 'quantity': 1, 'unit_price': '80.00'}]


def _create(client, **extra):
    payload = {'customer_name': 'Laura Gómez', 'customer_address': 'Calle 5', 'items': ITEMS}
    payload.update(extra)
    response = client.post('/orders/', json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()['order']


def _advance_to_ready(client, order_id):
    for _ in range(4):
        assert client.post(f'/orders/{order_id}/advance').status_code == 200


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['database'] == 'connected'


def test_create_and_fetch_order(client):
    order = _create(client)
    assert order['status'] == 'in_store'
    assert order['total_amount'] == '80.00'

    detail = client.get(f"/orders/{order['id']}").get_json()['order']
    assert detail['ticket_code'] == order['ticket_code']

    listing = client.get('/orders/?status=in_store').get_json()['orders']
    assert [o['id'] for o in listing] == [order['id']]


def test_invalid_order_returns_400(client):
    response = client.post('/orders/', json={'customer_name': 'X', 'items': []})
    assert response.status_code == 400
    assert response.get_json()['status'] == 'error'


def test_missing_order_returns_404(client):
    assert client.get('/orders/4242').status_code == 404
    assert client.post('/orders/4242/advance').status_code == 404


def test_refused_transition_returns_409_with_reason(client):
    order = _create(client)
    response = client.post(f"/orders/{order['id']}/regress")
    assert response.status_code == 409
    body = response.get_json()
    assert body['applied'] is False
    assert body['reason'] == 'PICKUP_NOT_PENDING'
    assert body['status'] == 'error'
    assert body['order_status'] == 'in_store'


def test_transition_reports_envelope_and_order_status(client):
    order = _create(client)
    response = client.post(f"/orders/{order['id']}/advance")
    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'ok'
    assert body['applied'] is True
    assert body['order_status'] == 'washing'
    assert body['order']['status'] == 'washing'


def test_unpaid_handoff_returns_402_then_collect(client):
    order = _create(client)
    _advance_to_ready(client, order['id'])

    response = client.post(f"/orders/{order['id']}/handoff")
    assert response.status_code == 402
    assert response.get_json()['code'] == 'PAYMENT_REQUIRED'
    assert response.get_json()['outstanding'] == '80.00'

    response = client.post(f"/orders/{order['id']}/collect-payment", json={'amount': '100', 'method': 'CASH'})
    assert response.status_code == 200
    body = response.get_json()
    assert body['change_due'] == '20.00'
    assert body['order']['status'] == 'delivered'

    cash = client.get('/cash-register/').get_json()
    assert cash['summary']['income'] == '80.00'
    assert len(cash['entries']) == 1


def test_delivery_board_flow(client, driver):
    order = _create(client, needs_delivery=True, delivery={'slot': 'morning'},
                    delivery_cost='20.00', paid_amount='100.00')
    assert order['is_paid']

    assert client.get('/deliveries/tasks').get_json()['tasks'] == []
    _advance_to_ready(client, order['id'])

    tasks = client.get('/deliveries/tasks?kind=delivery&slot=morning').get_json()['tasks']
    assert [t['order_id'] for t in tasks] == [order['id']]

    base = f"/deliveries/{order['id']}/delivery"
    assert client.post(f'{base}/assign', json={'driver_id': driver.id}).status_code == 200
    candidates = client.get('/drivers/candidates').get_json()['drivers']
    assert candidates[0]['current_orders'] == 1

    assert client.post(f'{base}/start').get_json()['status'] == 'ok'
    summary = client.get('/deliveries/summary').get_json()['summary']
    assert summary['delivery']['in_progress'] == 1

    done = client.post(f'{base}/complete').get_json()
    assert done['order']['status'] == 'delivered'
    assert done['order']['delivery']['status'] == 'delivered'

    drivers = client.get('/drivers/').get_json()
    assert drivers['drivers'][0]['completed_today'] == 1
    assert drivers['summary']['available'] == 1


def test_assign_offline_driver_returns_409(client, offline_driver):
    order = _create(client, needs_pickup=True)
    response = client.post(f"/deliveries/{order['id']}/pickup/assign", json={'driver_id': offline_driver.id})
    assert response.status_code == 409
    assert response.get_json()['code'] == 'DRIVER_UNAVAILABLE'


def test_unknown_task_kind_returns_404(client):
    order = _create(client)
    assert client.post(f"/deliveries/{order['id']}/laundry/start").status_code == 404


def test_operations_flow_reflects_configuration(client, session):
    seed_operation_steps(session)
    from app.models import OperationStep
    washing = session.query(OperationStep).filter_by(key='washing').one()
    washing.is_active = False
    session.commit()

    flow = client.get('/operations/').get_json()
    assert 'washing' not in flow['active']
    assert len(flow['steps']) == 8

    order = _create(client)
    advanced = client.post(f"/orders/{order['id']}/advance").get_json()
    assert advanced['order']['status'] == 'drying'


def test_metrics_endpoint(client):
    _create(client)
    response = client.get('/metrics')
    assert response.status_code == 200
    assert b'orders_created_total' in response.data
