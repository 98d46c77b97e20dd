from __future__ import annotations

import unittest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dayclose.auth import Principal, Role, get_current_principal
from dayclose.db import get_db
from dayclose.main import app
from dayclose.models import Base, Store
from dayclose.services.ledger_provider import TransactionRecord
from dayclose.services.provider_factory import get_ledger_provider

ADMIN = Principal(id=1, username='owner', role=Role.ADMIN, store_id=None, active=True)
CASHIER = Principal(id=7, username='till1', role=Role.CASHIER, store_id=1, active=True)


class FixedLedgerProvider:
    def list_transactions(self, *, store_id, business_date):
        stamp = datetime(business_date.year, business_date.month, business_date.day, 10, tzinfo=timezone.utc)
        return [
            TransactionRecord(1, store_id, stamp, 'cash', Decimal('150.00')),
            TransactionRecord(2, store_id, stamp, 'cash', Decimal('100.00')),
            TransactionRecord(3, store_id, stamp, 'card', Decimal('80.00')),
        ]

    def list_credit_transactions(self, *, store_id):
        return []

    def list_supplier_payments(self, *, business_date):
        return []


class TillRouterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine(
            'sqlite://',
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        with self.session_factory() as db:
            db.add_all([Store(id=1, name='Main Street', active=True), Store(id=2, name='Harbour', active=True)])
            db.commit()

        self.principal = CASHIER

        def _get_db():
            with self.session_factory() as db:
                yield db

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_current_principal] = lambda: self.principal
        app.dependency_overrides[get_ledger_provider] = FixedLedgerProvider
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.engine.dispose()

    def _open(self, business_date: str = '2024-03-10', **extra) -> dict:
        response = self.client.post(
            '/till/days/open',
            json={'store_id': 1, 'business_date': business_date, 'opening_cash': '100.00', **extra},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _close_payload(self) -> dict:
        return {
            'denomination_counts': {'QR_200': 1, 'QR_100': 1},
            'owner_cash_withdrawals': '50.00',
            'actual_bank_balance': '80.00',
        }

    def test_open_then_status(self) -> None:
        opened = self._open()

        self.assertEqual(opened['status'], 'OPEN')
        self.assertEqual(Decimal(opened['opening_cash']), Decimal('100.00'))

        status = self.client.get('/till/days/status', params={'store_id': 1, 'business_date': '2024-03-10'})
        self.assertEqual(status.status_code, 200)
        self.assertEqual(status.json()['status'], 'open')
        self.assertTrue(status.json()['can_close'])

    def test_second_open_conflicts(self) -> None:
        self._open()

        response = self.client.post('/till/days/open', json={'store_id': 1, 'business_date': '2024-03-11'})

        self.assertEqual(response.status_code, 409)

    def test_racing_open_is_rolled_back_as_conflict(self) -> None:
        self._open()

        with patch('dayclose.services.day_operation_service.get_open_day_operation', return_value=None):
            response = self.client.post('/till/days/open', json={'store_id': 1, 'business_date': '2024-03-11'})

        self.assertEqual(response.status_code, 409)
        listing = self.client.get('/till/days')
        self.assertEqual(listing.json()['total'], 1)
        self.assertEqual(listing.json()['items'][0]['business_date'], '2024-03-10')

    def test_cashier_cannot_open_another_store(self) -> None:
        response = self.client.post('/till/days/open', json={'store_id': 2, 'business_date': '2024-03-10'})

        self.assertEqual(response.status_code, 403)

    def test_preview_does_not_close_the_day(self) -> None:
        opened = self._open()

        preview = self.client.post(f"/till/days/{opened['id']}/reconciliation", json=self._close_payload())

        self.assertEqual(preview.status_code, 200, preview.text)
        body = preview.json()
        self.assertEqual(Decimal(body['expected_cash']), Decimal('300.00'))
        self.assertEqual(Decimal(body['cash_variance']), Decimal('0.00'))
        self.assertEqual(Decimal(body['effective_sales']['total_sales']), Decimal('330.00'))
        self.assertEqual(body['severity'], 'low')
        self.assertIn('cash', body['tabs'])

        status = self.client.get('/till/days/status', params={'store_id': 1, 'business_date': '2024-03-10'})
        self.assertEqual(status.json()['status'], 'open')

    def test_close_persists_snapshot_and_proposes_next_day(self) -> None:
        opened = self._open()

        response = self.client.post(f"/till/days/{opened['id']}/close", json=self._close_payload())

        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body['day_operation']['status'], 'CLOSED')
        self.assertEqual(Decimal(body['day_operation']['closing_cash']), Decimal('300.00'))
        self.assertEqual(body['next_business_date'], '2024-03-11')

        again = self.client.post(f"/till/days/{opened['id']}/close", json=self._close_payload())
        self.assertEqual(again.status_code, 400)

    def test_manual_override_flows_into_close(self) -> None:
        opened = self._open()
        payload = self._close_payload()
        payload['overrides'] = {'cash_sales': '300.00'}

        response = self.client.post(f"/till/days/{opened['id']}/reconciliation", json=payload)

        body = response.json()
        self.assertEqual(Decimal(body['expected_cash']), Decimal('350.00'))
        self.assertEqual(body['effective_sales']['manual_fields'], ['cash_sales'])

    def test_unknown_override_is_rejected(self) -> None:
        opened = self._open()

        response = self.client.post(
            f"/till/days/{opened['id']}/reconciliation",
            json={'overrides': {'bank_transfers': '10.00'}},
        )

        self.assertEqual(response.status_code, 400)

    def test_close_unknown_day(self) -> None:
        response = self.client.post('/till/days/999/close', json=self._close_payload())

        self.assertEqual(response.status_code, 404)

    def test_reopen_is_admin_only(self) -> None:
        opened = self._open()
        self.client.post(f"/till/days/{opened['id']}/close", json=self._close_payload())

        refused = self.client.post(f"/till/days/{opened['id']}/reopen")
        self.assertEqual(refused.status_code, 403)

        self.principal = ADMIN
        reopened = self.client.post(f"/till/days/{opened['id']}/reopen")
        self.assertEqual(reopened.status_code, 200, reopened.text)
        self.assertEqual(reopened.json()['status'], 'OPEN')
        self.assertEqual(reopened.json()['reopened_by'], ADMIN.id)

    def test_list_and_previous_balances(self) -> None:
        opened = self._open()
        self.client.post(f"/till/days/{opened['id']}/close", json=self._close_payload())
        self._open('2024-03-11')

        listing = self.client.get('/till/days', params={'limit': 500})
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.json()['total'], 2)
        self.assertEqual(
            [item['business_date'] for item in listing.json()['items']],
            ['2024-03-11', '2024-03-10'],
        )

        balances = self.client.get('/till/previous-balances', params={'store_id': 1, 'business_date': '2024-03-11'})
        self.assertEqual(Decimal(balances.json()['previous_closing_cash']), Decimal('300.00'))
        self.assertEqual(balances.json()['previous_business_date'], '2024-03-10')

    def test_list_rejects_inverted_range(self) -> None:
        response = self.client.get('/till/days', params={'start_date': '2024-03-10', 'end_date': '2024-03-01'})

        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main()
