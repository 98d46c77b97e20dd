from __future__ import annotations

import unittest
from types import SimpleNamespace

from fastapi import HTTPException

from dayclose.auth import (
    Principal,
    Role,
    assert_store_scope,
    get_current_principal,
    is_admin_role,
    scoped_store_id,
)


class AuthTests(unittest.TestCase):
    def test_cashier_is_bound_to_own_store(self) -> None:
        cashier = Principal(id=7, username='till1', role=Role.CASHIER, store_id=1)

        assert_store_scope(cashier, 1)
        with self.assertRaises(HTTPException) as ctx:
            assert_store_scope(cashier, 2)
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(scoped_store_id(cashier, 2), 1)
        self.assertEqual(scoped_store_id(cashier, None), 1)

    def test_managers_see_any_store(self) -> None:
        manager = Principal(id=3, username='area', role=Role.MANAGER, store_id=None)

        assert_store_scope(manager, 2)
        self.assertEqual(scoped_store_id(manager, 2), 2)
        self.assertIsNone(scoped_store_id(manager, None))

    def test_only_admin_can_reopen(self) -> None:
        self.assertTrue(is_admin_role(Role.ADMIN))
        self.assertFalse(is_admin_role(Role.MANAGER))
        self.assertFalse(is_admin_role(Role.CASHIER))

    def test_current_principal_comes_from_request_state(self) -> None:
        principal = Principal(id=1, username='owner', role=Role.ADMIN, store_id=None)

        self.assertIs(get_current_principal(SimpleNamespace(state=SimpleNamespace(principal=principal))), principal)

        with self.assertRaises(HTTPException) as missing:
            get_current_principal(SimpleNamespace(state=SimpleNamespace()))
        self.assertEqual(missing.exception.status_code, 401)

        principal.active = False
        with self.assertRaises(HTTPException) as disabled:
            get_current_principal(SimpleNamespace(state=SimpleNamespace(principal=principal)))
        self.assertEqual(disabled.exception.status_code, 403)


if __name__ == '__main__':
    unittest.main()
