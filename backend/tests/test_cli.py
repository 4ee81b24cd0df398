# Overview: Pytest coverage for the flask CLI command groups.

from decimal import Decimal

import pytest

from pos_ledger.models import CashRegisterSession, Product, Tenant, User, Warehouse
from pos_ledger.services import register_service, stock_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestMasterDataCommands:

    def test_bootstrap_tenant_warehouse_user(self, runner, db_session):
        result = runner.invoke(args=['tenants', 'create', '--name', 'Miscelanea', '--code', 'MISC'])
        assert 'PASS' in result.output
        tenant = db_session.query(Tenant).filter_by(code='MISC').one()

        result = runner.invoke(args=['warehouses', 'create', '--tenant-id', str(tenant.id), '--name', 'Centro'])
        assert 'PASS' in result.output
        warehouse = db_session.query(Warehouse).filter_by(tenant_id=tenant.id).one()

        result = runner.invoke(args=[
            'users', 'create', '--tenant-id', str(tenant.id), '--username', 'ana',
            '--role', 'cashier', '--warehouse-id', str(warehouse.id),
        ])
        assert 'PASS' in result.output
        assert db_session.query(User).filter_by(username='ana').one().warehouse_id == warehouse.id

        result = runner.invoke(args=['warehouses', 'list', '--tenant-id', str(tenant.id)])
        assert 'Centro' in result.output

    def test_duplicate_tenant_code_fails(self, runner, db_session, tenant):
        result = runner.invoke(args=['tenants', 'create', '--name', 'Otra', '--code', 'CENTRO'])
        assert 'FAIL' in result.output

    def test_products_and_components(self, runner, db_session, tenant):
        tid = str(tenant.id)
        runner.invoke(args=['products', 'create', '--tenant-id', tid, '--name', 'Bun'])
        runner.invoke(args=['products', 'create', '--tenant-id', tid, '--name', 'Combo', '--composite', '--price', '99.00'])
        bun = db_session.query(Product).filter_by(name='Bun').one()
        combo = db_session.query(Product).filter_by(name='Combo').one()
        assert combo.is_composite is True

        result = runner.invoke(args=[
            'products', 'add-component', '--tenant-id', tid,
            '--parent-id', str(combo.id), '--component-id', str(bun.id), '--quantity', '2',
        ])
        assert 'PASS' in result.output

        result = runner.invoke(args=['products', 'components', '--tenant-id', tid, '--product-id', str(combo.id)])
        assert 'Bun' in result.output

        result = runner.invoke(args=[
            'products', 'add-component', '--tenant-id', tid,
            '--parent-id', str(bun.id), '--component-id', str(combo.id), '--quantity', '1',
        ])
        assert 'FAIL' in result.output

    def test_assign_warehouse(self, runner, db_session, tenant, warehouse, unassigned_user):
        base = ['users', 'assign-warehouse', '--tenant-id', str(tenant.id), '--user-id', str(unassigned_user.id)]

        result = runner.invoke(args=base + ['--warehouse-id', str(warehouse.id)])
        assert 'PASS' in result.output
        assert db_session.get(User, unassigned_user.id).warehouse_id == warehouse.id

        result = runner.invoke(args=base)
        assert 'PASS' in result.output
        assert db_session.get(User, unassigned_user.id).warehouse_id is None

        result = runner.invoke(args=base + ['--warehouse-id', '424242'])
        assert 'FAIL' in result.output


class TestStockCommands:

    def test_adjust_and_show(self, runner, db_session, tenant, warehouse, product_a):
        result = runner.invoke(args=[
            'stock', 'adjust', '--tenant-id', str(tenant.id),
            '--product-id', str(product_a.id), '--warehouse-id', str(warehouse.id), '--delta', '7.5',
        ])
        assert 'PASS' in result.output
        assert '7.500' in result.output
        assert stock_service.get_quantity(product_a.id, warehouse.id, tenant.id) == Decimal('7.5')

        result = runner.invoke(args=['stock', 'show', '--tenant-id', str(tenant.id)])
        assert 'Refresco' in result.output

    def test_adjust_rejects_bad_delta(self, runner, db_session, tenant, warehouse, product_a):
        result = runner.invoke(args=[
            'stock', 'adjust', '--tenant-id', str(tenant.id),
            '--product-id', str(product_a.id), '--warehouse-id', str(warehouse.id), '--delta', 'lots',
        ])
        assert 'FAIL' in result.output


class TestRegisterCommands:

    def test_sessions_and_verify(self, runner, db_session, tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, '100')
        register_service.close_session(session.id, tenant.id, '100')

        result = runner.invoke(args=['registers', 'sessions', '--tenant-id', str(tenant.id)])
        assert 'closed' in result.output

        result = runner.invoke(args=['registers', 'verify'])
        assert result.exit_code == 0
        assert 'PASS' in result.output

    def test_verify_flags_mismatch(self, runner, db_session, tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, '100')
        register_service.close_session(session.id, tenant.id, '100')

        stored = db_session.get(CashRegisterSession, session.id)
        stored.difference = Decimal('5.00')
        db_session.commit()

        result = runner.invoke(args=['registers', 'verify', '--tenant-id', str(tenant.id)])
        assert result.exit_code == 1
        assert f'FAIL Session {session.id}' in result.output
