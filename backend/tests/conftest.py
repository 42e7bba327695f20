"""
Pytest fixtures for RestoPOS backend tests.

Provides test database setup, catalogue factories, and test client.
"""

from decimal import Decimal

import pytest

from restopos import create_app
from restopos.extensions import db
from restopos.models import BomItem, Material, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TAX_RATE_BPS': 1100,
        'SERVICE_CHARGE_BPS': 0,
        'TRANSACTION_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_material(db_session):
    """Factory: make_material("Flour", 10, unit="kg", min_stock=2)."""
    def _make(name, stock=0, unit="kg", min_stock=None):
        material = Material(
            name=name,
            unit=unit,
            stock=Decimal(str(stock)),
            min_stock=None if min_stock is None else Decimal(str(min_stock)),
        )
        db_session.add(material)
        db_session.commit()
        return material
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product("Bread", 15000, [(flour, 2), (sugar, "0.5")])."""
    def _make(name, price, bom, category=None, is_active=True):
        product = Product(name=name, price=price, category=category, is_active=is_active)
        for position, (material, quantity) in enumerate(bom):
            product.bom_items.append(BomItem(
                material_id=material.id,
                quantity=Decimal(str(quantity)),
                position=position,
            ))
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current stock straight from the database, bypassing the identity map."""
    def _stock(material_id):
        db_session.expire_all()
        return db_session.get(Material, material_id).stock
    return _stock
