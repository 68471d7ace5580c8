"""
Pytest configuration and fixtures for QR asset tests
"""
import pytest

from qr_assets import create_app
from qr_assets import db as _db
from qr_assets.build import build_database
from qr_assets.data.asset_store import SQLAlchemyAssetStore
from qr_assets.services.qr_asset_service import QRAssetService

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'QR_LOW_WATER_MARK': 30,
    'QR_REPLENISH_COUNT': 100,
    'QR_MAX_ATTEMPTS': 10,
    'QR_OVERSAMPLE_FACTOR': 2,
    'QR_MAX_ROUND_SIZE': 1000,
}


@pytest.fixture(scope='session')
def app():
    """Create application on an in-memory SQLite database"""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def db(app):
    """Fresh tables for every test"""
    build_database()
    yield _db
    _db.session.remove()
    _db.drop_all()


@pytest.fixture(scope='function')
def store(db):
    return SQLAlchemyAssetStore()


@pytest.fixture(scope='function')
def service(db):
    return QRAssetService()


@pytest.fixture(scope='function')
def unregistered_token(service):
    """Token of a freshly created UNREGISTERED asset"""
    return service.inventory.create_batch(1).tokens[0]


@pytest.fixture(scope='function')
def file_app(app, tmp_path):
    """
    Application on a file-backed SQLite database, for tests that hit the
    store from several threads at once
    """
    database = tmp_path / 'concurrency.db'
    file_app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{database}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'check_same_thread': False, 'timeout': 30}},
    })
    with file_app.app_context():
        build_database()

    yield file_app

    with file_app.app_context():
        _db.session.remove()
        _db.engine.dispose()
