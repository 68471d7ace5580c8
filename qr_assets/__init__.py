from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import os
from qr_assets.logger import get_logger

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def _env_int(name, default):
    return int(os.environ.get(name, str(default)))


def create_app(config_overrides=None):
    from pathlib import Path

    app = Flask(__name__)

    # Get singleton logger
    logger = get_logger("qr_assets")
    logger.info("Initializing QR asset application")

    # Prefer an explicit DATABASE_URL env var; otherwise keep the SQLite
    # database inside the project's `instance/` directory.
    db_env = os.environ.get('DATABASE_URL')
    if db_env:
        app.config['SQLALCHEMY_DATABASE_URI'] = db_env
    else:
        base_dir = Path(__file__).parent.parent
        instance_dir = base_dir / 'instance'
        instance_dir.mkdir(parents=True, exist_ok=True)
        default_db_path = instance_dir / 'qr_assets.db'
        app.config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{str(default_db_path.resolve())}"

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Inventory policy
    app.config['QR_LOW_WATER_MARK'] = _env_int('QR_LOW_WATER_MARK', 30)
    app.config['QR_REPLENISH_COUNT'] = _env_int('QR_REPLENISH_COUNT', 100)

    # Collision retry policy for the uniqueness resolver
    app.config['QR_MAX_ATTEMPTS'] = _env_int('QR_MAX_ATTEMPTS', 10)
    app.config['QR_OVERSAMPLE_FACTOR'] = _env_int('QR_OVERSAMPLE_FACTOR', 2)
    app.config['QR_MAX_ROUND_SIZE'] = _env_int('QR_MAX_ROUND_SIZE', 1000)

    if config_overrides:
        app.config.update(config_overrides)

    resolver_policy = ('QR_MAX_ATTEMPTS', 'QR_OVERSAMPLE_FACTOR', 'QR_MAX_ROUND_SIZE')
    if any(app.config[key] < 1 for key in resolver_policy):
        logger.critical(f"{', '.join(resolver_policy)} must be positive")
        raise RuntimeError("Invalid uniqueness resolver configuration")

    logger.debug(f"Database configured: {app.config['SQLALCHEMY_DATABASE_URI'].split(':', 1)[0]}")

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)

    logger.debug("Extensions initialized")

    # Import models to ensure they're registered with SQLAlchemy
    from qr_assets.data.qr_asset import QRAsset
    from qr_assets.data.qr_event import QREvent

    logger.info("QR asset application initialized")
    return app
