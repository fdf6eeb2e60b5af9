import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import Config
from tujifund.extensions import db, login_manager, install_sqlite_locking


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Module loggers (tujifund.*) propagate to app.logger
    app.logger.setLevel(app.config['LOG_LEVEL'])
    _configure_database(app)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # User loader for Flask-Login
    from tujifund.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(success=False, message='Authentication required'), 401

    # Register blueprints
    from tujifund.routes.auth import auth_bp
    from tujifund.routes.cart import cart_bp
    from tujifund.routes.chamas import chamas_bp
    from tujifund.routes.marketplace import marketplace_bp
    from tujifund.routes.wallet import wallet_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(chamas_bp)
    app.register_blueprint(marketplace_bp)
    app.register_blueprint(wallet_bp)

    _register_error_handlers(app)

    with app.app_context():
        install_sqlite_locking(db.engine)
        db.create_all()
        app.logger.info("Database tables ready")

    return app


def _configure_database(app):
    """SQLite: make lock waits honour the checkout timeout, create the db folder."""
    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if not uri.startswith('sqlite'):
        return

    options = app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {})
    connect_args = options.setdefault('connect_args', {})
    connect_args.setdefault('timeout', app.config['CHECKOUT_TIMEOUT_SECONDS'])
    connect_args.setdefault('check_same_thread', False)

    path = uri[len('sqlite:///'):] if uri.startswith('sqlite:///') else ''
    if path and path != ':memory:' and os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)


def _register_error_handlers(app):

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify(success=False, message=e.description), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return jsonify(success=False, message='Internal server error'), 500
