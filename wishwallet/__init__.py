import logging
import os

from flask import Flask, jsonify

from wishwallet.extensions import db, login_manager
from config import Config


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # User loader for Flask-Login
    from wishwallet.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'Method not allowed'}), 405

    # Register blueprints
    from wishwallet.routes.auth import auth_bp
    from wishwallet.routes.wishlists import wishlists_bp
    from wishwallet.routes.claims import claims_bp
    from wishwallet.routes.wallet import wallet_bp
    from wishwallet.routes.payments import payments_bp
    from wishwallet.routes.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(wishlists_bp)
    app.register_blueprint(claims_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)

    db_uri = app.config['SQLALCHEMY_DATABASE_URI']
    if db_uri.startswith('sqlite:///'):
        db_dir = os.path.dirname(db_uri[len('sqlite:///'):])
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    with app.app_context():
        db.create_all()
        app.logger.info("Database tables created")

    return app
