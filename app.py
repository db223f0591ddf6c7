from flask import Flask, jsonify
from config import Config
from routes import health_bp, reservations_bp, blocks_bp, resources_bp, admin_bp, audit_bp, events_bp

from models import db
from flask_migrate import Migrate
from scheduling.errors import (
    InvalidInterval,
    InvalidTransition,
    ResourceInactive,
    ResourceNotFound,
    WriteConflict,
)
from utils.payload import BadPayload
from utils.seed import seed_roles, seed_default_resource
from utils.auth_context import load_current_user


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(reservations_bp)
    app.register_blueprint(blocks_bp)
    app.register_blueprint(resources_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(events_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed roles and the riding hall at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES_ON_STARTUP"):
            db.create_all()
        seed_roles()
        seed_default_resource()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_error_handlers(app)
    register_cli(app)

    return app

#-------------------------
def register_error_handlers(app):
    @app.errorhandler(BadPayload)
    def _bad_payload(exc):
        return jsonify(error=str(exc)), 400

    @app.errorhandler(InvalidInterval)
    def _invalid_interval(exc):
        return jsonify(error=str(exc), code=exc.code), 400

    @app.errorhandler(ResourceNotFound)
    def _resource_not_found(exc):
        return jsonify(error=str(exc), code=exc.code), 404

    @app.errorhandler(ResourceInactive)
    def _resource_inactive(exc):
        return jsonify(error=str(exc), code=exc.code), 422

    @app.errorhandler(InvalidTransition)
    def _invalid_transition(exc):
        return jsonify(error=str(exc), code=exc.code), 409

    @app.errorhandler(WriteConflict)
    def _write_conflict(exc):
        # lost the race between advisory check and commit: expected, retryable
        body = {"error": str(exc), "code": exc.code, "retryable": True}
        if exc.verdict is not None:
            body.update(exc.verdict.to_dict())
        return jsonify(body), 409

#-------------------------
import click
from models.user import User, Role

def register_cli(app):
    @app.cli.command("seed")
    def seed():
        """Create default roles and the riding hall resource."""
        seed_roles()
        resource = seed_default_resource()
        print(f"Seeded roles and resource {resource.slug if resource else '-'}")

    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("name")
    @click.option("--admin", is_flag=True, help="Grant the ADMIN role.")
    def create_user(email, name, admin):
        """Register a member as known to the auth proxy."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            print("User already exists")
            return

        role_names = ["MEMBER", "ADMIN"] if admin else ["MEMBER"]
        user = User(email=email, name=name.strip())
        user.roles = Role.query.filter(Role.name.in_(role_names)).all()
        db.session.add(user)
        db.session.commit()
        print(f"Created user {user.id} <{user.email}>")

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            print("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        print(f"{user.email} promoted to ADMIN")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
