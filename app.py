import os
from typing import Optional, Tuple

import click
from alembic import command
from alembic.config import Config as AlembicConfig
from alembic.script import ScriptDirectory
from flask import Flask, current_app, jsonify
from sqlalchemy import func, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError, ProgrammingError

from config import Config, current_database_url
from extensions import db, migrate, jwt
from models import Company, RoleEnum, User
from routes import assignments, auth, job_workers


if os.name != "nt":  # pragma: no cover - platform dependent import
    import fcntl  # type: ignore[import-not-found]
else:  # pragma: no cover - Windows fallback
    fcntl = None  # type: ignore[assignment]


def _ensure_sqlite_directory(database_url: str | None) -> None:
    """Create the parent directory of a file-backed SQLite database."""

    if not database_url:
        return
    url = make_url(database_url)
    if not (url.get_backend_name() or "").lower().startswith("sqlite"):
        return
    if url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(url.database)), exist_ok=True)


def _alembic_config(app: Flask) -> Optional[AlembicConfig]:
    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri or make_url(database_uri).database in (None, "", ":memory:"):
        return None

    migrations_dir = os.path.join(app.root_path, "migrations")
    alembic_ini = os.path.join(migrations_dir, "alembic.ini")
    if not os.path.exists(alembic_ini):
        return None

    config = AlembicConfig(alembic_ini)
    config.set_main_option("script_location", migrations_dir)
    config.set_main_option("sqlalchemy.url", database_uri)
    return config


def _schema_revision() -> Optional[str]:
    try:
        with db.engine.connect() as connection:
            return connection.execute(text("SELECT version_num FROM alembic_version")).scalar()
    except (OperationalError, ProgrammingError):
        return None


def _run_database_migrations(app: Flask) -> None:
    """Upgrade the schema to the migration head, one process at a time."""

    config = _alembic_config(app)
    if config is None:
        return
    head = ScriptDirectory.from_config(config).get_current_head()
    if not head:
        return

    with app.app_context():
        if _schema_revision() == head:
            return

        os.makedirs(app.instance_path, exist_ok=True)
        with open(os.path.join(app.instance_path, "alembic.lock"), "w") as lock_file:
            if fcntl is not None:
                fcntl.flock(lock_file, fcntl.LOCK_EX)
            try:
                if _schema_revision() != head:
                    app.logger.info({"event": "schema_upgrade", "from": _schema_revision(), "to": head})
                    try:
                        command.upgrade(config, "head")
                    except Exception:
                        # another worker may have finished the upgrade first
                        if _schema_revision() != head:
                            raise
            finally:
                if fcntl is not None:
                    fcntl.flock(lock_file, fcntl.LOCK_UN)


def _auth_error(message: str):
    return jsonify({"success": False, "message": message, "kind": "unauthenticated"}), 401


def _register_jwt_handlers() -> None:
    @jwt.unauthorized_loader
    def missing_token(reason):
        return _auth_error("Authentication required")

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _auth_error("Invalid authentication token")

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _auth_error("Authentication token has expired")


def create_app():
    app = Flask(__name__)
    app.config.from_object(Config)
    database_url = current_database_url()
    _ensure_sqlite_directory(database_url)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    db.init_app(app)
    migrate.init_app(app, db)
    _run_database_migrations(app)
    jwt.init_app(app)
    _register_jwt_handlers()

    app.register_blueprint(auth.bp)
    app.register_blueprint(job_workers.bp)
    app.register_blueprint(assignments.bp)

    @app.get("/api/health")
    def health(): return jsonify({"ok": True})

    return app


app = create_app()


def _normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def _ensure_company(key: str, name: Optional[str] = None) -> Tuple[str, Company]:
    """Create the company ``key`` if it is missing; rename it when ``name`` differs."""

    normalized_key = (key or "").strip().lower()
    if not normalized_key:
        raise click.BadParameter("Company key cannot be blank.")

    company = Company.query.filter_by(key=normalized_key).first()
    target_name = (name or "").strip() or None
    if company:
        if target_name and company.name != target_name:
            company.name = target_name
            db.session.commit()
            return "updated", company
        return "skipped", company

    company = Company(key=normalized_key, name=target_name or normalized_key.title())
    db.session.add(company)
    db.session.commit()
    return "created", company


def _ensure_admin_user(
    flask_app=None,
    *,
    email: Optional[str] = None,
    password: Optional[str] = None,
    name: Optional[str] = None,
    company_key: Optional[str] = None,
    force_reset: bool = False,
) -> Tuple[str, str]:
    """Ensure an admin user exists and optionally reset its password.

    Returns a tuple of (status, normalized_email) where status is one of
    ``{"created", "reset", "updated", "skipped"}``.
    """

    target_app = flask_app or globals().get("app")
    normalized_email = _normalize_email(email or os.getenv("ADMIN_EMAIL", "admin@jobwork.local"))
    if target_app is None:
        return "skipped", normalized_email

    password = password or os.getenv("ADMIN_PASSWORD", "Admin@123")
    provided_name = name if name is not None else os.getenv("ADMIN_NAME")
    target_name = (provided_name or "").strip() or None
    company_key = company_key or os.getenv("ADMIN_COMPANY_KEY")

    with target_app.app_context():
        try:
            admin = User.query.filter(func.lower(User.email) == normalized_email).first()
        except (OperationalError, ProgrammingError):
            # Tables might not be ready yet (e.g. before migrations run)
            db.session.rollback()
            return "skipped", normalized_email

        if company_key:
            company_key = _ensure_company(company_key)[1].key

        if admin:
            status = "skipped"
            if admin.role != RoleEnum.admin:
                admin.role = RoleEnum.admin
                status = "updated"
            if target_name and admin.name != target_name:
                admin.name = target_name
                status = "updated"
            if company_key and admin.company_key != company_key:
                admin.company_key = company_key
                status = "updated"
            if force_reset:
                admin.set_password(password)
                status = "reset"

            if status != "skipped":
                db.session.commit()
            return status, normalized_email

        if not force_reset and User.query.filter_by(role=RoleEnum.admin).first():
            # Avoid creating duplicate admins when one already exists
            return "skipped", normalized_email

        admin = User(
            name=target_name or "Admin",
            email=normalized_email,
            role=RoleEnum.admin,
            active=True,
            company_key=company_key,
        )
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        return "created", normalized_email


def _bootstrap_admin_user(flask_app=None):
    status, normalized_email = _ensure_admin_user(
        flask_app=flask_app,
        force_reset=os.getenv("RUN_SEED_ADMIN") == "1",
    )
    if status != "skipped":
        flask_app.logger.info({"event": "admin_bootstrapped", "status": status, "email": normalized_email})


# Call the hook at startup (idempotent)
_bootstrap_admin_user(flask_app=app)


# ---- CLI: seed or reset admin ----
@app.cli.command("seed-admin")
@click.option("--email", default="admin@jobwork.local", help="Admin email")
@click.option("--password", default="Admin@123", help="Admin password")
@click.option("--name", default="Admin", help="Admin display name")
@click.option("--company", "company_key", default=None, help="Company key the admin belongs to")
def seed_admin(email, password, name, company_key):
    """Create or reset the admin user."""
    status, normalized_email = _ensure_admin_user(
        flask_app=current_app._get_current_object(),
        email=email,
        password=password,
        name=name,
        company_key=company_key,
        force_reset=True,
    )

    if status == "created":
        click.echo(f"✅ Admin created: {normalized_email}")
    elif status == "reset":
        click.echo(f"✅ Admin password reset: {normalized_email}")
    elif status == "updated":
        click.echo(f"✅ Admin updated: {normalized_email}")
    else:
        click.echo(f"ℹ️ Admin already up-to-date: {normalized_email}")


@app.cli.command("seed-company")
@click.argument("key")
@click.option("--name", default=None, help="Company display name")
def seed_company(key, name):
    """Create a company, or rename an existing one."""
    status, company = _ensure_company(key, name)

    if status == "created":
        click.echo(f"✅ Company created: {company.key} (id {company.id})")
    elif status == "updated":
        click.echo(f"✅ Company renamed: {company.key}")
    else:
        click.echo(f"ℹ️ Company already exists: {company.key} (id {company.id})")


if __name__ == "__main__":
    app.run(debug=True, port=int(os.getenv("PORT", 5000)))
