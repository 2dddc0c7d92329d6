# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/labstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to labstock (PowerShell: $env:FLASK_APP="labstock").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--department "Administration"] [--admin-email admin@lab.local]
#   Idempotent bootstrap: creates tables, the admin's department and the first admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role, department and active status.
# - python -m flask users create --name "Jane Doe" --email jane@lab.local --role staff --department Laboratory
#   Create a user (prompts if options are omitted; password defaults to the role's initial password).
#
# Department inspection:
# - python -m flask departments list
#   List departments with their capability toggles.

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from .extensions import db
from .models import DepartmentPermission, User
from .models.auth import ROLE_ADMIN, ROLES
from .services import audit_service
from .services.auth_service import PasswordValidationError, default_password_for, hash_password
from .validation import validate_department_name, validate_email
from .errors import ValidationError


def _ensure_department(name: str) -> DepartmentPermission:
    permission = db.session.query(DepartmentPermission).filter(
        func.lower(DepartmentPermission.department) == name.lower()
    ).first()
    if permission:
        return permission

    permission = DepartmentPermission(
        department=name,
        can_request=True,
        can_approve=False,
        can_edit_inventory=False,
    )
    db.session.add(permission)
    db.session.flush()
    audit_service.append_system_event(
        action=audit_service.ACTION_DEPARTMENT_CREATED,
        target=name,
        details=f"Department {name} created",
    )
    return permission


def _create_user(*, name: str, email: str, role: str, department: str, password: str | None) -> User:
    user = User(
        name=name,
        email=email,
        role=role,
        department=department,
        is_active=True,
        password_hash=hash_password(password or default_password_for(role)),
    )
    db.session.add(user)
    db.session.flush()
    audit_service.append_system_event(
        action=audit_service.ACTION_USER_CREATED,
        target=user.id,
        details=f"{name} ({role}) created",
    )
    return user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--department', default='Administration', help='Department of the first admin')
@click.option('--admin-name', default='Lab Administrator', help='Display name of the first admin')
@click.option('--admin-email', default='admin@lab.local', help='Email of the first admin')
@with_appcontext
def init_system(department, admin_name, admin_email):
    """
    Initialize LabStock: tables, the admin's department and the first admin.

    The admin password is DEFAULT_ADMIN_PASSWORD.

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing LabStock...")

    db.create_all()
    click.echo("PASS Tables ready")

    try:
        department = validate_department_name(department)
        admin_email = validate_email(admin_email)
    except ValidationError as e:
        raise click.ClickException(e.message)

    permission = _ensure_department(department)
    click.echo(f"PASS Department: {permission.department}")

    active_admin = db.session.query(User).filter(
        User.role == ROLE_ADMIN, User.is_active.is_(True)
    ).first()
    if active_admin:
        click.echo(f"PASS Active admin already exists: {active_admin.email}")
    else:
        existing = db.session.query(User).filter(func.lower(User.email) == admin_email).first()
        if existing:
            db.session.rollback()
            raise click.ClickException(f"Email {admin_email} is taken by a non-admin account")
        user = _create_user(
            name=admin_name,
            email=admin_email,
            role=ROLE_ADMIN,
            department=permission.department,
            password=None,
        )
        click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")

    db.session.commit()
    click.echo("DONE LabStock initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset. Run `flask system init` to bootstrap an admin.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--department', help='Filter by department')
@with_appcontext
def list_users(department):
    """List all users with role, department and status."""
    query = db.session.query(User)
    if department:
        query = query.filter(func.lower(User.department) == department.lower())

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<26} {'Name':<22} {'Email':<30} {'Role':<7} {'Department':<16} {'Active'}")
    click.echo("="*110)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<26} {user.name[:22]:<22} {user.email[:30]:<30} "
            f"{user.role:<7} {user.department[:16]:<16} {active_str}"
        )

    click.echo("="*110 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@click.option('--department', prompt=True, help='Existing department name')
@click.option('--password', default=None, help="Password (defaults to the role's initial password)")
@with_appcontext
def create_user_command(name, email, role, department, password):
    """Create a user account."""
    try:
        email = validate_email(email)
        department = validate_department_name(department)
    except ValidationError as e:
        raise click.ClickException(e.message)

    permission = db.session.query(DepartmentPermission).filter(
        func.lower(DepartmentPermission.department) == department.lower()
    ).first()
    if not permission:
        raise click.ClickException(f"Department {department} does not exist")

    if db.session.query(User).filter(func.lower(User.email) == email).first():
        raise click.ClickException(f"Email {email} already exists")

    try:
        user = _create_user(
            name=name.strip(),
            email=email,
            role=role,
            department=permission.department,
            password=password,
        )
        db.session.commit()
    except PasswordValidationError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@click.group('departments')
def departments_group():
    """Department inspection commands."""


@departments_group.command('list')
@with_appcontext
def list_departments():
    """List departments and their capability toggles."""
    permissions = db.session.query(DepartmentPermission).order_by(DepartmentPermission.department).all()
    if not permissions:
        click.echo("No departments found.")
        return

    def flag(value):
        return "on" if value else "off"

    click.echo(f"{'Department':<32} {'Request':<8} {'Approve':<8} {'Edit inventory'}")
    for p in permissions:
        click.echo(
            f"{p.department:<32} {flag(p.can_request):<8} {flag(p.can_approve):<8} {flag(p.can_edit_inventory)}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(departments_group)
