"""
CLI command tests (flask system / admins / backup).
"""

import json

from madeh.models import Admin, Product
from madeh.models.auth import ROLE_SUPER_ADMIN


def test_system_init_creates_super_admin(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "system", "init", "--username", "owner", "--email", "Owner@Madeh.Local", "--password", "secret123",
    ])

    assert result.exit_code == 0, result.output
    assert "Created Super Admin" in result.output
    admin = db_session.query(Admin).one()
    assert admin.role == ROLE_SUPER_ADMIN
    assert admin.email == "owner@madeh.local"


def test_system_init_is_idempotent(app, super_admin, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "system", "init", "--username", "other", "--email", "other@madeh.local", "--password", "secret123",
    ])

    assert result.exit_code == 0
    assert "already exists" in result.output
    assert db_session.query(Admin).count() == 1


def test_system_init_rejects_short_password(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "system", "init", "--username", "owner", "--email", "owner@madeh.local", "--password", "abc",
    ])
    assert result.exit_code != 0
    assert "at least 6" in result.output


def test_reset_db(app, hammer, db_session):
    result = app.test_cli_runner().invoke(args=["system", "reset-db", "--yes"])
    assert result.exit_code == 0
    assert db_session.query(Product).count() == 0


def test_admins_create_and_list(app, super_admin):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "admins", "create", "--username", "till", "--email", "till@madeh.local",
        "--password", "secret123", "--role", "Cashier",
    ])
    assert result.exit_code == 0, result.output

    result = runner.invoke(args=["admins", "list"])
    assert "till@madeh.local" in result.output
    assert "Super Admin" in result.output


def test_admins_create_duplicate(app, cashier):
    result = app.test_cli_runner().invoke(args=[
        "admins", "create", "--username", "cashier2", "--email", cashier.email,
        "--password", "secret123", "--role", "Cashier",
    ])
    assert result.exit_code != 0
    assert "Email already registered" in result.output


def test_backup_export_and_restore(app, hammer, db_session, tmp_path):
    runner = app.test_cli_runner()
    path = tmp_path / "backup.json"

    result = runner.invoke(args=["backup", "export", "--output", str(path)])
    assert result.exit_code == 0, result.output
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["data"]["products"][0]["name"] == "Claw Hammer"

    hammer.stock = 0
    db_session.commit()

    result = runner.invoke(args=["backup", "restore", str(path), "--yes"])
    assert result.exit_code == 0, result.output
    assert "Restored 1 products" in result.output
    assert db_session.get(Product, hammer.id).stock == 20


def test_backup_restore_invalid_file(app, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text('{"data": 1}', encoding="utf-8")
    result = app.test_cli_runner().invoke(args=["backup", "restore", str(path), "--yes"])
    assert result.exit_code != 0
    assert "Invalid backup file format." in result.output
