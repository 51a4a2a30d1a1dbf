from conftest import make_user
from models import User


def test_create_admin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-admin", "root", "Root@Example.com"], input="hunter2pass\nhunter2pass\n")
    assert result.exit_code == 0, result.output
    assert "Admin root created." in result.output

    with app.app_context():
        admin = User.query.filter_by(username="root").one()
        assert admin.role == "admin"
        assert admin.email == "root@example.com"
        assert admin.check_password("hunter2pass")


def test_create_admin_promotes_existing_user(app):
    make_user(app, "player1")
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-admin", "player1", "player1@example.com"],
                           input="newpassword\nnewpassword\n")
    assert result.exit_code == 0, result.output

    with app.app_context():
        user = User.query.filter_by(username="player1").one()
        assert user.role == "admin"
        assert user.check_password("newpassword")
        assert User.query.count() == 1
