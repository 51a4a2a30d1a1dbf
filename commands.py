import logging
import click
from flask.cli import with_appcontext
from models import db, User

logger = logging.getLogger(__name__)


@click.command("create-admin")
@click.argument("username")
@click.argument("email")
@click.password_option(help="Password for the admin account.")
@with_appcontext
def create_admin(username, email, password):
    """Create an admin account, or promote the user that already owns USERNAME/EMAIL."""
    email = email.strip().lower()
    user = User.query.filter((User.username == username) | (User.email == email)).first()

    if user:
        user.role = "admin"
        user.set_password(password)
        db.session.commit()
        logger.info("Promoted user %s to admin", user.id)
        click.echo(f"User {user.username} is now an admin.")
        return

    user = User(username=username, email=email, full_name=username, role="admin")
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("Created admin user %s", user.id)
    click.echo(f"Admin {user.username} created.")


def register_commands(app):
    app.cli.add_command(create_admin)
