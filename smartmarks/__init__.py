import click
from flask import Flask

from smartmarks.api import api_bp
from smartmarks.auth import auth_bp
from smartmarks.config import Config, validate_config
from smartmarks.extensions import db, login_manager, migrate
from smartmarks.jobs.scheduler import start_scheduler
from smartmarks.web import web_bp


def create_app(config_object=Config):
    app = Flask(__name__, template_folder="../templates")
    app.config.from_object(config_object)
    validate_config(app.config)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.login_view = "web.landing"

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized Smart Bookmarks database.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.argument("password")
    @click.option("--display-name", default=None)
    def create_user_command(username, password, display_name):
        from smartmarks.models import User

        if User.query.filter_by(username=username).first():
            raise click.ClickException(f"user {username} already exists")
        user = User(username=username, display_name=display_name, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        print(f"Created user {username} (id {user.id}).")

    @app.context_processor
    def inject_globals():
        return {"app_name": "Smart Bookmarks"}

    with app.app_context():
        db.create_all()

    start_scheduler(app)
    return app
