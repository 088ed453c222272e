from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Account routes live directly under /api (login, register, user, auth/discord)
    from starhub.main import main
    flask_app.register_blueprint(main, url_prefix='/api')

    from starhub.api.credits import credits
    flask_app.register_blueprint(credits, url_prefix='/api/user/credits')

    from starhub.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api')

    from starhub.api.leaderboard import leaderboard
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')

    from starhub.api.payments import payments
    flask_app.register_blueprint(payments, url_prefix='/api/stripe')

    from starhub.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader
    from starhub.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'message': 'Not authenticated'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from starhub.services.credits import open_account
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            for u in ['testuser1', 'testuser2', 'testuser3']:
                user = User(username=u, email=f'{u}@example.com')
                user.set_password('password')
                open_account(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('reset-leaderboards')
    @click.argument('kind', type=click.Choice(['monthly', 'yearly']))
    def reset_leaderboards_command(kind):
        """Clears every per-game leaderboard row of the given period kind."""
        from starhub.services.leaderboard import reset_period
        with flask_app.app_context():
            removed = reset_period(kind)
            print(f'Removed {removed} {kind} leaderboard rows.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(reset_leaderboards_command)

    return flask_app
