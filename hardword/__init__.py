from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
import logging
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))
    logging.getLogger('hardword').setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One broadcaster per app, bound to this app's Socket.IO server
    from hardword.services.realtime import EventBroadcaster
    flask_app.extensions['hardword_broadcaster'] = EventBroadcaster(socketio)

    # Host password is only ever compared against its bcrypt hash
    flask_app.config['ADMIN_PASSWORD_HASH'] = bcrypt.generate_password_hash(
        flask_app.config.get('ADMIN_PASSWORD', '')
    ).decode('utf-8')

    from hardword.main import main
    flask_app.register_blueprint(main)

    from hardword.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api')

    from hardword.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from hardword.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from hardword.errors import HardwordError

    @flask_app.errorhandler(HardwordError)
    def handle_hardword_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.warning(f"[error] {exc.__class__.__name__}: {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    # Flask-Login user loader: the only account is the configured host
    from hardword.main import HostUser

    @login_manager.user_loader
    def load_user(user_id):
        if user_id == HostUser.id:
            return HostUser()
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo event."""
        from hardword.services import events as event_service
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            event = event_service.create_event('Demo Night')
            for text, answer in [
                ('Capital of France', 'Paris'),
                ('Largest city in the United States', 'New York'),
                ('Red planet', 'Mars'),
            ]:
                event_service.add_question(event.id, text, answer)
            print(f'Database has been reset and seeded! Join code: {event.code}')

    flask_app.cli.add_command(db_reset_command)

    @click.command('watch-event')
    @click.argument('event_id', type=int)
    @click.option('--base-url', default='http://127.0.0.1:5000', help='Server to follow.')
    def watch_event_command(event_id, base_url):
        """Follows an event like a player view would, printing each change."""
        import time
        from hardword.client.transports import subscribe

        interval = flask_app.config.get('SYNC_POLL_INTERVAL_SEC', 3)
        sync, snapshots = subscribe(
            base_url,
            event_id,
            poll_interval=interval,
            connect_timeout=flask_app.config.get('SYNC_CONNECT_TIMEOUT_SEC', 5),
        )
        last = None
        try:
            while True:
                current = snapshots.current or {}
                question = current.get('current_question') or {}
                line = (
                    f"[{sync.mode.value}] status={current.get('event_status')} "
                    f"question={question.get('index')} "
                    f"leaders={[(row['name'], row['score']) for row in snapshots.leaderboard[:3]]}"
                )
                if line != last:
                    click.echo(line)
                    last = line
                time.sleep(interval)
        except KeyboardInterrupt:
            pass
        finally:
            sync.stop()
            snapshots.close()

    flask_app.cli.add_command(watch_event_command)

    return flask_app
