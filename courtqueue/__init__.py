from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from courtqueue.config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from courtqueue.main import main
    flask_app.register_blueprint(main)

    from courtqueue.api.clubs import clubs
    flask_app.register_blueprint(clubs, url_prefix='/api/clubs')

    try:
        from courtqueue.socketio_events import register_socketio_handlers
        register_socketio_handlers(testing=flask_app.config.get('TESTING', False))
    except Exception as exc:
        flask_app.logger.warning(f"SocketIO events not loaded: {exc}")

    from courtqueue.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo host and club."""
        from courtqueue.models import User, Club
        from courtqueue.services.queue.state import QueueEntry
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            host = User(username='host', nickname='Demo Host')
            host.set_password('password')
            db.session.add(host)
            db.session.flush()

            club = Club(
                club_name='Demo Club',
                host_owner_id=host.id,
                sport=flask_app.config.get('DEFAULT_SPORT', 'badminton'),
                active_unit_count=flask_app.config.get('DEFAULT_ACTIVE_UNITS', 4),
                pick_range=flask_app.config.get('DEFAULT_PICK_RANGE', 20),
            )
            players = [('ALICE', 'F'), ('BOB', 'M'), ('CARL', 'M'), ('DEE', 'F'), ('EVE', 'F')]
            club.waiting_queue = [QueueEntry(name=n, gender=g).to_dict() for n, g in players]
            club.roster = {club.sport: [{'name': n, 'gender': g, 'games': 0, 'wins': 0} for n, g in players]}
            db.session.add(club)
            db.session.commit()
            print(f'Database has been reset and seeded! Demo club: {club.id}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
