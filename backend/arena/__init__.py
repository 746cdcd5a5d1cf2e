from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


class ArenaRuntime:
    """Process-level owner of the game engine, live sessions and timers."""

    def __init__(self, engine, sessions, scheduler):
        self.engine = engine
        self.sessions = sessions
        self.scheduler = scheduler
        self.room_id = None
        self._stats_handle = None

    def claim_room(self, room_id):
        """Record the connected room; returns True when it differs from the last one."""
        changed = room_id != self.room_id
        self.room_id = room_id
        return changed

    def stats(self):
        return {'globalConnectionCount': self.sessions.active_connections}

    def start(self, tick_interval, stats_interval):
        self.engine.start(self.scheduler, tick_interval)
        if stats_interval and self._stats_handle is None:
            self._stats_handle = self.scheduler.every(
                stats_interval,
                lambda: socketio.emit('statistic', self.stats(), namespace='/'),
                name='statistic',
            )

    def stop(self):
        self.engine.stop()
        if self._stats_handle is not None:
            self._stats_handle.cancel()
            self._stats_handle = None
        self.sessions.close_all()


def _tiktok_factory(flask_app):
    def _factory(unique_id):
        from arena.services.live.tiktok import TikTokLiveConnection
        return TikTokLiveConnection(
            unique_id,
            session_id=flask_app.config.get('TIKTOK_SESSION_ID'),
            tt_target_idc=flask_app.config.get('TIKTOK_TARGET_IDC'),
            connect_timeout=float(flask_app.config.get('CONNECT_TIMEOUT_SEC', 30)),
            logger=flask_app.logger,
        )
    return _factory


def create_app(config_class=Config, scheduler=None, connection_factory=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from arena.services.games import GameEngine
    from arena.services.live import ReconnectPolicy, SessionRegistry
    from arena.services.scheduler import SocketIOScheduler

    scheduler = scheduler or SocketIOScheduler(socketio)
    engine = GameEngine(clock=scheduler.now, logger=flask_app.logger)
    engine.subscribe(lambda event, payload: socketio.emit(event, payload, namespace='/'))
    sessions = SessionRegistry(
        connection_factory or _tiktok_factory(flask_app),
        scheduler,
        policy=ReconnectPolicy.from_config(flask_app.config),
        logger=flask_app.logger,
    )
    runtime = ArenaRuntime(engine, sessions, scheduler)
    flask_app.extensions['arena'] = runtime

    from arena.routes import main
    flask_app.register_blueprint(main)

    # Register Socket.IO event handlers
    from arena.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    runtime.start(
        tick_interval=int(flask_app.config.get('TICK_INTERVAL_MS', 100)) / 1000.0,
        stats_interval=int(flask_app.config.get('STATISTIC_INTERVAL_SEC', 5)),
    )

    @click.command('arena-levels')
    def arena_levels_command():
        """Prints the boss-battle level table."""
        for cfg in engine.levels:
            click.echo(
                f"level {cfg.level}: feed {cfg.feed_required:g} -> boss {cfg.boss_hp} hp / {cfg.boss_time_sec:g}s"
            )

    flask_app.cli.add_command(arena_levels_command)

    return flask_app
