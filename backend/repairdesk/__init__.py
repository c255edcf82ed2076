from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

# (config key, env default, cast)
ENV_SETTINGS = (
    ('JWT_SECRET_KEY', 'dev-secret', str),
    ('DATABASE_URL', 'sqlite:///dev.db', str),
    ('TICKET_NUMBER_PREFIX', 'RPR', str),
    ('TICKET_OVERDUE_DAYS', '7', int),
    ('CURRENCY_PREFIX', '$', str),
)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _make_engine(db_url: str):
    if db_url.endswith(':memory:'):
        # one shared in-memory SQLite database for every session
        engine = create_engine(
            db_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(db_url, future=True)
    if engine.dialect.name == 'sqlite':
        # SQLite's builtin lower() only folds ASCII
        @event.listens_for(engine, 'connect')
        def _register_functions(dbapi_conn, _record):
            dbapi_conn.create_function('lower', 1, _unicode_lower)
    return engine


def _error_body(status: int, title: str, detail: Any):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    for key, default, cast in ENV_SETTINGS:
        app.config[key] = cast(os.getenv(key, default))
    if config:
        # callers (tests, scripts) may override any environment value
        app.config.update(config)

    db_engine = _make_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.repairs import rpr_bp  # staff ticket management
    from .routes.tracking import track_bp  # public tracking lookup
    app.register_blueprint(rpr_bp, url_prefix='/repairs')
    app.register_blueprint(track_bp, url_prefix='/track')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    from .errors import RepairDeskError

    # Every error leaves as {"error": {status, title, detail}}
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_body(e.code, e.name, e.description)
        if isinstance(e, RepairDeskError):
            if e.status_code >= 500:
                app.logger.error('%s: %s', e.title, e)
            return _error_body(e.status_code, e.title, str(e))
        app.logger.exception('Unhandled exception')
        return _error_body(500, 'Internal Server Error', 'Unexpected error')

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Redoc from CDN, nothing bundled
        return (
            "<!DOCTYPE html><html><head><title>RepairDesk API Docs</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()
