"""Database configuration and initialization."""
from datetime import datetime, timezone

from sqlalchemy import create_engine, BigInteger, Integer
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# BIGINT primary keys do not autoincrement on SQLite, INTEGER does
IdType = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = None


def utcnow():
    """Naive UTC timestamp with microsecond precision (source of updatedOn tokens)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _engine_options(app):
    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    options = {'echo': app.config.get('SQLALCHEMY_ECHO', False)}

    if database_uri.startswith('sqlite'):
        # One shared connection so every session sees the same in-memory database
        options.update(
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    else:
        options.update(
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20
        )
    return options


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    engine = create_engine(app.config['SQLALCHEMY_DATABASE_URI'], **_engine_options(app))

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the models package."""
    import invoicing.models  # noqa: F401  (registers the mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table (tests only)."""
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session
