"""Database configuration and initialization."""
from sqlalchemy import BigInteger, Integer, create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = None


def _build_engine(database_uri, echo=False):
    """Create the engine with pool settings appropriate for the backend."""
    if database_uri.startswith('sqlite'):
        sqlite_engine = create_engine(
            database_uri,
            echo=echo,
            connect_args={'check_same_thread': False, 'timeout': 30}
        )

        # pysqlite defers BEGIN until the first write; take the write lock up
        # front so concurrent checkouts serialize instead of deadlocking.
        @event.listens_for(sqlite_engine, 'connect')
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            dbapi_connection.execute('PRAGMA foreign_keys=ON')

        @event.listens_for(sqlite_engine, 'begin')
        def _sqlite_begin(conn):
            conn.exec_driver_sql('BEGIN IMMEDIATE')

        return sqlite_engine

    return create_engine(
        database_uri,
        echo=echo,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=10,
        max_overflow=20
    )


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = _build_engine(database_uri, echo=app.config.get('SQLALCHEMY_ECHO', False))

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
    """Create every table known to the models (dev/test databases)."""
    import commerce.models  # noqa: F401 - registers mappers
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table known to the models."""
    import commerce.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session
