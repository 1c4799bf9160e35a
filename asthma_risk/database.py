"""
Database connectivity layer for the Medicaid claims warehouse.

Supports SQLite (for testing/synthetic data), PostgreSQL, and SQL Server
through an ODBC DSN (the production claims warehouse).
"""

from typing import Generator
from contextlib import contextmanager

import yaml
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import Session, sessionmaker

from .claims_schema import Base


class Database:
    """
    Database connection manager for the claims warehouse.

    Provides session management and, for local stores, schema creation.
    The pipeline only ever reads through it.

    Examples:
        # SQLite for testing
        db = Database("sqlite:///claims.db")

        # SQL Server through an ODBC DSN
        db = Database("mssql+pyodbc://@PHClaims")

        with db.session() as session:
            elig = extract_baseline_eligibility(session, 2014, start, end)
    """

    def __init__(self, connection_string: str, echo: bool = False):
        """
        Initialize database connection.

        Args:
            connection_string: SQLAlchemy database URL
            echo: If True, log all SQL statements
        """
        self.connection_string = connection_string
        self.engine = create_engine(connection_string, echo=echo)
        self._session_factory = sessionmaker(bind=self.engine)

    def create_tables(self) -> None:
        """Create the eligibility and claims tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Yields:
            Session: SQLAlchemy session
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_table_counts(self) -> dict[str, int]:
        """Get row counts for the warehouse tables that exist."""
        existing = set(inspect(self.engine).get_table_names())
        counts = {}
        for table in Base.metadata.sorted_tables:
            if table.name not in existing:
                counts[table.name] = 0
                continue
            with self.engine.connect() as conn:
                result = conn.execute(text(f"SELECT COUNT(*) FROM {table.name}"))
                counts[table.name] = result.scalar()
        return counts

    def is_connected(self) -> bool:
        """Test if database connection is working."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False


def connection_string_from_config(db_config: dict) -> str:
    """
    Build a SQLAlchemy URL from a `database` config section.

    Config section format:
        database:
          type: sqlite  # or postgresql, mssql
          path: ./claims.db  # for sqlite
          host: localhost  # for postgresql
          port: 5432
          name: claims
          user: username
          password: password
          dsn: PHClaims  # for mssql (ODBC data source name)
    """
    db_type = db_config.get('type', 'sqlite')

    if db_type == 'sqlite':
        path = db_config.get('path', './claims.db')
        return f"sqlite:///{path}"
    if db_type == 'postgresql':
        host = db_config.get('host', 'localhost')
        port = db_config.get('port', 5432)
        name = db_config.get('name', 'claims')
        user = db_config.get('user', 'postgres')
        password = db_config.get('password', '')
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"
    if db_type == 'mssql':
        dsn = db_config.get('dsn')
        if not dsn:
            raise ValueError("mssql database config requires a 'dsn'")
        return f"mssql+pyodbc://@{dsn}"
    raise ValueError(f"Unsupported database type: {db_type}")


def create_engine_from_config(config_path: str) -> Database:
    """
    Create Database instance from YAML config file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        Configured Database instance
    """
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    return Database(connection_string_from_config(config.get('database', {})))


def get_sqlite_database(path: str = "./claims.db") -> Database:
    """
    Convenience function to create SQLite database.

    Args:
        path: Path to SQLite database file

    Returns:
        Database instance connected to SQLite
    """
    return Database(f"sqlite:///{path}")
