import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import DB_POOL_TIMEOUT_SECONDS, DB_STATEMENT_TIMEOUT_MS

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/therianr")

# Every statement is bounded server-side; a timeout surfaces as OperationalError.
engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_pre_ping=True,
    pool_timeout=DB_POOL_TIMEOUT_SECONDS,
    connect_args={"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"},
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
