from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from onetask.config import DATABASE_URL, SQL_ECHO

# For SQLite we must add connect_args
connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    echo=SQL_ECHO,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
