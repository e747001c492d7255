# onetask/models/kv_entry.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String

from onetask.database import Base


class KVEntry(Base):
    __tablename__ = "kv_entries"

    # user:<email> | user-id:<id> | data:<user id>
    key = Column(String(320), primary_key=True)
    value = Column(JSON, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
