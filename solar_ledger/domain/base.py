"""Shared base for persisted domain entities"""

import uuid
from sqlmodel import SQLModel
from sqlalchemy import BigInteger, Integer

# SQLite only auto-increments INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer, "sqlite")


def generate_uuid() -> str:
    return str(uuid.uuid4())


class BaseModel(SQLModel):
    """Base class for all table models"""
    pass
