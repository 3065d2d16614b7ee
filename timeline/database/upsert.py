"""Dialect-aware conflict-ignoring inserts"""

from typing import Any, Dict, List

from sqlalchemy import insert
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.orm import Session
import logging

logger = logging.getLogger(__name__)


def insert_ignore(db: Session, model, rows: List[Dict[str, Any]]) -> None:
    """
    Insert rows in one statement, silently skipping unique-key conflicts

    PostgreSQL and SQLite use ON CONFLICT DO NOTHING, MySQL uses INSERT IGNORE.

    Args:
        db: Database session (caller commits)
        model: ORM model class
        rows: Column dictionaries
    """
    if not rows:
        return

    dialect = db.get_bind().dialect.name
    table = model.__table__

    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(rows).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(rows).on_conflict_do_nothing()
    elif dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(rows).prefix_with("IGNORE")
    else:
        logger.warning(f"No conflict-ignoring insert for dialect {dialect}, using plain insert")
        stmt = insert(table).values(rows)

    db.execute(stmt)
