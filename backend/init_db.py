#!/usr/bin/env python3
"""
Database initialization script.
Creates all tables from the SQLAlchemy models.
"""

from leadsweep.db.base import Base
from leadsweep.db.session import engine
import leadsweep.models  # noqa: F401


def init_db():
    """Create all database tables."""
    print("Creating database tables...")

    Base.metadata.create_all(bind=engine)

    print("✓ Database tables created successfully!")
    for table in sorted(Base.metadata.tables):
        print(f"  - {table}")


if __name__ == "__main__":
    init_db()
