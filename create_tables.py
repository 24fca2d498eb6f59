#!/usr/bin/env python3
"""Create test, question and submission tables in the database."""

from sqlalchemy import inspect

from app import app
from models import db

with app.app_context():
    print("Creating tables...")
    db.create_all()
    print("Done!")

    # Verify tables exist
    inspector = inspect(db.engine)
    tables = inspector.get_table_names()

    for table in ["tests", "question", "test_submission", "test_submission_detail"]:
        if table in tables:
            print(f"  ✓ {table} exists")
        else:
            print(f"  ✗ {table} NOT FOUND")
