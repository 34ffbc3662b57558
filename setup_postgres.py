#!/usr/bin/env python3
"""
Script to set up the PostgreSQL database for Thread Harvester.
Creates the database if it doesn't exist and creates the github_issues and
questions tables.
"""

import argparse
import logging
import os
import sys

import psycopg2
from psycopg2 import sql
from dotenv import load_dotenv
from sqlalchemy.engine import URL

from harvester.db.database import DatabaseManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Load environment variables from .env file
dotenv_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env')
load_dotenv(dotenv_path=dotenv_path)


def create_database(host, port, user, password, dbname, sslmode):
    """Create the PostgreSQL database if it doesn't exist."""
    # Connect to the maintenance database first
    conn = psycopg2.connect(
        host=host,
        port=port,
        user=user,
        password=password,
        dbname="postgres",
        sslmode=sslmode,
    )
    conn.autocommit = True  # Required for CREATE DATABASE
    try:
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM pg_database WHERE datname = %s", (dbname,))
            if cursor.fetchone():
                logger.info(f"Database {dbname} already exists")
                return
            
            logger.info(f"Creating database {dbname}...")
            cursor.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(dbname)))
            logger.info(f"Database {dbname} created successfully")
    finally:
        conn.close()


def main():
    parser = argparse.ArgumentParser(description="Setup PostgreSQL database for Thread Harvester")
    parser.add_argument(
        "--host", 
        default=os.getenv("DB_HOST", "localhost"),
        help="PostgreSQL host (default: from DB_HOST env var or localhost)"
    )
    parser.add_argument(
        "--port", 
        type=int,
        default=int(os.getenv("DB_PORT", "5432")),
        help="PostgreSQL port (default: from DB_PORT env var or 5432)"
    )
    parser.add_argument(
        "--user",
        default=os.getenv("DB_USER", "postgres"),
        help="PostgreSQL username (default: from DB_USER env var or postgres)"
    )
    parser.add_argument(
        "--password",
        default=os.getenv("DB_PASSWORD", "postgres"),
        help="PostgreSQL password (default: from DB_PASSWORD env var or postgres)"
    )
    parser.add_argument(
        "--dbname",
        default=os.getenv("DB_NAME", "harvester"),
        help="PostgreSQL database name (default: from DB_NAME env var or harvester)"
    )
    parser.add_argument(
        "--sslmode",
        choices=["require", "disable"],
        default=os.getenv("DB_SSLMODE", "disable"),
        help="SSL mode (default: from DB_SSLMODE env var or disable)"
    )
    args = parser.parse_args()

    db_url = URL.create(
        "postgresql+psycopg2",
        username=args.user,
        password=args.password,
        host=args.host,
        port=args.port,
        database=args.dbname,
        query={"sslmode": args.sslmode},
    )
    
    try:
        create_database(args.host, args.port, args.user, args.password, args.dbname, args.sslmode)
        
        db_manager = DatabaseManager(db_url.render_as_string(hide_password=False))
        try:
            db_manager.init_db()
        finally:
            db_manager.cleanup()
            
        logger.info("Database setup completed successfully!")
        return 0
        
    except Exception as e:
        logger.error(f"Error setting up database: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
