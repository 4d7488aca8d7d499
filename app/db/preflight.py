"""
Database preflight check to ensure connectivity before the ledger is opened.
"""
import time
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from app.core.logging import get_logger

logger = get_logger("db_preflight")


def run_db_preflight(engine: Engine, retries: int = 5, delay: float = 2):
    """
    Attempts to connect to the database and runs a simple query.
    Raises RuntimeError once every attempt has failed.
    """
    # Scramble credentials in logs
    db_url = engine.url.render_as_string(hide_password=True)
    safe_url = db_url.split("@")[-1] if "@" in db_url else db_url
    logger.info(f"Running DB preflight check against: {safe_url}")

    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection successful.")
            return True
        except OperationalError as e:
            err_msg = str(e)
            if attempt < retries:
                logger.warning(f"Attempt {attempt}/{retries} failed: {err_msg}. Retrying in {delay}s...")
                time.sleep(delay)
            else:
                logger.error(f"CRITICAL: Could not connect to database after {retries} attempts.")
                logger.error(f"Error: {err_msg}")
                raise RuntimeError(f"Ledger database unreachable: {safe_url}") from e
