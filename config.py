"""
Configuration Management
Loads environment variables for the record store, plant defaults and scoring weights
"""
import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Application configuration"""

    # Record store; connection settings are read per call by utils.config.get_database_config
    STORE_STATEMENT_TIMEOUT_MS = int(os.getenv("STOREDB_STATEMENT_TIMEOUT_MS", 30000))

    # Application Settings
    TIMEZONE = os.getenv("TIMEZONE", "America/New_York")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Plant defaults (used when a factory has no plant_config row)
    DEFAULT_SHIFT_START = os.getenv("DEFAULT_SHIFT_START", "06:00")
    DEFAULT_SHIFT_END = os.getenv("DEFAULT_SHIFT_END", "14:30")
    DEFAULT_BREAK_MINUTES = int(os.getenv("DEFAULT_BREAK_MINUTES", 30))
    DEFAULT_LUNCH_MINUTES = int(os.getenv("DEFAULT_LUNCH_MINUTES", 30))
    DEFAULT_TARGET_THROUGHPUT = float(os.getenv("DEFAULT_TARGET_THROUGHPUT", 2))

    # PM capacity heuristic weights (points deducted per item)
    CAPACITY_PROJECT_WEIGHT = float(os.getenv("CAPACITY_PROJECT_WEIGHT", 15))
    CAPACITY_TASK_WEIGHT = float(os.getenv("CAPACITY_TASK_WEIGHT", 2))
    CAPACITY_OVERDUE_WEIGHT = float(os.getenv("CAPACITY_OVERDUE_WEIGHT", 10))
