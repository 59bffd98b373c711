"""
Configuration Management

Simple utility for loading and validating environment configuration.
"""

import os
from typing import Optional

import pytz
from dotenv import load_dotenv

from config import Config


def load_config(env_path: Optional[str] = None) -> bool:
    """
    Load environment configuration from .env file.

    Args:
        env_path: Optional path to .env file. If None, searches in current directory.

    Returns:
        bool: True if .env file was found and loaded, False otherwise
    """
    if env_path:
        return load_dotenv(env_path)
    return load_dotenv()


def get_database_config() -> dict:
    """
    Get record store connection configuration.

    Returns:
        dict: Database configuration

    Raises:
        ValueError: If required configuration is missing
    """
    config = {
        "host": os.getenv("STOREDB_HOST"),
        "port": os.getenv("STOREDB_PORT", "5432"),
        "database": os.getenv("STOREDB_NAME"),
        "user": os.getenv("STOREDB_USER"),
        "password": os.getenv("STOREDB_PASS"),
    }

    # Validate
    missing = [k for k, v in config.items() if not v]
    if missing:
        raise ValueError(
            f"Missing record store configuration: {missing}. "
            f"Please check your .env file."
        )

    config["sslmode"] = os.getenv("STOREDB_SSLMODE", "prefer")
    return config


def get_app_config() -> dict:
    """
    Get application configuration settings.

    Returns:
        dict: Application settings
    """
    return {
        "timezone": os.getenv("TIMEZONE", Config.TIMEZONE),
        "log_level": os.getenv("LOG_LEVEL", Config.LOG_LEVEL),
    }


def get_plant_defaults() -> dict:
    """
    Plant time settings used when a factory has no stored configuration.

    Keys mirror the ``time_settings`` / ``line_sim_defaults`` JSON columns.
    """
    return {
        "shift_start": Config.DEFAULT_SHIFT_START,
        "shift_end": Config.DEFAULT_SHIFT_END,
        "break_minutes": Config.DEFAULT_BREAK_MINUTES,
        "lunch_minutes": Config.DEFAULT_LUNCH_MINUTES,
        "target_throughput_per_day": Config.DEFAULT_TARGET_THROUGHPUT,
    }


def get_capacity_weights() -> dict:
    """Penalty weights for the PM capacity heuristic."""
    return {
        "project_weight": Config.CAPACITY_PROJECT_WEIGHT,
        "task_weight": Config.CAPACITY_TASK_WEIGHT,
        "overdue_weight": Config.CAPACITY_OVERDUE_WEIGHT,
    }


def validate_config() -> list:
    """
    Validate all required configuration is present.

    Returns:
        list: List of missing configuration items (empty if all valid)
    """
    missing = []

    try:
        get_database_config()
    except ValueError as e:
        missing.append(f"STORE: {str(e)}")

    timezone = get_app_config()["timezone"]
    try:
        pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError:
        missing.append(f"TIMEZONE: unknown timezone '{timezone}'")

    weights = get_capacity_weights()
    negative = [k for k, v in weights.items() if v < 0]
    if negative:
        missing.append(f"CAPACITY: negative weights not allowed: {negative}")

    return missing
