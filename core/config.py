#settings loader
"""
Configuration for the expense report service.

Settings live in an INI file (config/config.ini by default, or the path in
the EXPENSE_REPORTS_CONFIG environment variable):

    [mysql]
    host = 127.0.0.1
    user = reports
    password = secret
    database = expenses
    port = 3306

    [export]
    max_rows = 50000
    pdf_page_compression = true
    currency = USD
    locale = en_US
"""

from __future__ import annotations
from typing import Dict, Any, Optional
import configparser
import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_PATH = os.path.join(BASE_DIR, "config", "config.ini")
CONFIG_ENV_VAR = "EXPENSE_REPORTS_CONFIG"


def config_path() -> str:
    """Path of the active INI file."""
    return os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH


def read_config(path: Optional[str] = None) -> configparser.ConfigParser:
    """Read the INI file, failing loudly when it is missing."""
    path = path or config_path()
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    config = configparser.ConfigParser()
    config.read(path)
    return config


def load_mysql_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """Reads database credentials from the [mysql] section."""
    config = read_config(path)
    return {
        'host': config.get('mysql', 'host'),
        'user': config.get('mysql', 'user'),
        'password': config.get('mysql', 'password'),
        'database': config.get('mysql', 'database'),
        'port': config.getint('mysql', 'port', fallback=3306),
    }


def load_export_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Reads the optional [export] section.

    A missing file or section yields an empty dict so the export
    defaults apply.
    """
    path = path or config_path()
    if not os.path.exists(path):
        return {}

    config = read_config(path)
    if not config.has_section('export'):
        return {}

    settings: Dict[str, Any] = {}
    if config.has_option('export', 'max_rows'):
        settings['max_rows'] = config.getint('export', 'max_rows')
    if config.has_option('export', 'pdf_page_compression'):
        settings['pdf_page_compression'] = config.getboolean('export', 'pdf_page_compression')
    if config.has_option('export', 'currency'):
        settings['currency'] = config.get('export', 'currency').strip()
    if config.has_option('export', 'locale'):
        settings['locale'] = config.get('export', 'locale').strip()
    return settings
