#database connection setup
import mysql.connector
from mysql.connector import Error

from core.config import load_mysql_settings
from core.logging_setup import get_logger

logger = get_logger(__name__)


class StoreFailure(Exception):
    """Base class for failures reading from the row store."""


class DatabaseConnectionError(StoreFailure):
    """Raised when the MySQL server cannot be reached."""


class DatabaseConnection:
    def __init__(self, settings=None):
        self.connection = None
        self._settings = settings

    def _load_config(self):
        """Credentials passed in, or the [mysql] section of the config file."""
        return self._settings or load_mysql_settings()

    def get_connection(self):
        """Establishes a connection to the MySQL database."""
        db_config = self._load_config()
        try:
            self.connection = mysql.connector.connect(**db_config)
        except Error as e:
            logger.error("mysql_connect_failed host=%s error=%s", db_config.get('host'), e)
            self.connection = None
            raise DatabaseConnectionError(str(e)) from e

        logger.debug("mysql_connected host=%s database=%s", db_config.get('host'), db_config.get('database'))
        return self.connection

    def close_connection(self):
        """Closes the open MySQL connection."""
        if self.connection and self.connection.is_connected():
            self.connection.close()
            logger.debug("mysql_connection_closed")
        self.connection = None

    # ---------- Context Management ----------
    def __enter__(self):
        """Used for 'with' statements."""
        self.get_connection()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Automatically closes connection when leaving context."""
        self.close_connection()
