"""
Configuration module for msgintel.

Handles the locations of the two Messages stores the extractor reads:

    - chat.db: Apple's Messages database (read-only source)
    - Drafts/: per-account composition.plist artifacts (read-only source)
"""

import os
from pathlib import Path
from typing import Optional


class Config:
    """Configuration class for msgintel."""

    # Default database file name
    DEFAULT_DB_NAME = "chat.db"

    # Default path to Messages directory on macOS
    DEFAULT_MESSAGES_PATH = Path.home() / "Library" / "Messages"

    # Drafts live beside chat.db
    DEFAULT_DRAFTS_DIRNAME = "Drafts"

    def __init__(self, db_path: Optional[str] = None, drafts_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            db_path: Optional path to chat.db file. If not provided, will look
                    in current directory, then in default Messages directory.
            drafts_path: Optional path to the Drafts directory. Defaults to
                    ~/Library/Messages/Drafts.
        """
        self._db_path: Optional[Path] = None
        if db_path:
            self._db_path = Path(db_path)
        else:
            # Try current directory first
            current_dir_db = Path.cwd() / self.DEFAULT_DB_NAME
            if current_dir_db.exists():
                self._db_path = current_dir_db
            elif (self.DEFAULT_MESSAGES_PATH / self.DEFAULT_DB_NAME).exists():
                self._db_path = self.DEFAULT_MESSAGES_PATH / self.DEFAULT_DB_NAME

        self._drafts_path: Path
        if drafts_path:
            self._drafts_path = Path(drafts_path)
        else:
            self._drafts_path = self.DEFAULT_MESSAGES_PATH / self.DEFAULT_DRAFTS_DIRNAME

    @property
    def db_path(self) -> Optional[Path]:
        """Get the chat.db file path."""
        return self._db_path

    @property
    def db_path_str(self) -> Optional[str]:
        """Get the chat.db file path as a string."""
        return str(self._db_path) if self._db_path else None

    @property
    def drafts_path(self) -> Path:
        """Get the Drafts directory path."""
        return self._drafts_path

    def validate(self) -> bool:
        """
        Validate that the chat.db file exists and is readable.

        Returns:
            True if chat.db exists and is readable, False otherwise.
        """
        if not self._db_path:
            return False
        return self._db_path.is_file() and os.access(self._db_path, os.R_OK)

    def validate_drafts(self) -> bool:
        """Check that the Drafts directory exists and can be listed."""
        return self._drafts_path.is_dir() and os.access(self._drafts_path, os.R_OK | os.X_OK)


# Global configuration instance
_config: Optional[Config] = None


def get_config(db_path: Optional[str] = None, drafts_path: Optional[str] = None) -> Config:
    """
    Get or create the global configuration instance.

    Args:
        db_path: Optional path to chat.db file.
        drafts_path: Optional path to the Drafts directory.

    Returns:
        Config instance.
    """
    global _config
    if _config is None or db_path is not None or drafts_path is not None:
        _config = Config(db_path, drafts_path)
    return _config


def set_config(config: Optional[Config]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Config instance to use, or None to reset.
    """
    global _config
    _config = config
