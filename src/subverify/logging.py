"""
Logging system for SubVerify with startup size check and Rich console output.
"""
import os
import logging
import shutil
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.logging import RichHandler


MAX_LOG_BYTES = 5 * 1024 * 1024;  # 5MB
LOG_BACKUP_COUNT = 5;


class SubVerifyLogger:
    """
    Logger wrapper for SubVerify.

    Features:
    - Rich console output, INFO by default and DEBUG with --debug
    - Rotating file log under logs/ (or $SUBVERIFY_LOG_DIR)
    - Oversized log file is moved aside on startup
    """

    def __init__( self, name: str = "subverify", debug: bool = False, log_dir: Optional[Path] = None ):
        self.name = name;
        self.debug_mode = debug;
        self.console = Console( stderr=True );

        self.logs_dir = Path( log_dir or os.getenv( "SUBVERIFY_LOG_DIR", "logs" ) );
        self.logs_dir.mkdir( parents=True, exist_ok=True );

        self.log_file = self.logs_dir / f"{name}.log";

        self._rotate_oversized_log();

        self.logger = self._setup_logger();

    def _rotate_oversized_log( self ):
        """Move the log file aside on startup if it grew past the size limit."""
        if self.log_file.exists() and self.log_file.stat().st_size > MAX_LOG_BYTES:
            timestamp = datetime.now().isoformat().replace( ":", "-" );
            backup_name = self.logs_dir / f"{self.name}.{timestamp}.log";
            shutil.move( str( self.log_file ), str( backup_name ) );

    def _setup_logger( self ) -> logging.Logger:
        """Attach Rich console and rotating file handlers to the named logger."""
        logger = logging.getLogger( self.name );
        logger.setLevel( logging.DEBUG );
        logger.propagate = False;
        logger.handlers.clear();

        console_handler = RichHandler(
            console=self.console,
            rich_tracebacks=True,
            show_time=True,
            show_path=self.debug_mode
        );
        console_handler.setLevel( logging.DEBUG if self.debug_mode else logging.INFO );
        console_handler.setFormatter( logging.Formatter( "%(message)s" ) );
        logger.addHandler( console_handler );

        file_handler = RotatingFileHandler(
            self.log_file,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8"
        );
        file_handler.setLevel( logging.DEBUG );
        file_handler.setFormatter( logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ) );
        logger.addHandler( file_handler );

        return logger;

    def set_debug( self, debug: bool ):
        """Switch console verbosity after creation."""
        self.debug_mode = debug;
        for handler in self.logger.handlers:
            if isinstance( handler, RichHandler ):
                handler.setLevel( logging.DEBUG if debug else logging.INFO );

    def debug( self, message, **kwargs ):
        self.logger.debug( message, **kwargs );

    def info( self, message, **kwargs ):
        self.logger.info( message, **kwargs );

    def warning( self, message, **kwargs ):
        self.logger.warning( message, **kwargs );

    def error( self, message, **kwargs ):
        self.logger.error( message, **kwargs );

    def critical( self, message, **kwargs ):
        self.logger.critical( message, **kwargs );


# Global logger instance
_logger = None;


def get_logger( debug: bool = False ) -> SubVerifyLogger:
    """Get the global SubVerify logger instance."""
    global _logger;
    if _logger is None:
        _logger = SubVerifyLogger( debug=debug );
    elif debug and not _logger.debug_mode:
        _logger.set_debug( True );
    return _logger;


def setup_logging( debug: bool = False ) -> SubVerifyLogger:
    """Setup logging for the application."""
    return get_logger( debug=debug );
