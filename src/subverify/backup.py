"""
Backups of export targets before they are overwritten.
"""
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .logging import get_logger


class BackupManager:
    """
    Keeps ISO-8601 timestamped copies of files about to be overwritten.

    Only the newest max_backups copies per file are retained.
    """

    def __init__( self, backup_dir: Optional[Path] = None, max_backups: int = 20 ):
        self.logger = get_logger();
        self.backup_dir = Path( backup_dir ) if backup_dir else Path( "backup" );
        self.max_backups = max_backups;

    def get_backup_filename( self, original_file: Path ) -> str:
        timestamp = datetime.now().strftime( "%Y-%m-%dT%H-%M-%S-%f" );
        return f"{original_file.stem}.{timestamp}{original_file.suffix}";

    def get_existing_backups( self, original_file: Path ) -> List[Path]:
        """Backups of original_file, oldest first."""
        pattern = f"{original_file.stem}.????-??-??T??-??-??-*{original_file.suffix}";
        return sorted( self.backup_dir.glob( pattern ), key=lambda path: path.name );

    def apply_retention_policy( self, original_file: Path ) -> int:
        """
        Remove the oldest backups beyond max_backups.

        Returns:
            Number of backups removed
        """
        backups = self.get_existing_backups( original_file );
        excess = backups[:-self.max_backups] if len( backups ) > self.max_backups else [];

        for backup_path in excess:
            try:
                backup_path.unlink();
                self.logger.debug( f"Removed old backup: {backup_path.name}" );
            except OSError as e:
                self.logger.warning( f"Could not remove backup {backup_path}: {e}" );

        if excess:
            self.logger.info( f"Removed {len( excess )} old backup(s) of {original_file.name}" );
        return len( excess );

    def create_backup( self, file_path: Path ) -> Path:
        """
        Copy file_path into the backup directory.

        Args:
            file_path: Existing file to back up

        Returns:
            Path of the backup copy
        """
        file_path = Path( file_path );
        if not file_path.exists():
            raise FileNotFoundError( f"File to backup not found: {file_path}" );

        self.backup_dir.mkdir( parents=True, exist_ok=True );
        backup_path = self.backup_dir / self.get_backup_filename( file_path );

        try:
            shutil.copy2( file_path, backup_path );
        except OSError as e:
            raise RuntimeError( f"Failed to create backup of {file_path}: {e}" ) from e;

        self.logger.info( f"Created backup: {backup_path.name}" );
        self.apply_retention_policy( file_path );
        return backup_path;

    def backup_if_exists( self, file_path: Path ) -> Optional[Path]:
        """Back up file_path when it exists; return None otherwise."""
        file_path = Path( file_path );
        if not file_path.exists():
            return None;
        return self.create_backup( file_path );
