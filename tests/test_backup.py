"""
Test cases for export backups.
"""
import pytest
from pathlib import Path
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subverify.backup import BackupManager


class TestBackupManager:
    """Test cases for BackupManager."""

    def test_backup_filename_format( self, tmp_path ):
        """Test backup names keep stem and suffix around an ISO-like timestamp."""
        manager = BackupManager( tmp_path / "backup" );
        name = manager.get_backup_filename( Path( "movie.fr.srt" ) );

        assert name.startswith( "movie.fr." );
        assert name.endswith( ".srt" );
        assert "T" in name;

    def test_create_backup( self, tmp_path ):
        """Test the copy lands in the backup directory with the same content."""
        original = tmp_path / "movie.srt";
        original.write_text( "1\n00:00:01,000 --> 00:00:02,000\nHi\n", encoding="utf-8" );
        manager = BackupManager( tmp_path / "backup" );

        backup_path = manager.create_backup( original );

        assert backup_path.parent == tmp_path / "backup";
        assert backup_path.read_text( encoding="utf-8" ) == original.read_text( encoding="utf-8" );
        assert manager.get_existing_backups( original ) == [ backup_path ];

    def test_create_backup_missing_file( self, tmp_path ):
        manager = BackupManager( tmp_path / "backup" );
        with pytest.raises( FileNotFoundError ):
            manager.create_backup( tmp_path / "missing.srt" );

    def test_backup_if_exists( self, tmp_path ):
        """Test nothing is created for a file that is not there yet."""
        manager = BackupManager( tmp_path / "backup" );

        assert manager.backup_if_exists( tmp_path / "new.srt" ) is None;
        assert not ( tmp_path / "backup" ).exists();

    def test_retention_policy( self, tmp_path ):
        """Test only the newest max_backups copies are kept."""
        backup_dir = tmp_path / "backup";
        backup_dir.mkdir();
        for second in range( 5 ):
            ( backup_dir / f"movie.2024-01-01T00-00-0{second}-000000.srt" ).write_text( str( second ) );
        ( backup_dir / "other.2024-01-01T00-00-00-000000.srt" ).write_text( "x" );

        manager = BackupManager( backup_dir, max_backups=3 );
        removed = manager.apply_retention_policy( Path( "movie.srt" ) );

        remaining = [ path.read_text() for path in manager.get_existing_backups( Path( "movie.srt" ) ) ];
        assert removed == 2;
        assert remaining == [ "2", "3", "4" ];
        assert ( backup_dir / "other.2024-01-01T00-00-00-000000.srt" ).exists();


if __name__ == '__main__':
    pytest.main( [ __file__ ] );
