"""
Basic test cases for SubVerify CLI functionality.
"""
import argparse
import asyncio
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch
import sys
import os

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subverify.backup import BackupManager
from subverify.cli import SubVerifyCLI, run_translate, run_verify
from subverify.service import AssessmentService
from subverify.session import ReviewSession
from subverify.verify import Assessment, Judgment


SOURCE_SRT = "1\n00:00:01,000 --> 00:00:02,000\nHello\n\n2\n00:00:03,000 --> 00:00:04,000\nBye\n";
TARGET_SRT = "1\n00:00:01,000 --> 00:00:02,000\nBonjour\n\n2\n00:00:03,000 --> 00:00:04,200\nAu revoir\n";


@pytest.fixture
def srt_files( tmp_path ):
    source = tmp_path / "source.srt";
    target = tmp_path / "target.srt";
    source.write_text( SOURCE_SRT, encoding="utf-8" );
    target.write_text( TARGET_SRT, encoding="utf-8" );
    return source, target;


def parse_with_env( argv, env ):
    cli = SubVerifyCLI();
    with patch.dict( os.environ, env, clear=True ), patch( 'subverify.cli.load_dotenv' ):
        args = cli.parse_args( argv );
    return cli, args;


class TestSubVerifyCLI:
    """Test cases for SubVerify CLI interface."""

    def test_cli_initialization( self ):
        """Test CLI object creation."""
        cli = SubVerifyCLI();
        assert cli.parser is not None;
        assert cli.args is None;
        assert cli.logger is None;

    def test_argument_parsing_missing_required( self ):
        """Test CLI with missing required arguments."""
        cli = SubVerifyCLI();

        with pytest.raises( SystemExit ):
            cli.parse_args( [] );  # No arguments provided

    def test_argument_parsing_valid( self, srt_files ):
        """Test CLI with valid verify-mode arguments."""
        source, target = srt_files;

        cli, args = parse_with_env( [
            '--source', str( source ),
            '--target', str( target ),
            '--target-lang', 'Hindi (Romanized)',
            '--debug'
        ], { 'OPENAI_API_KEY': 'test_openai_key' } );

        assert args.source == source;
        assert args.target == target;
        assert args.target_lang == 'Hindi (Romanized)';
        assert args.filter == 'all';  # Default
        assert args.debug == True;
        assert cli.openai_api_key == 'test_openai_key';
        assert cli.model == 'gpt-4o-mini';

    def test_model_override( self, srt_files ):
        """Test --model wins over SUBVERIFY_MODEL."""
        source, target = srt_files;
        env = { 'OPENAI_API_KEY': 'key', 'SUBVERIFY_MODEL': 'env-model' };

        cli, _ = parse_with_env( [ '--source', str( source ), '--target', str( target ) ], env );
        assert cli.model == 'env-model';

        cli, _ = parse_with_env( [ '--source', str( source ), '--target', str( target ), '--model', 'cli-model' ], env );
        assert cli.model == 'cli-model';

    def test_missing_api_key( self, srt_files ):
        source, target = srt_files;

        with pytest.raises( SystemExit ):
            parse_with_env( [ '--source', str( source ), '--target', str( target ) ], {} );

    def test_file_validation( self, tmp_path ):
        """Test file existence validation."""
        with pytest.raises( SystemExit ):
            parse_with_env( [
                '--source', str( tmp_path / 'nonexistent.srt' ),
                '--target', str( tmp_path / 'nonexistent_fr.srt' )
            ], { 'OPENAI_API_KEY': 'key' } );

    def test_non_srt_rejected( self, tmp_path ):
        vtt = tmp_path / "source.vtt";
        vtt.write_text( "WEBVTT\n", encoding="utf-8" );

        with pytest.raises( SystemExit ):
            parse_with_env( [ '--source', str( vtt ), '--dry-run' ], { 'OPENAI_API_KEY': 'key' } );

    def test_bulk_options_paired( self, srt_files ):
        """Test --bulk-filter without --bulk-status is rejected."""
        source, target = srt_files;

        with pytest.raises( SystemExit ):
            parse_with_env( [
                '--source', str( source ),
                '--target', str( target ),
                '--bulk-filter', 'timestamp_mismatch'
            ], { 'OPENAI_API_KEY': 'key' } );

    def test_bulk_status_rejects_corrected( self, srt_files ):
        """Test argparse refuses corrected as a bulk status."""
        source, target = srt_files;

        with pytest.raises( SystemExit ):
            parse_with_env( [
                '--source', str( source ),
                '--target', str( target ),
                '--bulk-filter', 'all',
                '--bulk-status', 'corrected'
            ], { 'OPENAI_API_KEY': 'key' } );

    def test_translate_mode_needs_output( self, srt_files ):
        source, _ = srt_files;

        with pytest.raises( SystemExit ):
            parse_with_env( [ '--source', str( source ) ], { 'OPENAI_API_KEY': 'key' } );

        _, args = parse_with_env( [ '--source', str( source ), '--dry-run' ], { 'OPENAI_API_KEY': 'key' } );
        assert args.target is None;

    def test_review_options_need_target( self, srt_files, tmp_path ):
        source, _ = srt_files;

        with pytest.raises( SystemExit ):
            parse_with_env( [
                '--source', str( source ),
                '--output', str( tmp_path / 'out.srt' ),
                '--suggest', 'incorrect'
            ], { 'OPENAI_API_KEY': 'key' } );


class TestEnvironmentLoading:
    """Test environment variable loading."""

    @patch.dict( os.environ, {
        'OPENAI_API_KEY': 'env_openai_key',
        'SUBVERIFY_MODEL': 'gpt-test'
    } )
    def test_environment_variable_loading( self ):
        """Test loading the API key and model from environment variables."""
        cli = SubVerifyCLI();
        cli._load_environment();

        assert cli.openai_api_key == 'env_openai_key';
        assert cli.model == 'gpt-test';

    @patch.dict( os.environ, {}, clear=True )
    def test_missing_environment_variables( self ):
        """Test handling of missing environment variables."""
        cli = SubVerifyCLI();
        cli._load_environment();

        assert cli.openai_api_key is None;
        assert cli.model == 'gpt-4o-mini';


class StubService( AssessmentService ):
    """Service double used by the run_* tests."""

    def __init__( self ):
        super().__init__( "test_key" );
        self.assess = AsyncMock( return_value=Assessment( overall_score=75, judgments={
            1: Judgment( status="incorrect", feedback="Wrong word" )
        } ) );
        self.translate = AsyncMock( return_value={ 1: "Bonjour", 2: "Au revoir" } );
        self.suggest = AsyncMock( return_value="Salut" );

    async def complete( self, prompt, json_response=False, temperature=None ):
        return "";


def make_args( **overrides ):
    values = {
        'source': None, 'target': None, 'output': None, 'filter': 'all',
        'bulk_filter': None, 'bulk_status': None, 'suggest': None,
        'report_json': None, 'dry_run': False
    };
    values.update( overrides );
    return argparse.Namespace( **values );


class TestRunners:
    """Test cases for the translate and verify runners."""

    def make_session( self, tmp_path ):
        return ReviewSession( StubService(), "English", "French", backup_manager=BackupManager( tmp_path / "backup" ) );

    def test_run_translate( self, srt_files, tmp_path ):
        source, _ = srt_files;
        output = tmp_path / "translated.srt";
        session = self.make_session( tmp_path );

        assert asyncio.run( run_translate( session, make_args( source=source, output=output ), Mock() ) );
        assert "Bonjour" in output.read_text( encoding="utf-8" );
        assert "00:00:03,000 --> 00:00:04,000" in output.read_text( encoding="utf-8" );

    def test_run_verify_with_suggestions( self, srt_files, tmp_path ):
        """Test suggestions are fetched for the filtered lines and exported."""
        source, target = srt_files;
        output = tmp_path / "corrected.srt";
        report = tmp_path / "report.json";
        session = self.make_session( tmp_path );
        logger = Mock();
        logger.console = Mock();

        args = make_args( source=source, target=target, output=output, suggest='incorrect', report_json=report );
        assert asyncio.run( run_verify( session, args, logger ) );

        assert session.workset.get_item( 1 ).translated_text == "Salut";
        assert session.workset.get_item( 1 ).status == "corrected";
        assert session.workset.get_item( 2 ).translated_text == "Au revoir";
        assert output.read_text( encoding="utf-8" ).startswith( "1\n00:00:01,000 --> 00:00:02,000\nSalut\n" );
        assert "00:00:03,000 --> 00:00:04,000" in output.read_text( encoding="utf-8" );
        assert report.exists();

    def test_run_verify_bulk( self, srt_files, tmp_path ):
        """Test bulk triage only touches lines matching the bulk filter."""
        source, target = srt_files;
        session = self.make_session( tmp_path );
        logger = Mock();
        logger.console = Mock();

        args = make_args( source=source, target=target, bulk_filter='timestamp_mismatch', bulk_status='minor_issue' );
        asyncio.run( run_verify( session, args, logger ) );

        assert session.workset.get_item( 1 ).status == "incorrect";
        assert session.workset.get_item( 2 ).status == "minor_issue";
        assert session.workset.bulk_mode is False;


if __name__ == '__main__':
    pytest.main( [ __file__ ] );
