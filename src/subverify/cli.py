"""
CLI entry point for SubVerify with argument parsing and environment variable loading.
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

from . import __version__
from .logging import setup_logging
from .service import DEFAULT_MODEL, DEFAULT_SOURCE_LANGUAGE, DEFAULT_TARGET_LANGUAGE
from .verify import JUDGMENT_STATUSES
from .workset import FILTERS


class SubVerifyCLI:
    """
    Command line interface for SubVerify.

    Translate mode (--source only) writes a translated SRT. Verify mode
    (--source and --target) aligns both files, runs the AI assessment, applies
    bulk triage and suggestions, and exports subtitles on the source timeline.
    """

    def __init__( self ):
        self.parser = self._create_parser();
        self.args = None;
        self.logger = None;
        self.openai_api_key = None;
        self.model = DEFAULT_MODEL;

    def _create_parser( self ):
        """Create argument parser with all SubVerify options."""
        parser = argparse.ArgumentParser(
            prog="subverify",
            description="Subtitle translation verification: alignment, drift detection and AI review",
            epilog="Environment variables: OPENAI_API_KEY, SUBVERIFY_MODEL, SUBVERIFY_LOG_DIR"
        );

        parser.add_argument(
            "--source", "--src", "-s",
            required=True,
            type=Path,
            dest="source",
            help="Path to the source subtitle file (.srt)"
        );

        parser.add_argument(
            "--target", "--translation", "-t",
            type=Path,
            dest="target",
            help="Path to the translated subtitle file (.srt); omit to translate --source instead"
        );

        parser.add_argument(
            "--output", "-o",
            type=Path,
            help="Where to write the translated or corrected subtitles"
        );

        parser.add_argument(
            "--source-lang",
            default=DEFAULT_SOURCE_LANGUAGE,
            help=f"Source language (default: {DEFAULT_SOURCE_LANGUAGE})"
        );

        parser.add_argument(
            "--target-lang",
            default=DEFAULT_TARGET_LANGUAGE,
            help=f"Target language, e.g. French or 'Hindi (Romanized)' (default: {DEFAULT_TARGET_LANGUAGE})"
        );

        parser.add_argument(
            "--model",
            default=None,
            help=f"OpenAI model (default: $SUBVERIFY_MODEL or {DEFAULT_MODEL})"
        );

        # Review options
        parser.add_argument(
            "--filter",
            choices=FILTERS,
            default="all",
            help="Which lines to show in the report (default: all)"
        );

        parser.add_argument(
            "--bulk-filter",
            choices=FILTERS,
            help="Select every line matching this filter for --bulk-status"
        );

        parser.add_argument(
            "--bulk-status",
            choices=JUDGMENT_STATUSES,
            help="Status to assign to the lines selected by --bulk-filter"
        );

        parser.add_argument(
            "--suggest",
            choices=FILTERS,
            help="Fetch AI suggestions for lines matching this filter and apply them"
        );

        parser.add_argument(
            "--report-json",
            type=Path,
            help="Write the verification result as JSON"
        );

        # Mode flags
        parser.add_argument(
            "--debug",
            action="store_true",
            help="Enable debug mode with verbose output"
        );

        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Run everything but do not write the output subtitle file"
        );

        return parser;

    def _load_environment( self ):
        """Load environment variables from .env file and system."""
        env_file = Path( ".env" );
        if env_file.exists():
            load_dotenv( env_file );

        self.openai_api_key = os.getenv( "OPENAI_API_KEY" );
        self.model = os.getenv( "SUBVERIFY_MODEL" ) or DEFAULT_MODEL;

    def _validate_arguments( self ):
        """Validate parsed arguments and environment setup."""
        errors = [];

        for label, path in ( ( "Source", self.args.source ), ( "Target", self.args.target ) ):
            if path is None:
                continue;
            if not path.exists():
                errors.append( f"{label} subtitle file not found: {path}" );
            if path.suffix.lower() != ".srt":
                errors.append( f"Only .srt subtitle files are supported, got: {path.suffix}" );

        if not self.openai_api_key:
            errors.append( "OpenAI API key not found. Set OPENAI_API_KEY environment variable." );

        if ( self.args.bulk_filter is None ) != ( self.args.bulk_status is None ):
            errors.append( "--bulk-filter and --bulk-status must be used together" );

        if self.args.target is None:
            if self.args.output is None and not self.args.dry_run:
                errors.append( "Translate mode needs --output (or --dry-run)" );
            for option in ( "bulk_filter", "suggest", "report_json" ):
                if getattr( self.args, option ):
                    errors.append( f"--{option.replace( '_', '-' )} requires --target" );

        if self.args.output is not None and self.args.output.suffix.lower() != ".srt":
            errors.append( f"Output must be an .srt file, got: {self.args.output.suffix}" );

        return errors;

    def parse_args( self, argv=None ):
        """Parse command line arguments and validate configuration."""
        self.args = self.parser.parse_args( argv );

        self.logger = setup_logging( debug=self.args.debug );

        self._load_environment();
        if self.args.model:
            self.model = self.args.model;

        errors = self._validate_arguments();
        if errors:
            self.logger.error( "Configuration errors:" );
            for error in errors:
                self.logger.error( f"  - {error}" );
            sys.exit( 1 );

        self.logger.info( f"SubVerify v{__version__} starting..." );
        self.logger.info( f"Source: {self.args.source}" );
        if self.args.target:
            self.logger.info( f"Target: {self.args.target}" );
        self.logger.info( f"Languages: {self.args.source_lang} -> {self.args.target_lang}" );
        self.logger.info( f"Model: {self.model}" );

        return self.args;


async def run_translate( session, args, logger ) -> bool:
    """Translate --source and write it to --output."""
    from .captions import serialize_captions, write_caption_file;

    blocks = session.load_blocks( args.source, role="source" );
    translated = await session.translate( blocks );

    if args.dry_run or args.output is None:
        logger.info( f"Dry run: translated {len( translated )} lines, nothing written" );
        logger.debug( serialize_captions( translated ) );
        return True;

    session.backup_manager.backup_if_exists( args.output );
    write_caption_file( args.output, translated );
    return True;


async def run_verify( session, args, logger ) -> bool:
    """Verify --target against --source, triage, suggest and export."""
    from .report import render_workset, write_json_report;

    workset = await session.verify_files( args.source, args.target );

    if args.bulk_filter:
        workset.enter_bulk_mode();
        workset.set_filter( args.bulk_filter );
        workset.select_all();
        workset.bulk_set_status( args.bulk_status );
        workset.exit_bulk_mode();

    if args.suggest:
        workset.set_filter( args.suggest );
        candidates = [ item.id for item in workset.visible_items() ];
        ready = await session.fetch_suggestions( candidates );
        for item_id in ready:
            workset.apply_suggestion( item_id );

    workset.set_filter( args.filter );
    render_workset( workset, logger.console );

    if args.report_json:
        write_json_report( workset.result, args.report_json );
        logger.info( f"JSON report written to {args.report_json}" );

    if args.output:
        session.export( args.output, dry_run=args.dry_run );

    return True;


def main():
    """Main entry point for the SubVerify CLI."""
    cli = SubVerifyCLI();
    args = cli.parse_args();

    from .service import ServiceError, create_service;
    from .session import CaptionFormatError, ReviewSession;

    session = ReviewSession(
        create_service( "openai", cli.openai_api_key, model=cli.model ),
        source_language=args.source_lang,
        target_language=args.target_lang
    );

    runner = run_verify if args.target else run_translate;

    try:
        result = asyncio.run( runner( session, args, cli.logger ) );
        if result:
            cli.logger.info( "SubVerify completed successfully!" );
        else:
            cli.logger.error( "SubVerify failed!" );
            sys.exit( 1 );
    except CaptionFormatError as e:
        cli.logger.error( f"Invalid subtitles: {e}" );
        sys.exit( 1 );
    except ServiceError as e:
        cli.logger.error( f"AI service error: {e}. Please try again." );
        sys.exit( 1 );
    except KeyboardInterrupt:
        cli.logger.warning( "Interrupted by user" );
        sys.exit( 130 );
    except Exception as e:
        cli.logger.error( f"Unexpected error: {e}" );
        if args.debug:
            raise;
        sys.exit( 1 );
    finally:
        session.close();


if __name__ == "__main__":
    main();
