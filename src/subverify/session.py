"""
Review session controller that ties parsing, alignment, AI assessment and correction together.
"""
import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .align import AlignmentReport, DriftDetector
from .backup import BackupManager
from .captions import TimedBlock, apply_translations, load_caption_file, write_caption_file
from .logging import get_logger
from .service import (
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    AssessmentService,
    ServiceError,
)
from .verify import VerificationResult, build_verification
from .workset import CorrectionWorkset


class CaptionFormatError( ValueError ):
    """Raised when subtitle input cannot be used, before any AI request is made."""


class ReviewSession:
    """
    One reviewer working on one pair of subtitle files.

    Orchestrates:
    1. Subtitle loading and validation
    2. Translation (translate mode)
    3. Alignment and drift detection
    4. AI quality assessment and merge
    5. Correction workset and suggestions
    6. Export with backup

    The workset is only replaced once a verification run completes; a failed
    run leaves the previous workset in place.
    """

    def __init__(
        self,
        service: AssessmentService,
        source_language: str = DEFAULT_SOURCE_LANGUAGE,
        target_language: str = DEFAULT_TARGET_LANGUAGE,
        backup_manager: Optional[BackupManager] = None
    ):
        self.service = service;
        self.source_language = source_language;
        self.target_language = target_language;
        self.backup_manager = backup_manager or BackupManager();
        self.detector = DriftDetector();
        self.logger = get_logger();

        self.alignment: Optional[AlignmentReport] = None;
        self.workset: Optional[CorrectionWorkset] = None;
        self.last_error: Optional[str] = None;

    @property
    def result( self ) -> Optional[VerificationResult]:
        return self.workset.result if self.workset else None;

    def load_blocks( self, caption_file: Path, role: str = "subtitle" ) -> List[TimedBlock]:
        """
        Load a subtitle file and reject it when nothing could be parsed.

        Raises:
            CaptionFormatError: If the file has no valid subtitle blocks
        """
        blocks = load_caption_file( caption_file );
        if not blocks:
            raise CaptionFormatError( f"The {role} file {Path( caption_file ).name} appears to be empty or invalid" );
        return blocks;

    async def translate( self, blocks: Sequence[TimedBlock] ) -> List[TimedBlock]:
        """
        Translate blocks with the AI service.

        Each request starts from original_text when the block has one, so
        switching target language never translates a translation.
        """
        if not blocks:
            raise CaptionFormatError( "Nothing to translate" );

        self.logger.info( "=== TRANSLATION ===" );
        lines = [
            ( block.id, block.original_text if block.original_text is not None else block.text )
            for block in blocks
        ];

        try:
            translations = await self.service.translate( lines, self.source_language, self.target_language );
        except ServiceError as e:
            self.last_error = str( e );
            raise;

        self.last_error = None;
        return apply_translations( blocks, translations );

    def align( self, source_blocks: Sequence[TimedBlock], target_blocks: Sequence[TimedBlock] ) -> AlignmentReport:
        """
        Align the two files and fail fast when verification would be pointless.

        Raises:
            CaptionFormatError: If either side is empty or no ids are shared
        """
        if not source_blocks or not target_blocks:
            raise CaptionFormatError( "One or both files appear to be empty or invalid" );

        report = self.detector.align( source_blocks, target_blocks );

        if report.missing_ids:
            self.logger.warning( f"{len( report.missing_ids )} source lines have no translation and will not be verified" );

        if not report.records:
            raise CaptionFormatError( "Source and target subtitles share no line ids" );

        return report;

    async def verify( self, source_blocks: Sequence[TimedBlock], target_blocks: Sequence[TimedBlock] ) -> CorrectionWorkset:
        """
        Run a full verification and install a new workset.

        Args:
            source_blocks: Parsed source captions
            target_blocks: Parsed translated captions

        Returns:
            The new CorrectionWorkset
        """
        self.logger.info( "=== ALIGNMENT ===" );
        report = self.align( source_blocks, target_blocks );

        self.logger.info( "=== AI ASSESSMENT ===" );
        pairs = [ ( record.id, record.source_text, record.translated_text ) for record in report.records ];

        try:
            assessment = await self.service.assess( pairs, self.source_language, self.target_language );
        except ServiceError as e:
            self.last_error = str( e );
            self.logger.error( f"Verification failed: {e}" );
            raise;

        result = build_verification( report, assessment );

        self.alignment = report;
        self.workset = CorrectionWorkset( result );
        self.last_error = None;
        return self.workset;

    async def verify_files( self, source_file: Path, target_file: Path ) -> CorrectionWorkset:
        source_blocks = self.load_blocks( source_file, role="source" );
        target_blocks = self.load_blocks( target_file, role="target" );
        return await self.verify( source_blocks, target_blocks );

    def _require_workset( self ) -> CorrectionWorkset:
        if self.workset is None:
            raise RuntimeError( "No verification result. Run verify first." );
        return self.workset;

    async def fetch_suggestion( self, item_id: int ) -> bool:
        """
        Fetch an improved translation for one line and keep it as a pending suggestion.

        The suggestion is discarded if the line was edited while the request
        was in flight. On service failure the line is left unchanged and the
        error is re-raised.

        Returns:
            True if a suggestion is now pending for the line
        """
        workset = self._require_workset();
        item = workset.get_item( item_id );
        if item is None:
            return False;

        current_text = item.translated_text;
        token = workset.begin_suggestion( item_id );

        try:
            suggestion = await self.service.suggest(
                item.source_text,
                current_text,
                self.source_language,
                self.target_language
            );
        except ServiceError as e:
            workset.fail_suggestion( item_id, token );
            self.logger.warning( f"Suggestion for line {item_id} failed: {e}" );
            raise;
        except asyncio.CancelledError:
            workset.fail_suggestion( item_id, token );
            raise;

        return workset.receive_suggestion( item_id, suggestion, token );

    async def fetch_suggestions( self, item_ids: Iterable[int] ) -> List[int]:
        """
        Fetch suggestions for several lines concurrently.

        Failures are logged per line and do not stop the other fetches.

        Returns:
            Ids that ended up with a pending suggestion
        """
        item_ids = list( item_ids );
        outcomes = await asyncio.gather(
            *( self.fetch_suggestion( item_id ) for item_id in item_ids ),
            return_exceptions=True
        );

        ready = [];
        for item_id, outcome in zip( item_ids, outcomes ):
            if isinstance( outcome, ServiceError ):
                continue;
            if isinstance( outcome, BaseException ):
                raise outcome;
            if outcome:
                ready.append( item_id );

        self.logger.info( f"Received {len( ready )}/{len( item_ids )} suggestions" );
        return ready;

    def export( self, output_file: Path, dry_run: bool = False ) -> str:
        """
        Write the corrected subtitles, backing up any existing file first.

        Returns:
            The exported SRT text
        """
        workset = self._require_workset();
        content = workset.export_text();

        if dry_run:
            self.logger.info( f"Dry run: Would save corrected subtitles to {output_file}" );
            return content;

        self.backup_manager.backup_if_exists( output_file );
        write_caption_file( output_file, workset.export_blocks() );
        return content;

    def close( self ):
        """End the session and drop its review state."""
        self.workset = None;
        self.alignment = None;
        self.last_error = None;
