"""
Verification merge: structural alignment facts combined with an external quality assessment.

The assessment comes back from a language model and is treated as untrusted:
every field is optional and checked on its own. Structural fields (text
pairs, timestamps, mismatch flags) always come from the alignment and never
from the assessment.
"""
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .align import AlignmentRecord, AlignmentReport
from .logging import get_logger


STATUS_CORRECT = "correct";
STATUS_MINOR_ISSUE = "minor_issue";
STATUS_INCORRECT = "incorrect";
STATUS_CORRECTED = "corrected";

# Statuses an assessment (or a bulk action) may assign
JUDGMENT_STATUSES = ( STATUS_CORRECT, STATUS_MINOR_ISSUE, STATUS_INCORRECT );
ALL_STATUSES = JUDGMENT_STATUSES + ( STATUS_CORRECTED, );

DEFAULT_SUMMARY = "Analysis completed.";
FEEDBACK_MISMATCH = "Timestamp mismatch detected";
FEEDBACK_OK = "No issues found";


@dataclass
class Judgment:
    """Assessment of a single line; either field may be missing."""

    status: Optional[str] = None;
    feedback: Optional[str] = None;


@dataclass
class Assessment:
    """Validated external assessment response."""

    overall_score: Optional[int] = None;
    summary: Optional[str] = None;
    judgments: Dict[int, Judgment] = field( default_factory=dict );


class VerificationItem:
    """
    One line of the review workset.

    Identity, source text and timing are fixed at creation; only
    translated_text, status and feedback change during review.
    """

    def __init__( self, record: AlignmentRecord, status: str = STATUS_CORRECT, feedback: str = "" ):
        self._record = record;
        self.translated_text = record.translated_text;
        self.status = status;
        self.feedback = feedback;

    @property
    def id( self ) -> int:
        return self._record.id;

    @property
    def source_text( self ) -> str:
        return self._record.source_text;

    @property
    def start_time( self ) -> str:
        return self._record.start_time;

    @property
    def end_time( self ) -> str:
        return self._record.end_time;

    @property
    def timestamp_mismatch( self ) -> bool:
        return self._record.timestamp_mismatch;

    @property
    def start_drift_ms( self ) -> Optional[int]:
        return self._record.start_drift_ms;

    @property
    def end_drift_ms( self ) -> Optional[int]:
        return self._record.end_drift_ms;

    def to_dict( self ) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status,
            'feedback': self.feedback,
            'sourceText': self.source_text,
            'translatedText': self.translated_text,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'timestampMismatch': self.timestamp_mismatch
        };

    def __repr__( self ):
        return f"VerificationItem(id={self.id}, status={self.status}, text='{self.translated_text[:30]}')";


@dataclass
class VerificationResult:
    """Outcome of one verification run."""

    overall_score: int = 0;
    summary: str = DEFAULT_SUMMARY;
    items: List[VerificationItem] = field( default_factory=list );
    timestamp_mismatch_count: int = 0;
    missing_translation_ids: List[int] = field( default_factory=list );
    duplicate_ids: List[int] = field( default_factory=list );

    @property
    def missing_translation_count( self ) -> int:
        return len( self.missing_translation_ids );

    def to_dict( self ) -> Dict[str, Any]:
        return {
            'overallScore': self.overall_score,
            'summary': self.summary,
            'timestampMismatchCount': self.timestamp_mismatch_count,
            'missingTranslationIds': list( self.missing_translation_ids ),
            'duplicateIds': list( self.duplicate_ids ),
            'items': [ item.to_dict() for item in self.items ]
        };


def _coerce_id( value: Any ) -> Optional[int]:
    if isinstance( value, bool ):
        return None;
    if isinstance( value, int ):
        return value;
    if isinstance( value, float ) and value.is_integer():
        return int( value );
    if isinstance( value, str ) and value.strip().isdecimal():
        return int( value.strip() );
    return None;


def _coerce_score( value: Any ) -> Optional[int]:
    if isinstance( value, bool ) or not isinstance( value, ( int, float ) ):
        return None;
    if isinstance( value, float ) and not math.isfinite( value ):  # NaN, Infinity, 1e400
        return None;
    return max( 0, min( 100, int( value ) ) );


def _non_empty_string( value: Any ) -> Optional[str]:
    if isinstance( value, str ) and value.strip():
        return value.strip();
    return None;


def parse_assessment( payload: Any ) -> Assessment:
    """
    Validate a raw assessment response.

    Accepts the JSON text returned by the model or an already decoded object.
    Anything unreadable is dropped field by field; this function never raises
    on bad input.

    Args:
        payload: JSON string, dict, or None

    Returns:
        Assessment with only the fields that passed validation
    """
    logger = get_logger();

    if isinstance( payload, ( str, bytes ) ):
        try:
            payload = json.loads( payload ) if payload else {};
        except ( json.JSONDecodeError, UnicodeDecodeError ) as e:
            logger.warning( f"Assessment response is not valid JSON, using defaults: {e}" );
            return Assessment();

    if not isinstance( payload, dict ):
        if payload is not None:
            logger.warning( f"Assessment response root is {type( payload ).__name__}, expected an object" );
        return Assessment();

    assessment = Assessment(
        overall_score=_coerce_score( payload.get( 'overallScore' ) ),
        summary=_non_empty_string( payload.get( 'summary' ) )
    );

    items = payload.get( 'items' );
    if not isinstance( items, list ):
        if items is not None:
            logger.warning( "Assessment 'items' is not a list; ignoring per-line judgments" );
        return assessment;

    skipped = 0;
    for entry in items:
        item_id = _coerce_id( entry.get( 'id' ) ) if isinstance( entry, dict ) else None;
        if item_id is None:
            skipped += 1;
            continue;
        if item_id in assessment.judgments:
            continue;  # first judgment for an id wins

        status = entry.get( 'status' );
        assessment.judgments[item_id] = Judgment(
            status=status if status in JUDGMENT_STATUSES else None,
            feedback=_non_empty_string( entry.get( 'feedback' ) )
        );

    if skipped:
        logger.warning( f"Ignored {skipped} assessment items without a usable id" );

    logger.debug( f"Assessment parsed: score={assessment.overall_score}, {len( assessment.judgments )} judgments" );
    return assessment;


def default_feedback( record: AlignmentRecord ) -> str:
    return FEEDBACK_MISMATCH if record.timestamp_mismatch else FEEDBACK_OK;


def merge_judgments(
    records: Iterable[AlignmentRecord],
    assessment: Optional[Assessment],
    source_order: Optional[Sequence[int]] = None
) -> VerificationResult:
    """
    Merge alignment records with an assessment into a VerificationResult.

    Items follow source_order (record order when omitted); ids without a
    record are skipped and each id appears at most once. A line the
    assessment left out is marked correct, with feedback that mentions a
    timestamp mismatch when there is one.

    Args:
        records: Alignment records
        assessment: Validated assessment, or None
        source_order: Source ids in source file order

    Returns:
        VerificationResult
    """
    assessment = assessment or Assessment();
    records_by_id = {};
    for record in records:
        records_by_id.setdefault( record.id, record );

    if source_order is None:
        source_order = list( records_by_id.keys() );

    items = [];
    emitted = set();
    for item_id in source_order:
        record = records_by_id.get( item_id );
        if record is None or item_id in emitted:
            continue;
        emitted.add( item_id );

        judgment = assessment.judgments.get( item_id ) or Judgment();
        items.append( VerificationItem(
            record,
            status=judgment.status or STATUS_CORRECT,
            feedback=judgment.feedback or default_feedback( record )
        ) );

    mismatch_count = sum( 1 for record in records_by_id.values() if record.timestamp_mismatch );

    return VerificationResult(
        overall_score=assessment.overall_score if assessment.overall_score is not None else 0,
        summary=assessment.summary or DEFAULT_SUMMARY,
        items=items,
        timestamp_mismatch_count=mismatch_count
    );


def build_verification( report: AlignmentReport, assessment: Optional[Assessment] ) -> VerificationResult:
    """Merge an alignment report with an assessment, carrying over the ids the alignment dropped."""
    result = merge_judgments( report.records, assessment, report.source_order );
    result.missing_translation_ids = list( report.missing_ids );
    result.duplicate_ids = list( report.duplicate_ids );

    get_logger().info( f"Verification merged: {len( result.items )} lines, score {result.overall_score}, " \
                      f"{result.timestamp_mismatch_count} timestamp mismatches" );
    return result;
