"""
Alignment of source and translated subtitles by caption id, with timestamp drift detection.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import pysrt

from .captions import TimedBlock
from .logging import get_logger


@dataclass( frozen=True )
class AlignmentRecord:
    """A source caption paired with the target caption sharing its id."""

    id: int;                              # Caption id present in both files
    source_text: str;                     # Source caption text
    translated_text: str;                 # Target caption text
    start_time: str;                      # Source start time (authoritative)
    end_time: str;                        # Source end time (authoritative)
    timestamp_mismatch: bool;             # Either bound differs as a string
    start_drift_ms: Optional[int] = None; # Target start minus source start
    end_drift_ms: Optional[int] = None;   # Target end minus source end

    def __repr__( self ):
        status = "✗ drift" if self.timestamp_mismatch else "✓ synced";
        return f"AlignmentRecord({status} id={self.id}, {self.start_time} --> {self.end_time})";


@dataclass
class AlignmentReport:
    """Result of aligning one source file with one target file."""

    records: List[AlignmentRecord] = field( default_factory=list );
    missing_ids: List[int] = field( default_factory=list );    # Source ids with no target caption
    duplicate_ids: List[int] = field( default_factory=list );  # Source ids repeated in the source file
    target_block_count: int = 0;

    @property
    def mismatch_count( self ) -> int:
        return sum( 1 for record in self.records if record.timestamp_mismatch );

    @property
    def source_order( self ) -> List[int]:
        return [ record.id for record in self.records ];


def timecode_to_ms( timecode: str ) -> Optional[int]:
    """
    Convert an SRT timecode to milliseconds.

    Returns None when pysrt cannot read the value.
    """
    try:
        return pysrt.SubRipTime.from_string( timecode ).ordinal;
    except ( pysrt.InvalidTimeString, ValueError ):
        return None;


def calculate_drift( source_time: str, target_time: str ) -> Optional[int]:
    """Signed target-minus-source offset in milliseconds, None if either side is unreadable."""
    source_ms = timecode_to_ms( source_time );
    target_ms = timecode_to_ms( target_time );
    if source_ms is None or target_ms is None:
        return None;
    return target_ms - source_ms;


class DriftDetector:
    """
    Pairs source and target captions by id and flags timestamp mismatches.

    Mismatch is an exact string comparison of start and end times: a single
    millisecond, or the same instant written differently, counts as drift.
    The drift values in milliseconds are informational only.
    """

    def __init__( self ):
        self.logger = get_logger();

    def build_target_index( self, target_blocks: Sequence[TimedBlock] ) -> Dict[int, TimedBlock]:
        """
        Build the id lookup for target captions.

        A repeated target id replaces the earlier caption with that id.
        """
        index = {};
        for block in target_blocks:
            if block.id in index:
                self.logger.warning( f"Target subtitle id {block.id} appears more than once; using the last occurrence" );
            index[block.id] = block;
        return index;

    def compare( self, source: TimedBlock, target: TimedBlock ) -> AlignmentRecord:
        """Build the alignment record for one source/target pair."""
        mismatch = source.start_time != target.start_time or source.end_time != target.end_time;

        return AlignmentRecord(
            id=source.id,
            source_text=source.text,
            translated_text=target.text,
            start_time=source.start_time,
            end_time=source.end_time,
            timestamp_mismatch=mismatch,
            start_drift_ms=calculate_drift( source.start_time, target.start_time ),
            end_drift_ms=calculate_drift( source.end_time, target.end_time )
        );

    def align( self, source_blocks: Sequence[TimedBlock], target_blocks: Sequence[TimedBlock] ) -> AlignmentReport:
        """
        Align source captions with target captions.

        Source order drives the output. Source ids missing from the target are
        left out of the records and listed in missing_ids; a source id seen
        again after its first occurrence is listed in duplicate_ids and only
        the first occurrence is aligned.

        Args:
            source_blocks: Parsed source captions
            target_blocks: Parsed target captions

        Returns:
            AlignmentReport with one record per aligned id
        """
        self.logger.info( f"Aligning {len( source_blocks )} source captions with {len( target_blocks )} target captions" );

        target_index = self.build_target_index( target_blocks );
        report = AlignmentReport( target_block_count=len( target_blocks ) );
        seen = set();

        for source in source_blocks:
            if source.id in seen:
                report.duplicate_ids.append( source.id );
                continue;
            seen.add( source.id );

            target = target_index.get( source.id );
            if target is None:
                report.missing_ids.append( source.id );
                continue;

            record = self.compare( source, target );
            report.records.append( record );

            if record.timestamp_mismatch:
                self.logger.debug( f"Timestamp drift on id {record.id}: start {record.start_drift_ms}ms, end {record.end_drift_ms}ms" );

        self.logger.info( f"Aligned {len( report.records )} captions, " \
                         f"{report.mismatch_count} timestamp mismatches, {len( report.missing_ids )} missing in target" );

        if report.duplicate_ids:
            self.logger.warning( f"Skipped {len( report.duplicate_ids )} repeated source ids: {report.duplicate_ids[:10]}" );

        return report;


def align_blocks( source_blocks: Sequence[TimedBlock], target_blocks: Sequence[TimedBlock] ) -> AlignmentReport:
    """Convenience function to align two caption lists."""
    return DriftDetector().align( source_blocks, target_blocks );
