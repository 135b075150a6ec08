"""
Test cases for source/target alignment and timestamp drift detection.
"""
import pytest
from pathlib import Path
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subverify.align import AlignmentRecord, DriftDetector, align_blocks, calculate_drift, timecode_to_ms
from subverify.captions import TimedBlock


def block( block_id, start, end, text ):
    return TimedBlock( block_id, start, end, text, text );


class TestDriftDetector:
    """Test cases for DriftDetector.align."""

    def test_example_pair( self ):
        """Test a one-line pair whose end time drifted by 500ms."""
        source = [ block( 1, "00:00:01,000", "00:00:04,000", "Hello" ) ];
        target = [ block( 1, "00:00:01,000", "00:00:04,500", "Bonjour" ) ];

        report = align_blocks( source, target );

        assert len( report.records ) == 1;
        record = report.records[0];
        assert record.id == 1;
        assert record.source_text == "Hello";
        assert record.translated_text == "Bonjour";
        assert record.start_time == "00:00:01,000";
        assert record.end_time == "00:00:04,000";
        assert record.timestamp_mismatch is True;
        assert record.end_drift_ms == 500;
        assert record.start_drift_ms == 0;

    def test_source_timestamps_are_authoritative( self ):
        """Test records always carry the source timing, never the target's."""
        source = [ block( 1, "00:00:01,000", "00:00:02,000", "A" ) ];
        target = [ block( 1, "00:00:09,000", "00:00:10,000", "B" ) ];

        record = align_blocks( source, target ).records[0];
        assert ( record.start_time, record.end_time ) == ( "00:00:01,000", "00:00:02,000" );

    def test_identical_timing_not_flagged( self ):
        """Test equal timecodes produce no mismatch."""
        source = [ block( 1, "00:00:01,000", "00:00:02,000", "A" ) ];
        target = [ block( 1, "00:00:01,000", "00:00:02,000", "B" ) ];

        report = align_blocks( source, target );
        assert report.records[0].timestamp_mismatch is False;
        assert report.mismatch_count == 0;

    def test_one_millisecond_is_a_mismatch( self ):
        """Test a single millisecond on the start bound is a full mismatch."""
        source = [ block( 1, "00:00:01,000", "00:00:02,000", "A" ) ];
        target = [ block( 1, "00:00:01,001", "00:00:02,000", "B" ) ];

        record = align_blocks( source, target ).records[0];
        assert record.timestamp_mismatch is True;
        assert record.start_drift_ms == 1;

    def test_same_instant_different_spelling_is_a_mismatch( self ):
        """Test comparison is on strings: 00:00:60,000 and 00:01:00,000 differ."""
        source = [ block( 1, "00:01:00,000", "00:01:02,000", "A" ) ];
        target = [ block( 1, "00:00:60,000", "00:01:02,000", "B" ) ];

        record = align_blocks( source, target ).records[0];
        assert record.timestamp_mismatch is True;
        assert record.start_drift_ms == 0;

    def test_missing_target_ids_reported( self ):
        """Test source ids absent from the target are dropped and listed."""
        source = [
            block( 1, "00:00:01,000", "00:00:02,000", "A" ),
            block( 2, "00:00:03,000", "00:00:04,000", "B" ),
            block( 3, "00:00:05,000", "00:00:06,000", "C" ),
        ];
        target = [ block( 3, "00:00:05,000", "00:00:06,000", "c" ), block( 1, "00:00:01,000", "00:00:02,000", "a" ) ];

        report = align_blocks( source, target );

        assert report.source_order == [ 1, 3 ];
        assert report.missing_ids == [ 2 ];
        assert report.target_block_count == 2;

    def test_extra_target_ids_ignored( self ):
        """Test target lines without a source counterpart produce nothing."""
        source = [ block( 1, "00:00:01,000", "00:00:02,000", "A" ) ];
        target = [ block( 1, "00:00:01,000", "00:00:02,000", "a" ), block( 99, "00:01:00,000", "00:01:01,000", "x" ) ];

        assert align_blocks( source, target ).source_order == [ 1 ];

    def test_duplicate_source_ids( self ):
        """Test a repeated source id is aligned once and reported."""
        source = [
            block( 1, "00:00:01,000", "00:00:02,000", "A" ),
            block( 1, "00:00:03,000", "00:00:04,000", "A again" ),
        ];
        target = [ block( 1, "00:00:01,000", "00:00:02,000", "a" ) ];

        report = align_blocks( source, target );

        assert len( report.records ) == 1;
        assert report.records[0].source_text == "A";
        assert report.duplicate_ids == [ 1 ];

    def test_duplicate_target_ids_last_wins( self ):
        """Test the later of two target lines with one id is used."""
        source = [ block( 1, "00:00:01,000", "00:00:02,000", "A" ) ];
        target = [ block( 1, "00:00:01,000", "00:00:02,000", "first" ), block( 1, "00:00:01,000", "00:00:02,000", "second" ) ];

        assert align_blocks( source, target ).records[0].translated_text == "second";

    def test_inputs_not_modified( self ):
        """Test alignment leaves its inputs untouched."""
        source = [ block( 1, "00:00:01,000", "00:00:02,000", "A" ) ];
        target = [ block( 1, "00:00:01,500", "00:00:02,000", "a" ) ];
        source_copy, target_copy = list( source ), list( target );

        DriftDetector().align( source, target );

        assert source == source_copy;
        assert target == target_copy;

    def test_empty_inputs( self ):
        """Test empty inputs give an empty report."""
        report = align_blocks( [], [] );
        assert report.records == [];
        assert report.missing_ids == [];


class TestDriftHelpers:
    """Test cases for the millisecond drift helpers."""

    def test_timecode_to_ms( self ):
        assert timecode_to_ms( "01:02:03,004" ) == 3723004;

    def test_unreadable_timecode( self ):
        assert timecode_to_ms( "garbage" ) is None;
        assert calculate_drift( "garbage", "00:00:01,000" ) is None;

    def test_negative_drift( self ):
        assert calculate_drift( "00:00:02,000", "00:00:01,250" ) == -750;

    def test_record_repr( self ):
        record = AlignmentRecord( 4, "a", "b", "00:00:01,000", "00:00:02,000", True );
        assert "drift" in repr( record );


if __name__ == '__main__':
    pytest.main( [ __file__ ] );
