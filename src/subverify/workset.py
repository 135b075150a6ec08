"""
Correction workset: review state for one verification result.

Holds per-line status edits, bulk selection, the active filter and pending
AI suggestions. Timing is never edited here; export always uses the source
timestamps.
"""
from typing import Dict, Iterable, List, Optional, Set, Tuple

import Levenshtein

from .captions import TimedBlock, serialize_captions
from .logging import get_logger
from .verify import (
    ALL_STATUSES,
    JUDGMENT_STATUSES,
    STATUS_CORRECT,
    STATUS_CORRECTED,
    STATUS_INCORRECT,
    STATUS_MINOR_ISSUE,
    VerificationItem,
    VerificationResult,
)


FILTER_ALL = "all";
FILTER_TIMESTAMP_MISMATCH = "timestamp_mismatch";
FILTERS = ( FILTER_ALL, STATUS_CORRECT, STATUS_MINOR_ISSUE, STATUS_INCORRECT, FILTER_TIMESTAMP_MISMATCH );


def matches_filter( item: VerificationItem, predicate: str ) -> bool:
    """Check one item against a filter name; 'correct' also covers corrected lines."""
    if predicate == FILTER_ALL:
        return True;
    if predicate == FILTER_TIMESTAMP_MISMATCH:
        return item.timestamp_mismatch;
    if predicate == STATUS_CORRECT:
        return item.status in ( STATUS_CORRECT, STATUS_CORRECTED );
    return item.status == predicate;


def filter_items( items: Iterable[VerificationItem], predicate: str = FILTER_ALL ) -> List[VerificationItem]:
    """
    Project items through a filter without modifying them.

    Args:
        items: Items to filter
        predicate: One of FILTERS

    Returns:
        Matching items in their original order
    """
    if predicate not in FILTERS:
        raise ValueError( f"Unknown filter '{predicate}', expected one of {', '.join( FILTERS )}" );
    return [ item for item in items if matches_filter( item, predicate ) ];


def toggle_all( selected: Set[int], visible: Iterable[VerificationItem] ) -> Set[int]:
    """
    Select-all checkbox semantics over the visible items.

    If every visible item is already selected the visible ids are removed,
    otherwise they are all added. Selected ids outside the visible set are
    kept either way.
    """
    visible_ids = [ item.id for item in visible ];
    updated = set( selected );

    if visible_ids and all( item_id in updated for item_id in visible_ids ):
        updated.difference_update( visible_ids );
    else:
        updated.update( visible_ids );

    return updated;


class CorrectionWorkset:
    """
    Mutable review state over a VerificationResult.

    Point edits set a line to 'corrected'; bulk actions only assign
    'correct', 'minor_issue' or 'incorrect' and always consume the selection.
    Operations on ids that are not in the workset do nothing and return False.
    """

    def __init__( self, result: VerificationResult ):
        self.logger = get_logger();
        self.result = result;
        self.filter_status = FILTER_ALL;
        self.bulk_mode = False;
        self.selected_ids: Set[int] = set();
        self.suggestions: Dict[int, str] = {};       # id -> suggestion waiting for apply/dismiss
        self.pending_fetches: Dict[int, Tuple[int, str]] = {};  # id -> (token, translated_text) of the latest fetch
        self._fetch_counter = 0;

        self._index = { item.id: item for item in result.items };
        self._initial_text = { item.id: item.translated_text for item in result.items };

    @property
    def items( self ) -> List[VerificationItem]:
        return self.result.items;

    def get_item( self, item_id: int ) -> Optional[VerificationItem]:
        return self._index.get( item_id );

    # Filtering

    def set_filter( self, predicate: str ):
        if predicate not in FILTERS:
            raise ValueError( f"Unknown filter '{predicate}', expected one of {', '.join( FILTERS )}" );
        self.filter_status = predicate;

    def visible_items( self ) -> List[VerificationItem]:
        """Items passing the active filter."""
        return filter_items( self.items, self.filter_status );

    # Bulk mode and selection

    def enter_bulk_mode( self ):
        self.bulk_mode = True;
        self.selected_ids = set();

    def exit_bulk_mode( self ):
        self.bulk_mode = False;
        self.selected_ids = set();

    def toggle_bulk_mode( self ) -> bool:
        if self.bulk_mode:
            self.exit_bulk_mode();
        else:
            self.enter_bulk_mode();
        return self.bulk_mode;

    def toggle_selection( self, item_id: int ) -> bool:
        """Flip selection of one item. Returns False outside bulk mode or for unknown ids."""
        if not self.bulk_mode or item_id not in self._index:
            return False;

        if item_id in self.selected_ids:
            self.selected_ids.discard( item_id );
        else:
            self.selected_ids.add( item_id );
        return True;

    def all_visible_selected( self ) -> bool:
        visible = self.visible_items();
        return bool( visible ) and all( item.id in self.selected_ids for item in visible );

    def select_all( self, visible_items: Optional[Iterable[VerificationItem]] = None ) -> Set[int]:
        """
        Select-all over the visible subset.

        Args:
            visible_items: Items currently shown (defaults to the active filter)

        Returns:
            The selection after the toggle
        """
        if not self.bulk_mode:
            return self.selected_ids;

        if visible_items is None:
            visible_items = self.visible_items();

        self.selected_ids = toggle_all( self.selected_ids, visible_items );
        return self.selected_ids;

    def bulk_set_status( self, status: str, ids: Optional[Iterable[int]] = None ) -> int:
        """
        Assign a status to many items at once.

        Args:
            status: 'correct', 'minor_issue' or 'incorrect'
            ids: Item ids to update (defaults to the current selection)

        Returns:
            Number of items updated
        """
        if status not in JUDGMENT_STATUSES:
            raise ValueError( f"Bulk status must be one of {', '.join( JUDGMENT_STATUSES )}, got '{status}'" );

        target_ids = set( self.selected_ids if ids is None else ids );
        updated = 0;

        for item_id in target_ids:
            item = self._index.get( item_id );
            if item is None:
                continue;
            item.status = status;
            updated += 1;

        self.selected_ids = set();
        self.logger.info( f"Marked {updated} lines as {status}" );
        return updated;

    # Point edits

    def edit_text( self, item_id: int, new_text: str ) -> bool:
        """Replace the translation of one line and mark it corrected."""
        item = self._index.get( item_id );
        if item is None:
            return False;

        item.translated_text = new_text;
        item.status = STATUS_CORRECTED;
        self.logger.debug( f"Line {item_id} corrected" );
        return True;

    # Suggestions

    def begin_suggestion( self, item_id: int ) -> Optional[int]:
        """
        Record that a suggestion fetch started for an item.

        Returns:
            Fetch token to hand back to receive_suggestion, or None for
            unknown ids
        """
        item = self._index.get( item_id );
        if item is None:
            return None;

        self._fetch_counter += 1;
        self.pending_fetches[item_id] = ( self._fetch_counter, item.translated_text );
        return self._fetch_counter;

    def receive_suggestion( self, item_id: int, suggestion: str, token: int ) -> bool:
        """
        Store a fetched suggestion unless it went stale.

        A suggestion is dropped when a newer fetch for the same id has
        started, or when the item's translation changed since the fetch began.
        """
        item = self._index.get( item_id );
        pending = self.pending_fetches.get( item_id );

        if item is None or pending is None or pending[0] != token:
            self.logger.debug( f"Dropping suggestion for line {item_id}: fetch was superseded" );
            return False;

        del self.pending_fetches[item_id];

        if item.translated_text != pending[1]:
            self.logger.info( f"Discarded stale suggestion for line {item_id}; it was edited while the suggestion was loading" );
            return False;

        self.suggestions[item_id] = suggestion;
        return True;

    def fail_suggestion( self, item_id: int, token: Optional[int] = None ):
        """Forget a pending fetch after it failed; the item is left as is."""
        pending = self.pending_fetches.get( item_id );
        if pending is not None and ( token is None or pending[0] == token ):
            del self.pending_fetches[item_id];

    def is_fetching( self, item_id: int ) -> bool:
        return item_id in self.pending_fetches;

    def apply_suggestion( self, item_id: int ) -> bool:
        suggestion = self.suggestions.get( item_id );
        if suggestion is None:
            return False;

        applied = self.edit_text( item_id, suggestion );
        self.dismiss_suggestion( item_id );
        return applied;

    def dismiss_suggestion( self, item_id: int ) -> bool:
        return self.suggestions.pop( item_id, None ) is not None;

    # Export

    def export_blocks( self ) -> List[TimedBlock]:
        """Current translations as captions on the source timeline."""
        return [
            TimedBlock(
                id=item.id,
                start_time=item.start_time,
                end_time=item.end_time,
                text=item.translated_text
            )
            for item in self.items
        ];

    def export_text( self ) -> str:
        return serialize_captions( self.export_blocks() );

    # Statistics

    def status_counts( self ) -> Dict[str, int]:
        counts = { status: 0 for status in ALL_STATUSES };
        for item in self.items:
            counts[item.status] = counts.get( item.status, 0 ) + 1;
        return counts;

    def correction_stats( self ) -> dict:
        """
        Summarize how much reviewers changed the translations.

        Edit distance is measured between each corrected line and the
        translation it had when the workset was created.
        """
        corrected = [ item for item in self.items if item.status == STATUS_CORRECTED ];
        distances = [
            Levenshtein.distance( self._initial_text.get( item.id, "" ), item.translated_text )
            for item in corrected
        ];

        return {
            'total_lines': len( self.items ),
            'corrected_lines': len( corrected ),
            'changed_lines': sum( 1 for distance in distances if distance > 0 ),
            'avg_edit_distance': sum( distances ) / len( distances ) if distances else 0.0,
            'pending_suggestions': len( self.suggestions )
        };
