"""
Console and JSON reporting for verification results.
"""
import json
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .verify import VerificationItem, VerificationResult
from .workset import CorrectionWorkset


STATUS_STYLES = {
    'correct': "green",
    'minor_issue': "yellow",
    'incorrect': "red",
    'corrected': "magenta"
};


def score_style( score: int ) -> str:
    if score >= 90:
        return "green";
    if score >= 70:
        return "yellow";
    return "red";


def format_drift( item: VerificationItem ) -> str:
    if not item.timestamp_mismatch:
        return "";
    parts = [];
    for label, drift in ( ( "start", item.start_drift_ms ), ( "end", item.end_drift_ms ) ):
        if drift:
            parts.append( f"{label} {drift:+d}ms" );
    return ", ".join( parts ) or "format";


def render_summary( result: VerificationResult, console: Console ):
    """Print the overall score, summary and structural counts."""
    style = score_style( result.overall_score );
    console.print( f"\n[bold]Quality score:[/bold] [{style}]{result.overall_score}[/{style}]" );
    console.print( f"[italic]\"{escape( result.summary )}\"[/italic]" );

    if result.timestamp_mismatch_count > 0:
        console.print( f"[red]{result.timestamp_mismatch_count} timestamp mismatches[/red]" );
    else:
        console.print( "[green]Timestamps synced[/green]" );

    console.print( f"{len( result.items )} lines analyzed" );

    if result.missing_translation_count:
        console.print( f"[yellow]{result.missing_translation_count} source lines missing from the translation[/yellow]" );
    if result.duplicate_ids:
        console.print( f"[yellow]{len( result.duplicate_ids )} repeated source ids skipped[/yellow]" );


def render_items( items: Iterable[VerificationItem], console: Console, title: str = "Lines" ):
    """Print verification items as a table."""
    table = Table( title=title, show_lines=False );
    table.add_column( "ID", justify="right" );
    table.add_column( "Time" );
    table.add_column( "Status" );
    table.add_column( "Source" );
    table.add_column( "Translation" );
    table.add_column( "Feedback" );
    table.add_column( "Drift" );

    for item in items:
        style = STATUS_STYLES.get( item.status, "white" );
        table.add_row(
            str( item.id ),
            f"{item.start_time} --> {item.end_time}",
            f"[{style}]{item.status}[/{style}]",
            escape( item.source_text ),
            escape( item.translated_text ),
            escape( item.feedback ),
            format_drift( item )
        );

    console.print( table );


def render_workset( workset: CorrectionWorkset, console: Optional[Console] = None ):
    """Print the summary, the visible lines and correction statistics."""
    console = console or Console();
    render_summary( workset.result, console );
    render_items( workset.visible_items(), console, title=f"Lines (filter: {workset.filter_status})" );

    stats = workset.correction_stats();
    if stats['corrected_lines']:
        console.print( f"{stats['corrected_lines']} lines corrected " \
                       f"(avg edit distance {stats['avg_edit_distance']:.1f})" );


def write_json_report( result: VerificationResult, report_file: Path ) -> Path:
    report_file = Path( report_file );
    with open( report_file, 'w', encoding='utf-8' ) as f:
        json.dump( result.to_dict(), f, ensure_ascii=False, indent=2 );
    return report_file;
