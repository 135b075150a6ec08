"""
SRT caption parsing and serialization.

Timecodes are kept as the exact strings found in the file; nothing here
normalizes or reformats them.
"""
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .logging import get_logger


# index line, timecode line, one or more non-empty text lines, then a blank line or end of input
BLOCK_PATTERN = re.compile(
    r'^(\d+)[ \t]*\n'
    r'(\d{2}:\d{2}:\d{2},\d{3}) --> (\d{2}:\d{2}:\d{2},\d{3})[ \t]*\n'
    r'([^\n]+(?:\n[^\n]+)*)'
    r'(?=\n\n|\n?\Z)',
    re.MULTILINE
);


@dataclass( frozen=True )
class TimedBlock:
    """A single caption: identity, timing and text."""

    id: int;                              # Caption index, used as the join key
    start_time: str;                      # HH:MM:SS,mmm as parsed
    end_time: str;                        # HH:MM:SS,mmm as parsed
    text: str;                            # Caption text, may span several lines
    original_text: Optional[str] = None;  # Pre-translation text, never serialized


def normalize_line_endings( text: str ) -> str:
    """Convert CRLF / CR line endings to LF and drop a leading BOM."""
    text = text.replace( "\r\n", "\n" ).replace( "\r", "\n" );
    if text.startswith( "\ufeff" ):
        text = text[1:];
    return text;


def parse_captions( text: str ) -> List[TimedBlock]:
    """
    Parse SRT text into TimedBlock objects.

    Blocks that do not match the index / timecode / text layout are skipped.
    An input without any valid block returns an empty list; deciding whether
    that is an error is left to the caller.

    Args:
        text: Raw SRT content

    Returns:
        List of TimedBlock in file order
    """
    if not text:
        return [];

    blocks = [];
    for match in BLOCK_PATTERN.finditer( normalize_line_endings( text ) ):
        caption_text = match.group( 4 ).strip();
        if not caption_text:
            continue;

        blocks.append( TimedBlock(
            id=int( match.group( 1 ) ),
            start_time=match.group( 2 ),
            end_time=match.group( 3 ),
            text=caption_text,
            original_text=caption_text
        ) );

    return blocks;


def format_block( block: TimedBlock ) -> str:
    return f"{block.id}\n{block.start_time} --> {block.end_time}\n{block.text}\n";


def serialize_captions( blocks: Iterable[TimedBlock] ) -> str:
    """
    Serialize blocks to SRT text in the order given.

    Each block is emitted as index, timecode line and text followed by a
    newline; consecutive blocks are separated by one blank line.
    """
    return "\n".join( format_block( block ) for block in blocks );


def load_caption_file( caption_file: Path ) -> List[TimedBlock]:
    """
    Read and parse an SRT file.

    Args:
        caption_file: Path to a UTF-8 (optionally BOM-prefixed) SRT file

    Returns:
        Parsed blocks, possibly empty
    """
    logger = get_logger();
    caption_file = Path( caption_file );

    if not caption_file.exists():
        raise FileNotFoundError( f"Subtitle file not found: {caption_file}" );

    logger.info( f"Parsing subtitle file: {caption_file}" );

    with open( caption_file, 'r', encoding='utf-8-sig' ) as f:
        blocks = parse_captions( f.read() );

    logger.info( f"Parsed {len( blocks )} subtitle blocks from {caption_file.name}" );
    return blocks;


def write_caption_file( caption_file: Path, blocks: Iterable[TimedBlock] ) -> Path:
    """Serialize blocks and write them to caption_file as UTF-8."""
    caption_file = Path( caption_file );
    content = serialize_captions( blocks );

    with open( caption_file, 'w', encoding='utf-8', newline='\n' ) as f:
        f.write( content );

    get_logger().info( f"Wrote subtitles to {caption_file}" );
    return caption_file;


def apply_translations( blocks: Iterable[TimedBlock], translations: Dict[int, str] ) -> List[TimedBlock]:
    """
    Replace block text with translated lines.

    A block whose id is missing from translations, or whose translation is
    empty, keeps its current text. original_text always carries the text the
    block had before any translation so a later run translates from the
    source again.

    Args:
        blocks: Blocks to translate
        translations: Mapping of block id to translated text

    Returns:
        New list of TimedBlock
    """
    translated = [];
    for block in blocks:
        original = block.original_text if block.original_text is not None else block.text;
        new_text = ( translations.get( block.id ) or "" ).strip() or block.text;
        translated.append( replace( block, text=new_text, original_text=original ) );
    return translated;
