"""
SubVerify - Subtitle translation verification utility.

Aligns a source subtitle file with its translation, flags timestamp drift,
merges an AI quality assessment per line and exports corrected subtitles.
"""

__version__ = "0.1.0";
__author__ = "SubVerify Project";
__license__ = "MIT";
