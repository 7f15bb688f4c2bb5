"""
Audio command routing: deterministic patterns plus model-assisted classification.
"""

from .pattern_router import PatternRouter, RouterMatch, has_media_keyword, looks_like_control_command
from .intent_classifier import (
    IntentClassifier,
    extract_json_object,
    decode_decision,
    parse_decision,
    resolve_decision,
)

__all__ = [
    'PatternRouter',
    'RouterMatch',
    'has_media_keyword',
    'looks_like_control_command',
    'IntentClassifier',
    'extract_json_object',
    'decode_decision',
    'parse_decision',
    'resolve_decision'
]
