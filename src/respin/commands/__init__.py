"""UI command validation and phrase grammar."""

from .grammar import PhraseMatch, parse_phrase
from .validator import UICommand, parse_command, validate_command

__all__ = ["PhraseMatch", "UICommand", "parse_command", "parse_phrase", "validate_command"]
