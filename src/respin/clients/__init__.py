"""AI API collaborators."""

from .base import ChatClient, ImageGenerator, SpeechSynthesizer, to_data_url
from .pollinations import PollinationsClient

__all__ = ["ChatClient", "ImageGenerator", "PollinationsClient", "SpeechSynthesizer", "to_data_url"]
