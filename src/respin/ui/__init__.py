"""UI command execution against a host surface."""

from .controller import UIController
from .surface import Element, ElementIndex, HeadlessUISurface, UISurface

__all__ = ["Element", "ElementIndex", "HeadlessUISurface", "UIController", "UISurface"]
