"""respin - interpret multimodal chat responses into actions."""

from .core.interpreter import AppContext, Interpreter, interpret
from .core.types import InterpretResult, StructuredOutput

__version__ = "0.1.0"

__all__ = ["AppContext", "InterpretResult", "Interpreter", "StructuredOutput", "interpret"]
