from .core import *

__version__ = "0.1.0"
