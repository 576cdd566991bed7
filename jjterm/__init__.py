"""jjterm: terminal front-end for jj with in-UI SSH credential prompts"""

__version__ = "0.1.0"
