# Path: gib_validator/cli/__init__.py
"""
GIB Validator command line interface (argparse + rich).
"""

from .main import main, build_parser

__all__ = ['main', 'build_parser']
