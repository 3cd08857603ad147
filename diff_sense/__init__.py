"""diff-sense: semantic classification of changes between git revisions."""

__version__ = "0.1.0"
