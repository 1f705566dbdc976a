"""CogniNode: AI-generated, expandable learning maps."""

__version__ = "0.1.0"
