"""MindSync - Multi-device cloud sync for the MIND diet tracker."""

__version__ = "0.1.0"
