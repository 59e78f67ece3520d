"""Core contracts and error taxonomy for DLP Gate."""
