"""Utility helpers for DLP Gate."""
