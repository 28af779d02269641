"""Core orchestration and process lifecycle.

This package holds the drive orchestrator that polls drives and drives each
disc through copy and eject, the models describing its state, and the
runner that hosts it in a foreground process.
"""
