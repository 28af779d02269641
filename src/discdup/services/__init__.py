"""External service integrations.

Wrappers for services discdup talks to over the network, kept apart from
the drive tooling so they are easy to mock in tests.
"""
