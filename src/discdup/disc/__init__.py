"""Drive tooling: media detection, bulk copy and tray ejection.

Each collaborator has a Linux and a Windows implementation, selected with
the ``create_*`` factory in its module.
"""
