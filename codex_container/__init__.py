"""codex-container - run commands in a per-directory, egress-restricted container.

One container per working directory, allowlisted network egress, and
guaranteed removal when the launch ends.
"""

__version__ = "0.1.0"
