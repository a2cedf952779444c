# CUI // SP-CTI
"""Agent Boardroom — governance control plane for multi-agent projects."""

__version__ = "1.0.0"
