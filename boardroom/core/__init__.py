# CUI // SP-CTI
"""Boardroom core: configuration, errors, notifier."""
