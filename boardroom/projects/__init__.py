# CUI // SP-CTI
"""Multi-project registry, resource allocation and isolation."""
from boardroom.projects.allocator import ResourceAllocator  # noqa: F401
from boardroom.projects.isolation import IsolationEnforcer  # noqa: F401
from boardroom.projects.registry import ProjectRegistry  # noqa: F401
