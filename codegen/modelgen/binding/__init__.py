"""
Binding module: parsed declarations awaiting identity resolution.
"""

from .loader import load_binding, parse_binding, parse_yaml
from .types import Binding, BindingEntity, BindingProperty, BindingRelation

__all__ = [
    "Binding",
    "BindingEntity",
    "BindingProperty",
    "BindingRelation",
    "load_binding",
    "parse_binding",
    "parse_yaml",
]
