"""
State Layer

Responsibility:
The editing session's single mutable tree (arena of HierarchyNodes).

PRINCIPLES:
1. One child list per node, tagged expanded/collapsed
2. No persistence calls
3. No rendering logic
"""

from .hierarchy import HierarchyNode, HierarchyViewModel

__all__ = ['HierarchyNode', 'HierarchyViewModel']
