"""
Every Rand - Source Package

A zero-based budgeting assistant: give every rand a name.

DESIGN PRINCIPLES:
1. Income minus planned expenses must reach zero
2. Local state updates first, storage catches up
3. Destructive and batch actions need explicit confirmation
4. Every owner's data is isolated by owner ID
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Every Rand Team"
