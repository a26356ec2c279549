"""Core business logic layer.

Subpackages:
- pantry: lot merging, re-pricing, consumption and grouped views
- shopping: plan needs, shopping list reconciliation and checkout
- cooking: recipe consumption and cook-time history
- catalog: ingredient/recipe edits with cascading deletes
- history: user edits and deletions of purchase and cook logs
- audit: referential integrity repair
"""
__all__ = ["pantry", "shopping", "cooking", "catalog", "history", "audit"]
