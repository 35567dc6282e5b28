"""
dnathreads - generation lineage engine for AI-assisted code editors.
"""

__version__ = "0.1.0"
__logo__ = "🧬"
