"""
Nexus Gateway - conversational agent gateway with context compaction.
"""

__version__ = "0.1.0"
