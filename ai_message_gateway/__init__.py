"""
AI Message Gateway.

Budget-aware, quota-limited, cached gateway to an LLM text generator,
plus a once-a-minute notification dispatcher.
"""

__version__ = "0.1.0"
