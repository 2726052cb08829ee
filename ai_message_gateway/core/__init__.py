"""
Core modules for AI Message Gateway.

This package contains the TTL cache, quota tracker, budget guard,
generation gateway and the scheduled notification dispatcher.
"""
