"""
App module for AWS deployment.

Holds configuration shared by the benchmark runner Lambda and the results API
(FastAPI + Mangum).
"""

__all__ = ["config"]
