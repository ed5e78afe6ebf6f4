# control-plane/api/__init__.py
"""
HTTP API packages
"""
