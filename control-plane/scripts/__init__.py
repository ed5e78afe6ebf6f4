# control-plane/scripts/__init__.py
"""
One-time maintenance scripts
"""
