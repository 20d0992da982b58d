# utils/__init__.py
"""
Utilities Package
"""
