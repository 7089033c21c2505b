"""
models/ - Domain Models
=======================
Plain dataclasses exchanged between repositories and their callers.
"""
