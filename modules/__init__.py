"""Processing Modules

This package contains the processing modules of the Water Tower Boundary
Utilities. Each module implements the ModuleProcessor interface.
"""
