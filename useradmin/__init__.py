"""
useradmin - account, role and bearer-token administration service.
"""

__version__ = "0.1.0"
