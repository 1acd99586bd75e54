"""
Rotation Manager interface consumed by the admin service.
"""
from src.rotation.base import LiveEntry, LiveSnapshot, RotationManager, UsageInfo

__all__ = ["LiveEntry", "LiveSnapshot", "RotationManager", "UsageInfo"]
