"""Config data package - onboarding profiles and other static configuration data."""
from .profiles import AUDIT_PROFILES, load_profile, get_profile_audit_types

__all__ = ['AUDIT_PROFILES', 'load_profile', 'get_profile_audit_types']
