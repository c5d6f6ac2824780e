"""
Office 365 endpoint -> Check Point object sync application.

This package provides:
- Office 365 endpoint feed loading and classification
- Check Point Management API client
- Diff and synchronization of network groups and application sites
- Session handling with a single publish-or-discard per run
"""
