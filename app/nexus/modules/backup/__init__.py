"""
Tenant backup and restore.

A backup is a JSON document holding every tenant-owned business row for one
tenant; users and OTP codes are never exported.
"""
