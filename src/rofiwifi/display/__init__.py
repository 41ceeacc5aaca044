"""Launcher, notifications, QR codes, and terminal tables."""
