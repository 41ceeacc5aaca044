"""Connecting to networks: the nmcli client and the attempt state machine."""
