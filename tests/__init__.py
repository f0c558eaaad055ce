"""
discord-delete test suite

Test organization:
- unit/ - Unit tests for individual components and whole runs against a fake server
- fixtures/ - Fake Discord server and JSON factories
"""
