"""
sftpstream CLI commands.
"""
