"""
Installer components.

Every module in this package registers one component with the
InstallerRegistry when imported.
"""
