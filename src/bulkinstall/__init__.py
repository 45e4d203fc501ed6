"""bulkinstall: fan out a bootstrap install script to many hosts over SSH."""

__version__ = "0.1.0"
