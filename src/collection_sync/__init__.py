"""Discovery and catalog synchronization of Ansible collections in SCM repositories."""

__version__ = "0.1.0"
