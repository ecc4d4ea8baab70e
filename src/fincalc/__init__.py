"""fincalc: formula expression engine with symbolic calculus."""

__version__ = "0.3.0"
__core_api_version__ = 1
