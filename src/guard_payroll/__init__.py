"""Payroll computation and approval engine for guard staffing operations."""

__version__ = "0.1.0"
