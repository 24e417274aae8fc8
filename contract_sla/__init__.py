"""
Contract SLA

Contractual SLA compliance and violation-rule engine for ServiceNow tickets.
"""

__version__ = "1.0.0"
