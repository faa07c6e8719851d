"""
Puppet App - messaging session automation layer

Drives one instant-messaging session through its lifecycle behind a
backend-agnostic contract, with liveness supervision, payload caching and
event publication for the automation layer above it. Transport failures
surface as BackendFailureError, which callers retry with
``puppet_app.utils.call_with_retry``.
"""

__version__ = "0.1.0"
__author__ = "Puppet App Team"
