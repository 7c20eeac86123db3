"""Runtime and framework adapters for the gateway.

- aws_lambda: entry point for the Python Lambda runtime (dict events in,
  dict responses out)
- wsgi: serves a PEP 3333 WSGI application as a gateway handler
"""

from .aws_lambda import make_lambda_handler
from .wsgi import WSGIHandler

__all__ = ["make_lambda_handler", "WSGIHandler"]
