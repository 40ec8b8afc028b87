"""
core/executor.py -- Uniform failure handling for every call to the instance.

RequestExecutor wraps a gateway object. Attribute access returns the
gateway's method wrapped so that a transport failure is

  1. logged once, naming the gateway, the operation and its declared result
     type, e.g.  "MastodonGateway.get_password_grant_token<Token> failed: 401"
  2. re-raised as core.errors.RemoteFailure, chained from the original
     exception so the traceback is not lost.

Because the wrapped call raises before returning, callers that only write
state after a call returns can never be left half-updated.

Usage:
    executor = RequestExecutor(MastodonGateway("example.social"))
    rules = executor.get_instance_rules()      # list[str] or RemoteFailure

Layer rule: core/ is the kernel. This module may not import from auth/ or cache/.
"""

import functools
import inspect
import logging
import typing
from typing import Any, Callable, Optional

import requests

from core.errors import RemoteFailure

logger = logging.getLogger("fedisession.executor")


def _type_name(annotation: Any) -> str:
    """Render a return annotation compactly: Token, list[Status], Optional[Account]."""
    if annotation is inspect.Signature.empty:
        return "Any"
    if isinstance(annotation, str):
        return annotation
    args = typing.get_args(annotation)
    origin = typing.get_origin(annotation)
    if origin is not None and args:
        origin_name = getattr(origin, "__name__", None) or str(origin).replace("typing.", "")
        return f"{origin_name}[{', '.join(_type_name(a) for a in args)}]"
    return getattr(annotation, "__name__", str(annotation))


def _status_code(exc: Exception) -> Optional[int]:
    response = getattr(exc, "response", None)
    return response.status_code if response is not None else None


def describe_failures(func: Callable, owner: str) -> Callable:
    """Wrap one gateway callable with log-and-raise-RemoteFailure semantics."""
    operation = f"{owner}.{func.__name__}"
    result_type = _type_name(inspect.signature(func).return_annotation)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except requests.RequestException as e:
            status = _status_code(e)
            logger.error("%s<%s> failed: %s", operation, result_type, status if status is not None else e)
            raise RemoteFailure(operation, result_type, status) from e
        except (KeyError, AttributeError, TypeError) as e:
            # A 2xx reply missing a required field, or of the wrong shape, is as
            # useless as an error reply.
            logger.error("%s<%s> failed: malformed response (%s: %s)", operation, result_type, type(e).__name__, e)
            raise RemoteFailure(operation, result_type) from e

    return wrapper


class RequestExecutor:
    """Adapter that routes every public gateway method through describe_failures()."""

    def __init__(self, gateway: Any) -> None:
        self.gateway = gateway
        self._owner = type(gateway).__name__

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self.gateway, name)
        if name.startswith("_") or not callable(attr):
            return attr
        return describe_failures(attr, self._owner)
