import logging
from functools import wraps
from typing import Any, Dict, List, Optional, Tuple

from flask import Response, jsonify

from ..exceptions import ProductionError

logger = logging.getLogger(__name__)

JsonReply = Tuple[Response, int]


def _envelope(success: bool, message: str, status_code: int, **body: Any) -> JsonReply:
    payload = {'success': success, 'message': message}
    payload.update(body)
    return jsonify(payload), status_code


class APIResponse:
    """JSON envelope shared by every blueprint: ``success``, ``message`` and ``data`` or ``errors``."""

    @staticmethod
    def success(data: Any = None, message: str = "Success", status_code: int = 200) -> JsonReply:
        return _envelope(True, message, status_code, data=data)

    @staticmethod
    def error(message: str, errors: Optional[Dict] = None, status_code: int = 400) -> JsonReply:
        return _envelope(False, message, status_code, errors=errors or {})

    @staticmethod
    def validation_error(errors: Dict[str, List[str]]) -> JsonReply:
        return APIResponse.error("Validation failed", errors=errors, status_code=422)

    @staticmethod
    def from_exception(exc: ProductionError) -> JsonReply:
        """Typed engine errors carry their own status and machine-readable code."""
        if exc.status_code >= 500:
            logger.warning("Upstream failure surfaced to client: %s (%s)", exc.message, exc.code)
        return APIResponse.error(exc.message, errors=exc.to_dict(), status_code=exc.status_code)


def api_route(func):
    """Wrap a view so engine errors become envelopes and anything unexpected a logged 500."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ProductionError as exc:
            return APIResponse.from_exception(exc)
        except ValueError as exc:
            return APIResponse.validation_error({'general': [str(exc)]})
        except Exception:
            logger.exception("Unhandled error in %s", func.__name__)
            return APIResponse.error("Internal server error", status_code=500)

    return wrapper


__all__ = ['APIResponse', 'api_route']
