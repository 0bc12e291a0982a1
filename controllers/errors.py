import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from models.models import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = "Server Error"

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.errors = errors

    def to_dict(self):
        data = {"message": self.message}
        if self.errors:
            data["errors"] = self.errors
        return data


class BadRequest(ApiError):
    status_code = 400
    message = "Bad request"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class ValidationFailed(ApiError):
    """422 with ``{field: [messages]}``; raised before anything is written."""

    status_code = 422
    message = "The given data was invalid."

    def __init__(self, errors):
        super().__init__(errors=errors)

    @classmethod
    def from_pydantic(cls, exc):
        errors = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "body"
            errors.setdefault(field, []).append(error["msg"])
        return cls(errors)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception(f"Unhandled error: {error}")
        db.session.rollback()
        return jsonify({"message": "Server Error"}), 500
