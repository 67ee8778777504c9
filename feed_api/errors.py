import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException


logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Failure that is reported to the client as ``{message, data}``."""

    status_code = 500

    def __init__(self, message, status_code=None, data=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data = data

    def to_dict(self):
        payload = {"message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class ValidationFailedError(ApiError):
    status_code = 422


class UnprocessableInputError(ApiError):
    status_code = 422


class NotFoundError(ApiError):
    status_code = 404


class ForbiddenError(ApiError):
    status_code = 403


class UnauthorizedError(ApiError):
    status_code = 401


class InfrastructureError(ApiError):
    status_code = 500


class ChannelStateError(RuntimeError):
    pass


class UninitializedStateError(ChannelStateError):
    pass


class NotifierAlreadyInitializedError(ChannelStateError):
    pass


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error("Request failed: %s", error.message, exc_info=error)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error: %s", error)
        return jsonify({"message": "Internal server error"}), 500
