"""
API error type and the JSON error handlers registered on the Flask app.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An error that maps directly onto a JSON error response."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(413)
    def payload_too_large(error):
        logger.warning('Rejected request body larger than MAX_CONTENT_LENGTH')
        return jsonify({
            'error': 'Payload too large. Reduce image size or switch to multipart uploads.'
        }), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception(f'Unhandled server error: {error}')
        return jsonify({'error': 'Internal server error'}), 500
