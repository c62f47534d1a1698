"""
Handlers de erro da API: toda resposta de erro segue
``{"success": False, "message": ...}``.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from biobox.exceptions import BioboxError

logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int, **extra):
    return jsonify({'success': False, 'message': message, **extra}), status_code


def register_error_handlers(app):

    @app.errorhandler(BioboxError)
    def _handle_domain_error(e: BioboxError):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e.message}")
        return error_response(e.message, e.status_code, details=e.details)

    @app.errorhandler(HTTPException)
    def _handle_http_error(e: HTTPException):
        return error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _handle_unexpected(e: Exception):
        logger.exception(f"Erro inesperado: {e}")
        return error_response("Erro inesperado", 500)
