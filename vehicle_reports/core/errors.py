# vehicle_reports/core/errors.py


class ReportsError(Exception):
    """Base de los errores de dominio; cada uno sabe con qué código HTTP se expone."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReportsError):
    status_code = 400


class ConfigurationError(ReportsError):
    status_code = 400


class NotFoundError(ReportsError):
    status_code = 404


class UpstreamAuthError(ReportsError):
    status_code = 500


class UpstreamQueryError(ReportsError):
    status_code = 500
