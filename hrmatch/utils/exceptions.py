"""
Custom Exception Classes for the HR matching engine
"""
from typing import Dict, Any, List
from fastapi import HTTPException


class HRMatchBaseException(Exception):
    """Base exception for the HR matching engine"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(HRMatchBaseException):
    """Raised when input validation fails before the engine runs"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class ConfigurationError(HRMatchBaseException):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


class InferenceError(HRMatchBaseException):
    """Raised when the text-generation service fails after all retries"""

    def __init__(self, message: str, provider: str = None, models: List[str] = None, **kwargs):
        details = kwargs.pop('details', {})
        if provider:
            details['provider'] = provider
        if models:
            details['models'] = list(models)
        super().__init__(message, error_code="INFERENCE_ERROR", details=details, **kwargs)


class RateLimitError(HRMatchBaseException):
    """Raised when rate limits are exceeded"""

    def __init__(self, message: str, limit: int = None, window: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if limit:
            details['limit'] = limit
        if window:
            details['window'] = window
        super().__init__(message, error_code="RATE_LIMIT_ERROR", details=details, **kwargs)


class MalformedOutputError(HRMatchBaseException):
    """Raised when no structured value can be recovered from model output"""

    def __init__(self, message: str, raw_text: str = None, **kwargs):
        details = kwargs.pop('details', {})
        self.raw_text = raw_text
        if raw_text is not None:
            # keep the log line bounded, the full text stays on the exception
            details['raw_text_preview'] = raw_text[:500]
            details['raw_text_length'] = len(raw_text)
        super().__init__(message, error_code="MALFORMED_OUTPUT", details=details, **kwargs)


class ExtractionError(HRMatchBaseException):
    """Raised when a single JD or resume cannot be extracted"""

    def __init__(
        self,
        message: str,
        document_index: int = None,
        document_label: str = None,
        document_kind: str = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        self.document_index = document_index
        self.document_label = document_label
        self.document_kind = document_kind
        if document_index is not None:
            details['document_index'] = document_index
        if document_label:
            details['document_label'] = document_label
        if document_kind:
            details['document_kind'] = document_kind
        super().__init__(message, error_code="EXTRACTION_ERROR", details=details, **kwargs)


class MatchError(HRMatchBaseException):
    """Raised when a single (JD, resume) pair cannot be scored"""

    def __init__(self, message: str, jd_index: int = None, resume_index: int = None, **kwargs):
        details = kwargs.pop('details', {})
        self.jd_index = jd_index
        self.resume_index = resume_index
        if jd_index is not None:
            details['jd_index'] = jd_index
        if resume_index is not None:
            details['resume_index'] = resume_index
        super().__init__(message, error_code="MATCH_ERROR", details=details, **kwargs)


class FatalBatchError(HRMatchBaseException):
    """Raised when every item on one side of the matrix failed extraction"""

    def __init__(self, message: str, side: str = None, errors: List[Dict[str, Any]] = None, **kwargs):
        details = kwargs.pop('details', {})
        self.side = side
        self.errors = errors or []
        if side:
            details['side'] = side
        if self.errors:
            details['errors'] = self.errors
        super().__init__(message, error_code="FATAL_BATCH_ERROR", details=details, **kwargs)


# HTTP Exception Mapping
def map_to_http_exception(exc: HRMatchBaseException) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""

    status_code_mapping = {
        ValidationError: 400,
        ConfigurationError: 500,
        RateLimitError: 429,
        InferenceError: 502,
        MalformedOutputError: 502,
        ExtractionError: 500,
        MatchError: 500,
        FatalBatchError: 500,
    }

    status_code = status_code_mapping.get(type(exc), 500)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)
