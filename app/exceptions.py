# app/exceptions.py
"""
Domain errors raised by the tag services.
Each carries the HTTP status it maps to; main.py turns them into JSON
responses of the form {"detail": ..., "error": ...}.
"""


class TagError(Exception):
    status_code = 400
    default_detail = "Tag request failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def error(self) -> str:
        return type(self).__name__


class Unauthenticated(TagError):
    status_code = 401
    default_detail = "Authentication required"


class Forbidden(TagError):
    status_code = 403
    default_detail = "You do not own this tag"


class TagNotFound(TagError):
    status_code = 404
    default_detail = "Invalid tag code"


class TagAlreadyClaimed(TagError):
    status_code = 409
    default_detail = "This tag is already linked to another user"


class DuplicateTagCode(TagError):
    status_code = 409
    default_detail = "Tag code already registered"


class TagDisabled(TagError):
    status_code = 410
    default_detail = "This tag has been disabled"


class NoPendingOtp(TagError):
    default_detail = "No OTP request found for this number"


class OtpExpired(TagError):
    default_detail = "OTP has expired, request a new one"


class InvalidOtp(TagError):
    default_detail = "Invalid OTP"


class UnknownPrivacyFlag(TagError):
    default_detail = "Unknown privacy setting"


class BatchTooLarge(TagError):
    default_detail = "Batch quantity too large"


class InvalidScanPayload(TagError):
    default_detail = "Unrecognised QR payload"
