"""
Error taxonomy shared by every router and service.
Each error knows the HTTP status it is surfaced with; main.py renders
all of them as {"success": false, "message": ...}.
"""


class PlatformError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(PlatformError):
    status_code = 401
    default_message = "User not authenticated"


class Forbidden(PlatformError):
    status_code = 403
    default_message = "Not authorized"


class InvalidArgument(PlatformError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(PlatformError):
    status_code = 404
    default_message = "Not found"


class InvalidSignature(PlatformError):
    status_code = 400
    default_message = "Invalid signature"


class GatewayError(PlatformError):
    status_code = 502
    default_message = "Error creating Razorpay order"


class MediaError(PlatformError):
    status_code = 502
    default_message = "Media service error"


class InternalError(PlatformError):
    status_code = 500
    default_message = "Internal server error"
