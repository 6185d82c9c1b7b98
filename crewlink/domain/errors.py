# crewlink/domain/errors.py


class DomainError(Exception):
    """Base for failures a caller can act on; `detail` is shown to the user as-is."""

    code = "domain_error"
    status_code = 400
    default_detail = "The request could not be completed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(DomainError):
    code = "not_found"
    status_code = 404
    default_detail = "Not found"


class Forbidden(DomainError):
    code = "forbidden"
    status_code = 403
    default_detail = "You do not have access to this resource"


class Unauthorized(Forbidden):
    code = "unauthorized"
    default_detail = "You are not allowed to perform this action"


class AlreadyConnected(DomainError):
    code = "already_connected"
    status_code = 409
    default_detail = "You are already connected with this crew member"


class RequestAlreadyPending(DomainError):
    code = "request_already_pending"
    status_code = 409
    default_detail = "A connection request between you is already pending"


class SelfRequest(DomainError):
    code = "self_request"
    status_code = 400
    default_detail = "You cannot send a connection request to yourself"


class UserBlocked(DomainError):
    code = "user_blocked"
    status_code = 403
    default_detail = "Connections with this crew member are blocked"


class NotConnected(DomainError):
    code = "not_connected"
    status_code = 403
    default_detail = "You can only message crew members you are connected with"


class InvalidStatusTransition(DomainError):
    code = "invalid_status_transition"
    status_code = 409
    default_detail = "Message status cannot move backwards"


class ChannelUnavailable(DomainError):
    """Raised inside the realtime bus when the target has no live session."""

    code = "channel_unavailable"
    status_code = 503
    default_detail = "Recipient has no active realtime session"
