"""
Payme merchant API errors.

Every error carries the JSON-RPC code the provider expects and the HTTP
status to answer with. Only authentication errors and internal failures
change the HTTP status; protocol outcomes are always HTTP 200.
"""


class PaymeError(Exception):
    code = -32400
    message = "Internal error"
    http_status = 200

    def __init__(self, message: str | None = None, data: str | None = None):
        self.message = message or self.message
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.data:
            error["data"] = self.data
        return error


# ---------- AUTHENTICATION ----------

class Unauthorized(PaymeError):
    code = -32504
    message = "Missing Authorization Header"
    http_status = 401


class InvalidCredentials(PaymeError):
    code = -32504
    message = "Invalid Credentials"
    http_status = 401


# ---------- PROTOCOL ----------

class ParseError(PaymeError):
    code = -32700
    message = "Could not parse request body"


class InvalidParams(PaymeError):
    code = -32600
    message = "Invalid request params"


class MethodNotFound(PaymeError):
    code = -32601
    message = "Method not found"


# ---------- NOT FOUND / CONFLICT ----------

class OrderNotFound(PaymeError):
    code = -31050
    message = "Order not found"


class OrderAlreadyPaid(PaymeError):
    code = -31051
    message = "Order already paid"


class IncorrectAmount(PaymeError):
    code = -31001
    message = "Incorrect amount"


class TransactionNotFound(PaymeError):
    code = -31003
    message = "Transaction not found"


class TransactionConflict(PaymeError):
    code = -31008
    message = "Unable to perform operation"


# ---------- INTERNAL ----------

class InternalError(PaymeError):
    code = -32400
    message = "Internal error"
    http_status = 500
