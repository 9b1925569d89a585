from fairdice_be.error_codes import ErrorCodes

class AppException(Exception):
    def __init__(self, error_code, status_message, status_code, details=None, action_button=None):
        super().__init__(status_message)
        self.error_code = error_code
        self.status_message = status_message
        self.status_code = status_code
        self.details = details if details is not None else {}
        self.action_button = action_button if action_button is not None else {}

class ValidationException(AppException):
    def __init__(self, status_message="Validation failed", details=None, action_button=None, error_code=ErrorCodes.VALIDATION_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class AuthenticationException(AppException):
    def __init__(self, status_message="Authentication required", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.UNAUTHENTICATED,
            status_message=status_message,
            status_code=401,
            details=details,
            action_button=action_button
        )

class AuthorizationException(AppException):
    def __init__(self, status_message="Forbidden", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.FORBIDDEN,
            status_message=status_message,
            status_code=403,
            details=details,
            action_button=action_button
        )

class NotFoundException(AppException):
    def __init__(self, status_message="Resource not found", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.NOT_FOUND,
            status_message=status_message,
            status_code=404,
            details=details,
            action_button=action_button
        )

class InsufficientFundsException(AppException):
    def __init__(self, status_message="Insufficient funds", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INSUFFICIENT_FUNDS,
            status_message=status_message,
            status_code=400,
            details=details,
            action_button=action_button
        )

class GameLogicException(AppException):
    def __init__(self, status_message="Game logic error", details=None, action_button=None, status_code=400, error_code=ErrorCodes.GAME_LOGIC_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=status_code, # Can be 400, 409 or 500
            details=details,
            action_button=action_button
        )

class InternalServerErrorException(AppException):
    def __init__(self, status_message="Internal server error", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INTERNAL_SERVER_ERROR,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )

# --- Bet lifecycle failures ---
# Each one is a precondition violation; nothing is retried internally.

class InvalidModuloException(ValidationException):
    def __init__(self, status_message="Modulo is outside the supported range", details=None):
        super().__init__(status_message=status_message, details=details, error_code=ErrorCodes.INVALID_MODULO)

class InvalidSelectorException(ValidationException):
    def __init__(self, status_message="Outcome selector is not valid for this modulo", details=None):
        super().__init__(status_message=status_message, details=details, error_code=ErrorCodes.INVALID_SELECTOR)

class AmountOutOfRangeException(ValidationException):
    def __init__(self, status_message="Bet amount is outside the allowed range", details=None):
        super().__init__(status_message=status_message, details=details, error_code=ErrorCodes.AMOUNT_OUT_OF_RANGE)

class EdgeExceedsAmountException(ValidationException):
    def __init__(self, status_message="House edge and jackpot fee exceed the bet amount", details=None):
        super().__init__(status_message=status_message, details=details, error_code=ErrorCodes.EDGE_EXCEEDS_AMOUNT)

class ExpiredCommitException(GameLogicException):
    def __init__(self, status_message="Commit has expired", details=None):
        super().__init__(status_message=status_message, details=details, error_code=ErrorCodes.EXPIRED_COMMIT)

class InvalidSignatureException(AppException):
    def __init__(self, status_message="Commit signature is not from the oracle", details=None):
        super().__init__(
            error_code=ErrorCodes.INVALID_SIGNATURE,
            status_message=status_message,
            status_code=403,
            details=details
        )

class ProfitCeilingExceededException(GameLogicException):
    def __init__(self, status_message="Possible win exceeds the maximum profit", details=None):
        super().__init__(status_message=status_message, details=details, error_code=ErrorCodes.PROFIT_CEILING_EXCEEDED)

class InsufficientReservesException(GameLogicException):
    def __init__(self, status_message="House cannot cover this bet", details=None):
        super().__init__(status_message=status_message, details=details, status_code=409, error_code=ErrorCodes.INSUFFICIENT_RESERVES)

class WrongBetStateException(GameLogicException):
    def __init__(self, status_message="Bet is not in the required state", details=None):
        super().__init__(status_message=status_message, details=details, status_code=409, error_code=ErrorCodes.WRONG_BET_STATE)

class HashUnavailableException(GameLogicException):
    def __init__(self, status_message="Placement block hash is not available", details=None):
        super().__init__(status_message=status_message, details=details, status_code=409, error_code=ErrorCodes.HASH_UNAVAILABLE)

class BlockHashMismatchException(GameLogicException):
    def __init__(self, status_message="Block hash does not match the placement block", details=None):
        super().__init__(status_message=status_message, details=details, error_code=ErrorCodes.BLOCK_HASH_MISMATCH)

class BetNotExpiredException(GameLogicException):
    def __init__(self, status_message="Bet can still be settled and cannot be refunded yet", details=None):
        super().__init__(status_message=status_message, details=details, status_code=409, error_code=ErrorCodes.BET_NOT_EXPIRED)

class GamePausedException(GameLogicException):
    def __init__(self, status_message="Betting is paused", details=None):
        super().__init__(status_message=status_message, details=details, status_code=503, error_code=ErrorCodes.GAME_PAUSED)

class UpgradePendingException(GameLogicException):
    def __init__(self, status_message="Cannot unpause while an upgrade redirect is set", details=None):
        super().__init__(status_message=status_message, details=details, status_code=409, error_code=ErrorCodes.UPGRADE_PENDING)
