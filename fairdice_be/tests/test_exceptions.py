import pytest
from fairdice_be.exceptions import (
    AppException,
    ValidationException,
    AuthenticationException,
    AuthorizationException,
    NotFoundException,
    InsufficientFundsException,
    GameLogicException,
    InternalServerErrorException,
    InvalidModuloException,
    InvalidSignatureException,
    InsufficientReservesException,
    WrongBetStateException,
    GamePausedException,
    UpgradePendingException,
)
from fairdice_be.error_codes import ErrorCodes

def test_app_exception_instantiation():
    details = {"field": "value"}
    action_button = {"text": "Retry", "actionType": "RETRY_ACTION"}

    exc = AppException(
        error_code="TEST_001",
        status_message="Test message",
        status_code=400,
        details=details,
        action_button=action_button
    )

    assert exc.error_code == "TEST_001"
    assert exc.status_message == "Test message"
    assert exc.status_code == 400
    assert exc.details == details
    assert exc.action_button == action_button
    assert str(exc) == "Test message"

def test_app_exception_defaults():
    exc = AppException(error_code="TEST_002", status_message="Default test", status_code=500)
    assert exc.details == {}
    assert exc.action_button == {}

@pytest.mark.parametrize("exc_class, error_code, status_code", [
    (ValidationException, ErrorCodes.VALIDATION_ERROR, 422),
    (AuthenticationException, ErrorCodes.UNAUTHENTICATED, 401),
    (AuthorizationException, ErrorCodes.FORBIDDEN, 403),
    (NotFoundException, ErrorCodes.NOT_FOUND, 404),
    (InsufficientFundsException, ErrorCodes.INSUFFICIENT_FUNDS, 400),
    (GameLogicException, ErrorCodes.GAME_LOGIC_ERROR, 400),
    (InternalServerErrorException, ErrorCodes.INTERNAL_SERVER_ERROR, 500),
])
def test_generic_exceptions(exc_class, error_code, status_code):
    exc = exc_class(status_message="Something happened")
    assert exc.error_code == error_code
    assert exc.status_code == status_code
    assert exc.status_message == "Something happened"
    with pytest.raises(AppException):
        raise exc

@pytest.mark.parametrize("exc_class, error_code, status_code", [
    (InvalidModuloException, ErrorCodes.INVALID_MODULO, 422),
    (InvalidSignatureException, ErrorCodes.INVALID_SIGNATURE, 403),
    (InsufficientReservesException, ErrorCodes.INSUFFICIENT_RESERVES, 409),
    (WrongBetStateException, ErrorCodes.WRONG_BET_STATE, 409),
    (GamePausedException, ErrorCodes.GAME_PAUSED, 503),
    (UpgradePendingException, ErrorCodes.UPGRADE_PENDING, 409),
])
def test_bet_lifecycle_exceptions(exc_class, error_code, status_code):
    exc = exc_class(details={"commit": "ab" * 32})
    assert exc.error_code == error_code
    assert exc.status_code == status_code
    assert exc.details == {"commit": "ab" * 32}
    assert exc.status_message

def test_validation_exception_custom_code():
    exc = ValidationException("Bad amount", error_code=ErrorCodes.INVALID_AMOUNT)
    assert exc.error_code == ErrorCodes.INVALID_AMOUNT
    assert exc.status_code == 422

def test_invalid_modulo_is_validation_error():
    with pytest.raises(ValidationException):
        raise InvalidModuloException()
