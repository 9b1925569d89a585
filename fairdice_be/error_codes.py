class ErrorCodes:
    """Stable error identifiers returned in the `error_code` field of every error response."""

    # Generic
    GENERIC_ERROR = "BE_GEN_000"
    VALIDATION_ERROR = "BE_GEN_001"
    UNAUTHENTICATED = "BE_GEN_002"
    FORBIDDEN = "BE_GEN_003"
    NOT_FOUND = "BE_GEN_004"
    METHOD_NOT_ALLOWED = "BE_GEN_005"
    INTERNAL_SERVER_ERROR = "BE_GEN_006"
    USER_NOT_FOUND = "BE_GEN_007"

    # Funds
    INSUFFICIENT_FUNDS = "BE_FIN_001"
    INVALID_AMOUNT = "BE_FIN_002"

    # Game
    GAME_LOGIC_ERROR = "BE_GAME_000"
    GAME_PAUSED = "BE_GAME_001"

    # Dice bet lifecycle
    INVALID_MODULO = "BE_DICE_001"
    INVALID_SELECTOR = "BE_DICE_002"
    AMOUNT_OUT_OF_RANGE = "BE_DICE_003"
    EXPIRED_COMMIT = "BE_DICE_004"
    INVALID_SIGNATURE = "BE_DICE_005"
    PROFIT_CEILING_EXCEEDED = "BE_DICE_006"
    INSUFFICIENT_RESERVES = "BE_DICE_007"
    WRONG_BET_STATE = "BE_DICE_008"
    HASH_UNAVAILABLE = "BE_DICE_009"
    BLOCK_HASH_MISMATCH = "BE_DICE_010"
    EDGE_EXCEEDS_AMOUNT = "BE_DICE_011"
    BET_NOT_EXPIRED = "BE_DICE_012"

    # House administration
    UPGRADE_PENDING = "BE_ADM_001"
