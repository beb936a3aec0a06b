class QuoteEngineError(Exception):
    """
    Base of every user-visible failure of the quoting engine.
    `code` is the stable machine-readable identifier surfaced by the HTTP layer,
    `msg` the human-readable reason.
    """
    code = "QUOTE_ENGINE_ERROR"

    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg


class InvalidInput(QuoteEngineError):
    """
    Malformed/missing token addresses, non-positive amounts, token_in == token_out.
    Raised before any oracle call.
    """
    code = "INVALID_INPUT"


class TokenNotAllowed(QuoteEngineError):
    """
    Token is well-formed but not on the allow-list.
    """
    code = "TOKEN_NOT_ALLOWED"

    def __init__(self, token: str):
        super().__init__(f"Token {token} is not allowed")
        self.token = token


class InvalidSlippage(QuoteEngineError):
    """
    Slippage tolerance outside [0.1%, 50%].
    """
    code = "INVALID_SLIPPAGE"

    def __init__(self, slippage_pct, min_pct, max_pct):
        super().__init__(f"slippage_pct must be within [{min_pct}, {max_pct}], got {slippage_pct}")
        self.slippage_pct = slippage_pct


class NoRouteFound(QuoteEngineError):
    """
    Every candidate's oracle query failed or returned zero.
    """
    code = "NO_ROUTE"

    def __init__(self, candidates_tried: int, last_error: str | None = None):
        super().__init__("No executable route/liquidity for this pair")
        self.candidates_tried = candidates_tried
        self.last_error = last_error


class OracleTransientError(QuoteEngineError):
    """
    A single quoter call failed for a non-definitive reason (network blip,
    timeout, decode error). Never escapes the evaluator: it becomes the
    reason of a failed OracleResult.
    """
    code = "ORACLE_TRANSIENT"


class PersistenceError(QuoteEngineError):
    """
    Writing a quote, cache entry or request log failed.
    Logged by the use cases, never fails the quote response.
    """
    code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, cause: Exception | str):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class QuoteNotFound(QuoteEngineError):
    code = "QUOTE_NOT_FOUND"

    def __init__(self, quote_id: str):
        super().__init__(f"Quote {quote_id} not found")
        self.quote_id = quote_id


class QuoteExpired(QuoteEngineError):
    code = "QUOTE_EXPIRED"

    def __init__(self, quote_id: str, expired_at: int):
        super().__init__(f"Quote {quote_id} expired")
        self.quote_id = quote_id
        self.expired_at = expired_at


class QuoteNotActive(QuoteEngineError):
    """
    Transition requested on a quote that is no longer active (cancelled/expired/used).
    """
    code = "QUOTE_NOT_ACTIVE"

    def __init__(self, quote_id: str, status: str):
        super().__init__(f"Quote {quote_id} is {status}")
        self.quote_id = quote_id
        self.status = status
