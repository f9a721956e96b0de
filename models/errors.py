class RoutingError(Exception):
    """Base class for recipient routing failures."""


class PriceUnavailable(RoutingError):
    def __init__(self, asset_symbol: str):
        super().__init__(f"No price available for asset {asset_symbol}")
        self.asset_symbol = asset_symbol


class AssetUnresolved(RoutingError):
    def __init__(self, symbol: str):
        super().__init__(f"Unknown asset symbol: {symbol!r}")
        self.symbol = symbol


class RouteUnavailable(RoutingError):
    def __init__(self, asset_symbol: str):
        super().__init__(f"No live swap route yet for asset {asset_symbol}")
        self.asset_symbol = asset_symbol


class RecipientNotFound(RoutingError):
    def __init__(self, recipient_id: str):
        super().__init__(f"Cant find recipient by id {recipient_id}")
        self.recipient_id = recipient_id


class SubmissionFailed(RoutingError):
    """A chain submission was rejected or timed out."""


class InvalidStatusTransition(RoutingError):
    pass


class InvalidUsdAmount(RoutingError):
    def __init__(self, raw_value):
        super().__init__(f"Invalid USD amount: {raw_value!r}")
        self.raw_value = raw_value
