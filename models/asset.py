from pydantic import BaseModel, ConfigDict

class Asset(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    symbol: str
    name: str = ""
    decimals: int = 18
