from pydantic import BaseModel


class StopInfo(BaseModel):
    atco_code: str
    common_name: str
    indicator: str = ""
    locality_name: str = ""
    lat: float | None = None
    lon: float | None = None
