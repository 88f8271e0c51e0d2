from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    bods_api_key: str = ""
    feed_url: str = "https://data.bus-data.dft.gov.uk/api/v1/gtfsrtdatafeed/"
    feed_timeout_seconds: float = 15.0

    naptan_file: str = "data/naptan_peterborough.csv"
    gtfs_dir: str = "data/gtfs"
    database_url: str = "sqlite+aiosqlite:///:memory:"

    # Map region (south, north, west, east) and the point vehicles are ranked against
    home_region: str = "peterborough"
    region_south: float = 52.50
    region_north: float = 52.65
    region_west: float = -0.40
    region_east: float = -0.10
    reference_lat: float = 52.572
    reference_lon: float = -0.242

    stop_search_limit: int = 120
    live_vehicle_limit: int = 400
    departure_limit: int = 6
    fallback_proximity_m: float = 2000.0
    fallback_speed_mps: float = 7.0

    model_config = {"env_prefix": "", "case_sensitive": False}


settings = Settings()
