"""Pydantic model for a prospective host's property application."""

from pydantic import BaseModel


class HostApplication(BaseModel):
    """Submitted from the "become a host" form; reviewed offline."""

    property_name: str
    property_type: str = "traditional-house"  # farmhouse, heritage-home, tribal-hut
    village: str
    district: str = ""
    state: str
    description: str = ""
    amenities: list[str] = []
    guests: int = 2
    rooms: int = 1
    price_per_night: int = 1500
    contact_phone: str
    contact_email: str
