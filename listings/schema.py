"""Pydantic models for homestay listings."""

from typing import Optional

from pydantic import BaseModel


class Location(BaseModel):
    village: str
    district: str
    state: str
    coordinates: Optional[tuple[float, float]] = None


class HostContact(BaseModel):
    id: str
    name: str
    email: str = ""
    phone: str = ""


class Review(BaseModel):
    id: str
    user_name: str
    rating: int
    comment: str
    created_at: str = ""


class HomestayListing(BaseModel):
    id: str
    host_id: str = ""
    title: str
    description: str = ""
    location: Location
    amenities: list[str] = []
    images: list[str] = []
    nightly_rate: int  # whole currency units per night
    currency: str = "INR"
    max_guests: int
    rooms: int = 1
    rating: float = 0.0
    reviews: list[Review] = []
    host: Optional[HostContact] = None

    @property
    def review_count(self) -> int:
        return len(self.reviews)

    def to_summary(self) -> dict:
        """Card-sized view used by search results."""
        return {
            "id": self.id,
            "title": self.title,
            "location": f"{self.location.village}, {self.location.state}",
            "nightly_rate": self.nightly_rate,
            "currency": self.currency,
            "max_guests": self.max_guests,
            "rating": self.rating,
            "review_count": self.review_count,
            "image": self.images[0] if self.images else "",
        }
